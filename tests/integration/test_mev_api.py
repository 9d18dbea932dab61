"""
Integration tests for the MEV analysis endpoints.
"""

import pytest

from sivic.utils.errors import RpcTimeoutError
from tests.fixtures.common import SIGNATURE

pytestmark = pytest.mark.integration


class TestMevAnalysisEndpoint:
    """Tests for POST /mev-analysis."""

    def test_signature_resolved_on_chain(self, client, mock_rpc_service, sample_jupiter_transaction):
        # Setup
        mock_rpc_service.get_transaction.return_value = sample_jupiter_transaction

        # Execute
        response = client.post("/mev-analysis", json={"transaction": SIGNATURE})

        # Verify
        assert response.status_code == 200
        data = response.json()
        assert data["risk_score"] == 70
        assert data["risk_level"] == "high"
        assert len(data["threats"]) == 3
        assert data["on_chain_data"]["fetched"] is True
        assert data["on_chain_data"]["programs_detected"] == ["Jupiter"]
        assert "X-Request-ID" in response.headers

    def test_fetch_failure_uses_heuristics(self, client, mock_rpc_service):
        # Setup
        mock_rpc_service.get_transaction.side_effect = RpcTimeoutError("timed out", timeout=10)

        # Execute
        response = client.post("/mev-analysis", json={"transaction": SIGNATURE})

        # Verify
        assert response.status_code == 200
        assert response.json()["on_chain_data"]["fetched"] is False
        assert response.json()["transaction_type"] == "signature"

    def test_raw_swap_payload(self, client):
        response = client.post("/mev-analysis", json={"transaction": "raydium swap instruction data"})

        assert response.status_code == 200
        assert response.json()["transaction_type"] == "swap_data"
        assert response.json()["risk_score"] == 35

    @pytest.mark.parametrize("body", [{}, {"transaction": ""}, {"transaction": 12345}])
    def test_missing_transaction(self, client, body):
        response = client.post("/mev-analysis", json=body)

        assert response.status_code == 400
        assert response.json()["message"] == "Transaction data is required"
        assert response.json()["error"] == "Invalid request"

    def test_transaction_too_short(self, client):
        response = client.post("/mev-analysis", json={"transaction": "   abc   "})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid transaction"
        assert response.json()["message"] == "Transaction data is too short"

    def test_malformed_body(self, client):
        response = client.post(
            "/mev-analysis",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Analysis failed"
        assert response.json()["code"] == "ANALYSIS_FAILED"

    def test_describe_endpoint(self, client):
        response = client.get("/mev-analysis")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["method"] == "POST"
        assert "heuristic-fallback" in data["features"]
