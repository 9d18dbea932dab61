"""
Integration tests for the contract analysis endpoints.
"""

import pytest

from sivic import __version__
from sivic.analysis.security_rules import SOLANA_SECURITY_RULES
from tests.fixtures.common import UPGRADE_AUTHORITY, USDC_MINT, make_mint_account

RISKY_SOURCE = """
pub fn withdraw(ctx: Context<Withdraw>, amount: u64) -> Result<()> {
    invoke_signed(&ix, &accounts, &[seeds])?;
    Ok(())
}
"""

pytestmark = pytest.mark.integration


class TestContractAnalyzeEndpoint:
    """Tests for POST /contract/analyze."""

    def test_clean_token(self, client):
        # Execute
        response = client.post("/contract/analyze", json={"address": USDC_MINT})

        # Verify
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        analysis = data["analysis"]
        assert analysis["address"] == USDC_MINT
        assert analysis["account_type"] == "token"
        assert analysis["risk_score"]["grade"] == "A"
        assert set(analysis["layers"]) == {"pattern_match", "on_chain", "ai_analysis"}
        assert analysis["layers"]["pattern_match"]["findings"] == []
        assert [s["id"] for s in analysis["timeline"]["steps"]] == [
            "account_info", "token_metadata", "largest_holders", "recent_transactions",
        ]
        assert analysis["grade_description"]
        assert data["context"]["rules_applied"] == len(SOLANA_SECURITY_RULES)
        assert data["meta"] == {"version": __version__, "analysis_depth": "standard"}

    def test_source_code_adds_pattern_findings(self, client):
        # Execute
        response = client.post(
            "/contract/analyze",
            json={"address": USDC_MINT, "source_code": RISKY_SOURCE},
        )

        # Verify
        assert response.status_code == 200
        findings = response.json()["analysis"]["layers"]["pattern_match"]["findings"]
        assert "SOL-REENT-001" in [f["rule_id"] for f in findings]

    def test_active_mint_authority_reported(self, client, mock_rpc_service):
        # Setup
        mock_rpc_service.get_account_info.return_value = make_mint_account(
            mint_authority=UPGRADE_AUTHORITY
        )

        # Execute
        response = client.post("/contract/analyze", json={"address": USDC_MINT})

        # Verify
        analysis = response.json()["analysis"]
        assert analysis["summary"]["critical_count"] >= 1
        assert analysis["layers"]["on_chain"]["overall_risk"] == "critical"
        assert analysis["remediations"][0]["severity"] == "critical"

    def test_skip_layers(self, client, mock_rpc_service):
        # Execute
        response = client.post(
            "/contract/analyze",
            json={
                "address": USDC_MINT,
                "options": {"skip_on_chain": True, "skip_ai": True, "depth": "quick"},
            },
        )

        # Verify
        assert response.status_code == 200
        mock_rpc_service.get_account_info.assert_not_awaited()
        data = response.json()
        assert data["analysis"]["account_type"] == "unknown"
        assert data["analysis"]["timeline"] is None
        assert data["analysis"]["layers"]["ai_analysis"]["confidence"] == 0
        assert data["meta"]["analysis_depth"] == "quick"

    def test_missing_address(self, client):
        response = client.post("/contract/analyze", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Contract address is required"

    def test_invalid_address(self, client):
        response = client.post("/contract/analyze", json={"address": "not-a-solana-address"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid Solana address format"
        assert response.json()["details"] == {"address": "not-a-solana-address"}

    def test_invalid_depth(self, client):
        response = client.post(
            "/contract/analyze",
            json={"address": USDC_MINT, "options": {"depth": "extreme"}},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Request validation failed"
        assert response.json()["details"]["errors"]


class TestQuickCheckEndpoint:
    """Tests for GET /contract/analyze."""

    def test_quick_check_clean_token(self, client):
        # Execute
        response = client.get("/contract/analyze", params={"address": USDC_MINT})

        # Verify
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["account_type"] == "token"
        assert data["quick_check"]["grade"] == "A"
        assert data["quick_check"]["critical_count"] == 0
        assert data["quick_check"]["risk_indicators_count"] == len(data["data"]["risk_indicators"])
        assert data["duration"] == data["timeline"]["total_duration"]
        assert data["timestamp"].endswith("Z")

    def test_quick_check_unknown_account(self, client, mock_rpc_service):
        # Setup
        mock_rpc_service.get_account_info.return_value = None

        # Execute
        response = client.get("/contract/analyze", params={"address": USDC_MINT})

        # Verify
        data = response.json()
        assert data["account_type"] == "unknown"
        assert data["quick_check"]["high_count"] == 1
        assert data["quick_check"]["grade"] == "D"

    def test_quick_check_requires_address(self, client):
        response = client.get("/contract/analyze")

        assert response.status_code == 400
        assert response.json()["message"] == "Contract address is required"
