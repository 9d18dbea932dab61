"""Unit tests for the MEV heuristic scorer."""

import httpx
import pytest

from sivic.analysis.mev_scorer import (
    BASE_SCORE,
    DEX_RECOMMENDATIONS,
    MEVScorer,
    ResolvedTransaction,
    detect_dex,
    risk_level_for_score,
    score_transaction,
)
from sivic.constants import (
    JUPITER_V4_PROGRAM_ID,
    JUPITER_V6_PROGRAM_ID,
    ORCA_WHIRLPOOL_PROGRAM_ID,
    RAYDIUM_AMM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from sivic.services.rpc_service import RPCService
from sivic.utils.errors import RpcTimeoutError
from tests.fixtures.common import SIGNATURE

ANALYZED_AT = "2026-01-01T00:00:00.000Z"


def resolved(fee=5000, inner=0, success=True, programs=(JUPITER_V6_PROGRAM_ID,)):
    return ResolvedTransaction(
        signature=SIGNATURE,
        slot=250_000_000,
        block_time=1_700_000_000,
        fee=fee,
        success=success,
        programs=list(programs),
        inner_instructions_count=inner,
    )


class TestDetectDex:
    """Test suite for DEX detection."""

    def test_names_deduplicated_in_order(self):
        programs = [RAYDIUM_AMM_PROGRAM_ID, JUPITER_V6_PROGRAM_ID, JUPITER_V4_PROGRAM_ID,
                    ORCA_WHIRLPOOL_PROGRAM_ID]

        assert detect_dex(programs) == ["Raydium", "Jupiter", "Orca"]

    def test_unknown_programs_ignored(self):
        assert detect_dex([TOKEN_PROGRAM_ID]) == []


class TestRiskLevel:
    @pytest.mark.parametrize("score, level", [
        (0, "low"), (25, "low"), (26, "medium"), (50, "medium"),
        (51, "high"), (75, "high"), (76, "critical"), (100, "critical"),
    ])
    def test_bands(self, score, level):
        assert risk_level_for_score(score) == level


class TestScoreResolvedTransaction:
    """Test suite for scoring fetched transactions."""

    def test_jupiter_swap_with_priority_fee_and_hops(self):
        # Execute
        result = score_transaction(SIGNATURE, resolved(fee=20_000, inner=6), ANALYZED_AT)

        # Verify
        assert result.risk_score == 70
        assert result.risk_level == "high"
        assert [t.type for t in result.threats] == ["dex_swap", "high_priority_fee", "complex_swap"]
        assert result.transaction_type == "swap"
        assert result.recommendations == list(DEX_RECOMMENDATIONS)
        assert result.on_chain_data.fetched is True
        assert result.on_chain_data.programs_detected == ["Jupiter"]
        assert result.on_chain_data.is_dex_transaction is True

    def test_fee_boundary_is_exclusive(self):
        """A fee of exactly 10 000 lamports is not a priority fee."""
        at_limit = score_transaction(SIGNATURE, resolved(fee=10_000), ANALYZED_AT)
        above_limit = score_transaction(SIGNATURE, resolved(fee=10_001), ANALYZED_AT)

        assert at_limit.risk_score == 40
        assert above_limit.risk_score == 55
        assert "high_priority_fee" not in [t.type for t in at_limit.threats]
        assert "high_priority_fee" in [t.type for t in above_limit.threats]

    def test_inner_instruction_boundary(self):
        five = score_transaction(SIGNATURE, resolved(inner=5), ANALYZED_AT)
        six = score_transaction(SIGNATURE, resolved(inner=6), ANALYZED_AT)

        assert five.risk_score == 40
        assert six.risk_score == 55

    def test_failed_swap(self):
        result = score_transaction(SIGNATURE, resolved(success=False), ANALYZED_AT)

        assert result.risk_score == 60
        assert result.threats[-1].type == "transaction_failed"

    def test_transfer(self):
        # Execute
        result = score_transaction(SIGNATURE, resolved(fee=50_000, inner=9, programs=()), ANALYZED_AT)

        # Verify
        assert result.transaction_type == "transfer"
        assert result.risk_score == BASE_SCORE
        assert result.risk_level == "low"
        assert [t.type for t in result.threats] == ["none"]
        assert result.recommendations == [
            "Non-DEX transaction - lower MEV risk",
            "Standard precautions apply",
        ]


class TestScoreUnresolvedInput:
    """Test suite for heuristic scoring."""

    def test_unresolved_signature(self):
        result = score_transaction(SIGNATURE, None, ANALYZED_AT)

        assert result.transaction_type == "signature"
        assert result.risk_score == BASE_SCORE
        assert result.on_chain_data.fetched is False
        assert result.recommendations[0] == "Could not fetch on-chain data - using heuristic analysis"

    def test_swap_keywords(self):
        result = score_transaction("jupiter swap route payload", None, ANALYZED_AT)

        assert result.transaction_type == "swap_data"
        assert result.risk_score == 35
        assert result.risk_level == "medium"
        assert result.on_chain_data.is_dex_transaction is True

    def test_long_payload(self):
        result = score_transaction("A" * 501, None, ANALYZED_AT)

        assert result.risk_score == 20
        assert [t.type for t in result.threats] == ["complex_data"]

    def test_plain_payload(self):
        result = score_transaction("hello world payload", None, ANALYZED_AT)

        assert result.transaction_type == "unknown"
        assert result.risk_score == BASE_SCORE
        assert [t.type for t in result.threats] == ["none"]

    def test_idempotent(self):
        """Same input, same assessment apart from the timestamp."""
        first = score_transaction("raydium swap " * 50, None).to_dict()
        second = score_transaction("raydium swap " * 50, None).to_dict()

        first.pop("analyzed_at")
        second.pop("analyzed_at")
        assert first == second

    def test_score_within_bounds(self):
        result = score_transaction("orca " * 200, None, ANALYZED_AT)

        assert 0 <= result.risk_score <= 100


class TestResolvedTransaction:
    def test_from_rpc(self, sample_jupiter_transaction):
        tx = ResolvedTransaction.from_rpc(SIGNATURE, sample_jupiter_transaction)

        assert tx.fee == 20_000
        assert tx.success is True
        assert tx.programs == [JUPITER_V6_PROGRAM_ID]
        assert tx.inner_instructions_count == 6
        assert tx.slot == 250_000_000


class TestMEVScorer:
    """Test suite for MEVScorer."""

    @pytest.mark.asyncio
    async def test_signature_resolved_on_chain(self, mock_rpc_service, sample_jupiter_transaction):
        # Setup
        mock_rpc_service.get_transaction.return_value = sample_jupiter_transaction
        scorer = MEVScorer(mock_rpc_service)

        # Execute
        result = await scorer.analyze(f"  {SIGNATURE}  ")

        # Verify
        mock_rpc_service.get_transaction.assert_awaited_once_with(SIGNATURE)
        assert result.on_chain_data.fetched is True
        assert result.on_chain_data.signature == SIGNATURE
        assert result.risk_score == 70
        assert len(result.threats) == 3

    @pytest.mark.asyncio
    async def test_not_configured_skips_fetch(self, mock_rpc_service):
        # Setup
        mock_rpc_service.is_configured = False
        scorer = MEVScorer(mock_rpc_service)

        # Execute
        result = await scorer.analyze(SIGNATURE)

        # Verify
        mock_rpc_service.get_transaction.assert_not_awaited()
        assert result.transaction_type == "signature"
        assert result.on_chain_data.fetched is False

    @pytest.mark.asyncio
    async def test_fetch_failure_falls_back_to_heuristics(self, mock_rpc_service):
        # Setup
        mock_rpc_service.get_transaction.side_effect = RpcTimeoutError("timed out", timeout=10)
        scorer = MEVScorer(mock_rpc_service)

        # Execute
        result = await scorer.analyze(SIGNATURE)

        # Verify
        assert result.on_chain_data.fetched is False
        assert result.transaction_type == "signature"

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, mock_rpc_service):
        mock_rpc_service.get_transaction.return_value = None
        scorer = MEVScorer(mock_rpc_service)

        result = await scorer.analyze(SIGNATURE)

        assert result.on_chain_data.fetched is False

    @pytest.mark.asyncio
    async def test_raw_payload_not_fetched(self, mock_rpc_service):
        scorer = MEVScorer(mock_rpc_service)

        result = await scorer.analyze("swap payload data")

        mock_rpc_service.get_transaction.assert_not_awaited()
        assert result.transaction_type == "swap_data"

    @pytest.mark.asyncio
    async def test_malformed_provider_response_falls_back(self, helius_config):
        """A provider answering 200 with a JSON null still yields a heuristic result."""
        # Setup
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"null"))
        )
        scorer = MEVScorer(RPCService(config=helius_config, client=client))

        # Execute
        result = await scorer.analyze("5" * 88)

        # Verify
        assert result.transaction_type == "signature"
        assert result.on_chain_data.fetched is False
