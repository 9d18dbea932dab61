"""API routes for MEV risk analysis of transactions."""

# Standard library imports
from typing import Any, Dict

# Third-party library imports
from fastapi import APIRouter, Depends, Request

# Internal imports
from sivic.analysis.mev_scorer import MEVScorer
from sivic.dependencies import get_mev_scorer
from sivic.logging_config import get_logger, log_with_context
from sivic.utils.errors import ErrorCode, SivicError, ValidationError

# Set up logging
logger = get_logger(__name__)

MIN_TRANSACTION_LENGTH = 10

# Create router
router = APIRouter(
    prefix="/mev-analysis",
    tags=["mev analysis"],
)


@router.post("")
async def analyze_mev_risk(
    request: Request,
    scorer: MEVScorer = Depends(get_mev_scorer)
) -> Dict[str, Any]:
    """Score the MEV exposure of a transaction.

    The body is ``{"transaction": str}`` holding either a base58 signature,
    which is resolved on chain when a provider is configured, or a raw
    transaction payload scored heuristically.

    Args:
        request: FastAPI request object
        scorer: MEV scorer

    Returns:
        MEV risk assessment
    """
    request_id = request.scope.get("request_id")
    try:
        body = await request.json()
    except ValueError as e:
        raise _analysis_failed() from e

    transaction = body.get("transaction") if isinstance(body, dict) else None
    if not transaction or not isinstance(transaction, str):
        raise ValidationError("Transaction data is required")
    if len(transaction.strip()) < MIN_TRANSACTION_LENGTH:
        raise ValidationError("Transaction data is too short", error="Invalid transaction")

    log_with_context(
        logger,
        "info",
        f"MEV analysis requested for: {transaction.strip()[:50]}...",
        request_id=request_id
    )

    try:
        assessment = await scorer.analyze(transaction)
    except Exception as e:
        logger.error(f"MEV analysis failed: {str(e)}", exc_info=True)
        raise _analysis_failed() from e

    log_with_context(
        logger,
        "info",
        "MEV analysis completed",
        request_id=request_id,
        risk_score=assessment.risk_score,
        risk_level=assessment.risk_level,
        threats=len(assessment.threats),
        fetched=assessment.on_chain_data.fetched
    )
    return assessment.to_dict()


@router.get("")
async def describe_mev_endpoint() -> Dict[str, Any]:
    """Describe the MEV analysis endpoint."""
    return {
        "status": "ok",
        "endpoint": "/mev-analysis",
        "method": "POST",
        "features": ["on-chain-fetch", "dex-detection", "heuristic-fallback"],
        "message": "Fetches real on-chain data for transaction signatures",
    }


def _analysis_failed() -> SivicError:
    return SivicError(
        "Failed to analyze transaction",
        code=ErrorCode.ANALYSIS_FAILED,
        error="Analysis failed"
    )
