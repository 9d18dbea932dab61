"""API routes for three-layer contract and token security analysis."""

# Standard library imports
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

# Third-party library imports
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

# Internal imports
from sivic import __version__
from sivic.analysis.ai_layer import AIAnalyzer
from sivic.analysis.on_chain_analyzer import OnChainAnalyzer, calculate_risk_score
from sivic.analysis.on_chain_layer import build_on_chain_result
from sivic.analysis.risk_aggregator import combine_analysis, get_grade_description
from sivic.analysis.security_rules import SOLANA_SECURITY_RULES, match_security_patterns
from sivic.dependencies import ServiceContainer, get_ai_analyzer, get_on_chain_analyzer, get_services
from sivic.logging_config import get_logger, log_with_context
from sivic.models.analysis import AIAnalysisResult, OnChainAnalysisResult, Severity
from sivic.utils.errors import ValidationError
from sivic.utils.validation import validate_public_key

# Set up logging
logger = get_logger(__name__)

# Create router
router = APIRouter(
    prefix="/contract",
    tags=["contract analysis"],
)


class AnalysisOptions(BaseModel):
    """Switches for the layers of a contract analysis."""

    skip_on_chain: bool = False
    skip_ai: bool = False
    depth: Literal["quick", "standard", "deep"] = "standard"


class ContractAnalysisRequest(BaseModel):
    """Body of a contract analysis request."""

    address: Optional[str] = None
    source_code: Optional[str] = None
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)


def _require_address(address: Optional[str]) -> str:
    if not address:
        raise ValidationError("Contract address is required")
    address = address.strip()
    if not validate_public_key(address):
        raise ValidationError(
            "Invalid Solana address format",
            details={"address": address}
        )
    return address


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.post("/analyze")
async def analyze_contract(
    request: Request,
    body: ContractAnalysisRequest,
    services: ServiceContainer = Depends(get_services),
    analyzer: OnChainAnalyzer = Depends(get_on_chain_analyzer),
    ai_analyzer: AIAnalyzer = Depends(get_ai_analyzer)
) -> Dict[str, Any]:
    """Run the pattern-match, on-chain and AI layers for an address.

    Args:
        request: FastAPI request object
        body: Address, optional source code and layer options
        services: Service container
        analyzer: On-chain analyzer
        ai_analyzer: AI layer

    Returns:
        Combined analysis with the analyzer data and timeline
    """
    address = _require_address(body.address)
    options = body.options
    request_id = request.scope.get("request_id")

    log_with_context(
        logger,
        "info",
        f"Contract analysis requested for: {address}",
        request_id=request_id,
        depth=options.depth,
        has_source=bool(body.source_code)
    )

    data = None
    timeline = None
    on_chain_result = OnChainAnalysisResult()
    if not options.skip_on_chain:
        data, timeline = await analyzer.analyze(address)
        on_chain_result = build_on_chain_result(data, services.thresholds)

    pattern_findings = match_security_patterns(body.source_code) if body.source_code else []

    if options.skip_ai:
        ai_result = AIAnalysisResult()
    else:
        ai_result = await ai_analyzer.analyze(data, body.source_code)

    result = combine_analysis(address, pattern_findings, on_chain_result, ai_result)

    analysis = result.to_dict()
    analysis["account_type"] = data.type if data is not None else "unknown"
    analysis["account_data"] = data.to_dict() if data is not None else None
    analysis["timeline"] = timeline.to_dict() if timeline is not None else None
    analysis["grade_description"] = get_grade_description(result.risk_score.grade)

    log_with_context(
        logger,
        "info",
        f"Contract analysis completed for: {address}",
        request_id=request_id,
        score=result.risk_score.overall,
        grade=result.risk_score.grade
    )

    return {
        "success": True,
        "analysis": analysis,
        "context": {
            "rules_applied": len(SOLANA_SECURITY_RULES),
            "ai_insights": list(ai_result.contextual_insights),
        },
        "meta": {
            "version": __version__,
            "analysis_depth": options.depth,
        },
    }


@router.get("/analyze")
async def quick_check(
    request: Request,
    address: Optional[str] = Query(None, description="Account, token mint or program address"),
    analyzer: OnChainAnalyzer = Depends(get_on_chain_analyzer)
) -> Dict[str, Any]:
    """Run only the on-chain analyzer and grade its indicators.

    Args:
        request: FastAPI request object
        address: Address to analyze
        analyzer: On-chain analyzer

    Returns:
        Analyzer data, timeline and a quick-check summary
    """
    address = _require_address(address)
    log_with_context(
        logger,
        "info",
        f"Quick check requested for: {address}",
        request_id=request.scope.get("request_id")
    )

    data, timeline = await analyzer.analyze(address)
    indicator_score = calculate_risk_score(data.risk_indicators)
    severities = [i.severity for i in data.risk_indicators]

    return {
        "success": True,
        "address": address,
        "account_type": data.type,
        "data": data.to_dict(),
        "timeline": timeline.to_dict(),
        "quick_check": {
            "score": indicator_score.score,
            "grade": indicator_score.grade,
            "risk_indicators_count": len(data.risk_indicators),
            "critical_count": severities.count(Severity.CRITICAL),
            "high_count": severities.count(Severity.HIGH),
        },
        "duration": timeline.total_duration,
        "timestamp": _now_iso(),
    }
