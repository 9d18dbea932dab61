"""Conversion of analyzer output into the aggregator's on-chain layer."""

from dataclasses import replace
from typing import List, Optional

from sivic.analysis.risk_aggregator import calculate_on_chain_score
from sivic.constants import DEFAULT_THRESHOLDS, RiskThresholds
from sivic.models.analysis import (
    AuthorityCheck,
    OnChainAnalysisResult,
    OnChainFinding,
    ProgramVerificationCheck,
    Severity,
    TokenAnalysisData,
    TokenMetadataCheck,
    TransactionPatternCheck,
)


def _highest(severities: List[Severity]) -> Severity:
    return min(severities, key=lambda s: s.rank, default=Severity.LOW)


def _authority(kind: str, address: Optional[str], risk_if_active: Severity) -> AuthorityCheck:
    # Multisig ownership is not resolved on chain, so every active authority counts
    return AuthorityCheck(
        type=kind,
        exists=bool(address),
        address=address,
        is_multisig=False,
        is_disabled=not address,
        risk=risk_if_active if address else Severity.LOW,
    )


def build_on_chain_result(
    data: TokenAnalysisData,
    thresholds: RiskThresholds = DEFAULT_THRESHOLDS
) -> OnChainAnalysisResult:
    """
    Build the on-chain layer input from an analyzer run.

    Args:
        data: Analyzer output
        thresholds: Thresholds used to flag suspicious activity

    Returns:
        On-chain layer result with its score computed
    """
    authorities: List[AuthorityCheck] = []
    token_metadata = None
    transaction_patterns = None
    program_verification = None

    if data.type == "token":
        authorities.append(_authority("mint", data.mint_authority, Severity.CRITICAL))
        authorities.append(_authority("freeze", data.freeze_authority, Severity.HIGH))
        if data.is_mutable:
            authorities.append(_authority("update", data.update_authority, Severity.MEDIUM))

        top_holder = data.top_holder_percentage
        metadata_risks = []
        if top_holder > thresholds.top_holder_critical_pct:
            metadata_risks.append(Severity.CRITICAL)
        elif top_holder > thresholds.top_holder_high_pct:
            metadata_risks.append(Severity.HIGH)
        if data.age_in_days is not None and data.age_in_days < thresholds.new_token_days:
            metadata_risks.append(Severity.MEDIUM)
        if data.is_mutable:
            metadata_risks.append(Severity.MEDIUM)

        token_metadata = TokenMetadataCheck(
            name=data.name or "Unknown",
            symbol=data.symbol or "UNKNOWN",
            total_supply=data.supply_formatted or 0.0,
            holders=data.total_holders or 0,
            top_holder_percentage=top_holder,
            age=data.age_in_days,
            is_mutable=bool(data.is_mutable),
            risk=_highest(metadata_risks),
        )

    if data.recent_tx_count is not None:
        suspicious = []
        if (data.failed_tx_rate or 0) > thresholds.failure_rate_pct:
            suspicious.append(f"High failure rate ({data.failed_tx_rate:.1f}%)")
        if data.type == "program" and data.recent_tx_count < thresholds.low_usage_tx_count:
            suspicious.append(f"Low usage ({data.recent_tx_count} recent tx)")
        transaction_patterns = TransactionPatternCheck(
            recent_tx_count=data.recent_tx_count,
            large_transactions=0,
            suspicious_patterns=tuple(suspicious),
            risk=Severity.MEDIUM if suspicious else Severity.LOW,
        )

    if data.type == "program":
        if data.upgrade_authority:
            authorities.append(_authority("admin", data.upgrade_authority, Severity.HIGH))
        program_verification = ProgramVerificationCheck(
            is_verified=False,
            is_upgradeable=bool(data.is_upgradeable),
            has_time_lock=False,
            last_upgrade=None,
            risk=Severity.HIGH if data.is_upgradeable else Severity.MEDIUM,
        )

    findings = tuple(
        OnChainFinding(
            type=indicator.id,
            severity=indicator.severity,
            description=indicator.description,
            evidence=f"{indicator.name}: {indicator.value}",
            remediation=indicator.remediation or indicator.description,
        )
        for indicator in data.risk_indicators
    )

    result = OnChainAnalysisResult(
        authorities=tuple(authorities),
        token_metadata=token_metadata,
        transaction_patterns=transaction_patterns,
        program_verification=program_verification,
        overall_risk=_highest([f.severity for f in findings]),
        findings=findings,
    )
    return replace(result, score=calculate_on_chain_score(result))
