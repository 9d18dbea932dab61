"""
Risk aggregator.

Combines the pattern-match, on-chain and AI detection layers into a single
weighted risk score with a confidence, a summary and a prioritized list of
remediations.
"""

import math
from datetime import datetime, timezone
from typing import Iterable, List, NamedTuple, Sequence

from sivic.analysis.on_chain_analyzer import grade_for_score
from sivic.analysis.security_rules import SEVERITY_SCORES, calculate_pattern_score
from sivic.models.analysis import (
    AIAnalysisResult,
    AIVulnerability,
    AnalysisSummary,
    CombinedAnalysisResult,
    LayerBreakdown,
    OnChainAnalysisResult,
    OnChainFinding,
    PatternMatchLayer,
    PrioritizedRemediation,
    RiskScore,
    SecurityFinding,
    Severity,
)

LAYER_WEIGHTS = LayerBreakdown(pattern_match=0.25, on_chain=0.45, ai_analysis=0.30)

DEFAULT_PATTERN_CONFIDENCE = 50
ON_CHAIN_CONFIDENCE = 90
TOP_RISK_LIMIT = 5

RECOMMENDATIONS = {
    Severity.CRITICAL: "CRITICAL: Immediate remediation required. Do not proceed with deployment "
                       "until critical issues are resolved.",
    Severity.HIGH: "HIGH RISK: Address high-severity issues before deployment. "
                   "Consider professional security audit.",
    Severity.MEDIUM: "MODERATE RISK: Review and address medium-severity issues. "
                     "Apply security best practices.",
    Severity.LOW: "LOW RISK: Minor improvements recommended. Contract appears relatively safe.",
}
CLEAN_RECOMMENDATION = (
    "No significant issues detected. Consider professional audit for additional assurance."
)

GRADE_DESCRIPTIONS = {
    "A": "Very Safe - Minimal risk detected",
    "B": "Low Risk - Minor issues found",
    "C": "Medium Risk - Notable vulnerabilities present",
    "D": "High Risk - Significant vulnerabilities detected",
    "F": "Critical Risk - Severe vulnerabilities require immediate attention",
}


class _NamedSeverity(NamedTuple):
    name: str
    severity: Severity


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def _clamp(score: float) -> float:
    return max(0.0, min(score, 100.0))


def calculate_on_chain_score(result: OnChainAnalysisResult) -> int:
    """
    Score the on-chain layer from its checks.

    Returns:
        Score clamped to 0-100
    """
    score = 0

    for authority in result.authorities:
        if authority.exists and not authority.is_multisig and not authority.is_disabled:
            score += 15 if authority.type == "mint" else 10

    metadata = result.token_metadata
    if metadata is not None:
        if metadata.top_holder_percentage > 50:
            score += 15
        elif metadata.top_holder_percentage > 25:
            score += 8

        if metadata.age is not None and metadata.age < 7:
            score += 10
        elif metadata.age is not None and metadata.age < 30:
            score += 5

        if metadata.is_mutable:
            score += 5

    if result.transaction_patterns is not None:
        score += min(len(result.transaction_patterns.suspicious_patterns) * 5, 15)

    program = result.program_verification
    if program is not None:
        if not program.is_verified:
            score += 10
        if program.is_upgradeable and not program.has_time_lock:
            score += 10

    return int(_clamp(score))


def calculate_ai_score(result: AIAnalysisResult) -> float:
    """Confidence-weighted severity sum of the AI findings, clamped to 0-100."""
    score = sum(
        SEVERITY_SCORES[v.severity] * (v.confidence / 100)
        for v in result.vulnerabilities
    )
    return _clamp(score)


def aggregate_risk_score(
    pattern_score: float,
    on_chain_score: float,
    ai_score: float,
    confidences: LayerBreakdown
) -> RiskScore:
    """
    Blend the three layer scores into one risk score.

    The grade is read off the weighted score alone; individual critical
    findings do not force a failing grade here.

    Args:
        pattern_score: Pattern-match layer score
        on_chain_score: On-chain layer score
        ai_score: AI layer score
        confidences: Per-layer confidence values

    Returns:
        The combined risk score
    """
    weighted = (
        pattern_score * LAYER_WEIGHTS.pattern_match
        + on_chain_score * LAYER_WEIGHTS.on_chain
        + ai_score * LAYER_WEIGHTS.ai_analysis
    )
    confidence = (
        confidences.pattern_match * LAYER_WEIGHTS.pattern_match
        + confidences.on_chain * LAYER_WEIGHTS.on_chain
        + confidences.ai_analysis * LAYER_WEIGHTS.ai_analysis
    )

    return RiskScore(
        overall=round_half_up(weighted),
        confidence=round_half_up(confidence),
        breakdown=LayerBreakdown(
            pattern_match=round_half_up(pattern_score),
            on_chain=round_half_up(on_chain_score),
            ai_analysis=round_half_up(ai_score),
        ),
        grade=grade_for_score(weighted),
    )


def _all_findings(
    pattern_findings: Iterable[SecurityFinding],
    on_chain_findings: Iterable[OnChainFinding],
    ai_vulnerabilities: Iterable[AIVulnerability]
) -> List[_NamedSeverity]:
    return (
        [_NamedSeverity(f.rule_name, f.severity) for f in pattern_findings]
        + [_NamedSeverity(f.type, f.severity) for f in on_chain_findings]
        + [_NamedSeverity(v.name, v.severity) for v in ai_vulnerabilities]
    )


def generate_summary(
    pattern_findings: Sequence[SecurityFinding],
    on_chain_findings: Sequence[OnChainFinding],
    ai_vulnerabilities: Sequence[AIVulnerability]
) -> AnalysisSummary:
    """Count findings by severity and pick the headline recommendation."""
    findings = _all_findings(pattern_findings, on_chain_findings, ai_vulnerabilities)
    counts = {severity: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity] += 1

    top_risks = tuple(
        f.name for f in findings
        if f.severity in (Severity.CRITICAL, Severity.HIGH)
    )[:TOP_RISK_LIMIT]

    recommendation = CLEAN_RECOMMENDATION
    for severity in Severity:
        if counts[severity] > 0:
            recommendation = RECOMMENDATIONS[severity]
            break

    return AnalysisSummary(
        critical_count=counts[Severity.CRITICAL],
        high_count=counts[Severity.HIGH],
        medium_count=counts[Severity.MEDIUM],
        low_count=counts[Severity.LOW],
        top_risks=top_risks,
        recommendation=recommendation,
    )


def prioritize_remediations(
    pattern_findings: Sequence[SecurityFinding],
    on_chain_findings: Sequence[OnChainFinding],
    ai_vulnerabilities: Sequence[AIVulnerability]
) -> List[PrioritizedRemediation]:
    """
    Flatten every finding into a remediation, most severe first.

    Priorities are numbered after sorting and before duplicates (same issue
    name, ignoring case) are dropped, so the surviving priorities may have
    gaps.
    """
    candidates = (
        [(f.severity, f.rule_name, f.remediation, f.references) for f in pattern_findings]
        + [(f.severity, f.type, f.remediation, ()) for f in on_chain_findings]
        + [(v.severity, v.name, v.description, ()) for v in ai_vulnerabilities]
    )
    candidates.sort(key=lambda c: c[0].rank)

    seen = set()
    remediations: List[PrioritizedRemediation] = []
    for priority, (severity, issue, action, references) in enumerate(candidates, start=1):
        key = issue.lower()
        if key in seen:
            continue
        seen.add(key)
        remediations.append(PrioritizedRemediation(
            priority=priority,
            severity=severity,
            issue=issue,
            action=action,
            references=tuple(references),
        ))
    return remediations


def combine_analysis(
    address: str,
    pattern_findings: Sequence[SecurityFinding],
    on_chain_result: OnChainAnalysisResult,
    ai_result: AIAnalysisResult
) -> CombinedAnalysisResult:
    """
    Run the full three-layer aggregation for one address.

    Args:
        address: Analyzed address
        pattern_findings: Pattern-match layer findings
        on_chain_result: On-chain layer result
        ai_result: AI layer result

    Returns:
        The combined, immutable analysis result
    """
    pattern_findings = tuple(pattern_findings)
    pattern_score = calculate_pattern_score(pattern_findings)
    on_chain_score = calculate_on_chain_score(on_chain_result)
    ai_score = calculate_ai_score(ai_result)

    if pattern_findings:
        pattern_confidence = sum(f.confidence for f in pattern_findings) / len(pattern_findings)
    else:
        pattern_confidence = DEFAULT_PATTERN_CONFIDENCE

    risk_score = aggregate_risk_score(
        pattern_score,
        on_chain_score,
        ai_score,
        LayerBreakdown(
            pattern_match=pattern_confidence,
            on_chain=ON_CHAIN_CONFIDENCE,
            ai_analysis=ai_result.confidence,
        ),
    )

    return CombinedAnalysisResult(
        address=address,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        risk_score=risk_score,
        pattern_match=PatternMatchLayer(findings=pattern_findings, score=pattern_score),
        on_chain=on_chain_result,
        ai_analysis=ai_result,
        summary=generate_summary(pattern_findings, on_chain_result.findings, ai_result.vulnerabilities),
        remediations=tuple(prioritize_remediations(
            pattern_findings, on_chain_result.findings, ai_result.vulnerabilities
        )),
    )


def get_grade_description(grade: str) -> str:
    return GRADE_DESCRIPTIONS.get(grade, "Unknown risk level")
