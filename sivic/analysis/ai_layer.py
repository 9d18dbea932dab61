"""
AI detection layer.

The aggregator treats the AI layer as a collaborator that returns structured
JSON. ``ContextualAIAnalyzer`` is the built-in implementation: it reasons
over the on-chain facts deterministically, so the pipeline works without a
model provider. A model-backed analyzer only has to satisfy ``AIAnalyzer``
and can normalize its output with ``AIAnalysisResult.from_dict``.
"""

import logging
from typing import List, Optional, Protocol

from sivic.analysis.risk_aggregator import round_half_up
from sivic.analysis.security_rules import SEVERITY_SCORES
from sivic.constants import DEFAULT_THRESHOLDS, RiskThresholds
from sivic.models.analysis import (
    AIAnalysisResult,
    AIVulnerability,
    Severity,
    TokenAnalysisData,
)

logger = logging.getLogger(__name__)

CONFIDENCE_WITH_DATA = 75
CONFIDENCE_WITHOUT_DATA = 40


class AIAnalyzer(Protocol):
    """Anything that can produce an AI layer result for an address."""

    async def analyze(
        self,
        data: Optional[TokenAnalysisData],
        source_code: Optional[str] = None
    ) -> AIAnalysisResult:
        ...


class ContextualAIAnalyzer:
    """Derives AI-layer findings from the on-chain facts of an address."""

    def __init__(self, thresholds: RiskThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    async def analyze(
        self,
        data: Optional[TokenAnalysisData],
        source_code: Optional[str] = None
    ) -> AIAnalysisResult:
        """
        Analyze the collected on-chain data.

        Args:
            data: Analyzer output, None when on-chain analysis was skipped
            source_code: Optional program source, only noted in the insights

        Returns:
            Structured AI-layer result
        """
        if data is None or data.type == "unknown":
            insights = ["No on-chain data available - contextual analysis is limited."]
            if source_code:
                insights.append("Source code was supplied; rely on the pattern-match layer for it.")
            return AIAnalysisResult(
                contextual_insights=tuple(insights),
                confidence=CONFIDENCE_WITHOUT_DATA,
            )

        vulnerabilities: List[AIVulnerability] = []
        insights: List[str] = []
        recommendations: List[str] = []

        severities = [i.severity for i in data.risk_indicators]
        for severity, label in ((Severity.CRITICAL, "critical"), (Severity.HIGH, "high"),
                                (Severity.MEDIUM, "medium")):
            count = severities.count(severity)
            if count:
                insights.append(f"Found {count} {label} risk indicator(s).")

        if data.type == "token":
            self._token_findings(data, vulnerabilities, insights, recommendations)
        elif data.type == "program":
            if data.is_upgradeable:
                vulnerabilities.append(AIVulnerability(
                    name="Upgradeable Program Authority",
                    severity=Severity.HIGH,
                    description="Program code can be replaced by the upgrade authority; "
                                "verify it is a multisig or DAO with a timelock.",
                    location=data.upgrade_authority,
                    confidence=70,
                ))
                insights.append("Program is upgradeable - verify the upgrade authority is secure.")
            elif data.is_upgradeable is False:
                insights.append("Program is immutable - code cannot be changed.")

        score = min(sum(
            SEVERITY_SCORES[v.severity] * v.confidence / 100 for v in vulnerabilities
        ), 100)

        return AIAnalysisResult(
            vulnerabilities=tuple(vulnerabilities),
            recommendations=tuple(recommendations),
            contextual_insights=tuple(insights),
            confidence=CONFIDENCE_WITH_DATA,
            score=round_half_up(score),
        )

    def _token_findings(self, data: TokenAnalysisData, vulnerabilities: List[AIVulnerability],
                        insights: List[str], recommendations: List[str]) -> None:
        if data.mint_authority:
            vulnerabilities.append(AIVulnerability(
                name="Inflation Risk",
                severity=Severity.CRITICAL,
                description="Active mint authority allows unlimited new supply, diluting holders.",
                location=data.mint_authority,
                confidence=85,
            ))
            insights.append("Token has active mint authority - unlimited inflation possible.")
            recommendations.append("Revoke the mint authority or move it to a multisig.")

        if data.freeze_authority:
            vulnerabilities.append(AIVulnerability(
                name="Account Freeze Risk",
                severity=Severity.HIGH,
                description="Active freeze authority can lock holder accounts and block transfers.",
                location=data.freeze_authority,
                confidence=75,
            ))
            insights.append("Active freeze authority can lock user accounts.")

        concentration = data.holder_concentration
        if concentration is not None and concentration > self.thresholds.top10_concentration_pct:
            vulnerabilities.append(AIVulnerability(
                name="Centralized Supply",
                severity=Severity.MEDIUM,
                description=f"Top 10 holders control {concentration:.1f}% of supply; "
                            f"coordinated selling could crash the price.",
                confidence=70,
            ))
            insights.append(f"Top 10 holders control {concentration:.1f}% - high centralization risk.")

        age = data.age_in_days
        if age is not None and age < self.thresholds.new_token_days:
            vulnerabilities.append(AIVulnerability(
                name="Unproven Token",
                severity=Severity.MEDIUM,
                description=f"Token is only {age} days old with little trading history.",
                confidence=60,
            ))
            insights.append(f"Token is only {age} days old - exercise caution.")
        elif age is not None and age < self.thresholds.young_token_days:
            insights.append(f"Token is {age} days old - relatively new.")