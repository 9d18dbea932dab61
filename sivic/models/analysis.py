"""Data models for the security analysis pipeline."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(str, Enum):
    """Finding severity, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, 1 for critical through 4 for low."""
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: Any, default: "Severity" = None) -> "Severity":
        """Parse a severity name, falling back to ``default`` (low)."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return default or cls.LOW


_SEVERITY_RANK = {
    Severity.CRITICAL: 1,
    Severity.HIGH: 2,
    Severity.MEDIUM: 3,
    Severity.LOW: 4,
}


class StepStatus(str, Enum):
    """Lifecycle of a timeline step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


def _dict_factory(items: List[Tuple[str, Any]]) -> Dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in items}


class _Serializable:
    """Mixin giving dataclasses a JSON-ready ``to_dict``."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self, dict_factory=_dict_factory)


# On-chain analyzer

@dataclass(frozen=True)
class RiskIndicator(_Serializable):
    """A single risk observation produced by the on-chain analyzer."""

    id: str
    category: str  # authority, holder, activity, metadata or program
    name: str
    severity: Severity
    value: str
    description: str
    remediation: Optional[str] = None


@dataclass
class AnalysisStep(_Serializable):
    """One timed unit of work in an analysis run.

    Times are epoch milliseconds.
    """

    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    duration: Optional[int] = None
    data: Any = None
    error: Optional[str] = None


@dataclass
class AnalysisTimeline(_Serializable):
    """Ordered record of the steps executed for one analysis."""

    start_time: int
    steps: List[AnalysisStep] = field(default_factory=list)
    end_time: Optional[int] = None
    total_duration: int = 0

    def finalize(self, now_ms: int) -> None:
        self.end_time = now_ms
        self.total_duration = now_ms - self.start_time


@dataclass
class TopHolder(_Serializable):
    """A ranked token holder."""

    address: str
    amount: str  # raw base-unit amount as returned by the RPC
    percentage: float
    rank: int


@dataclass
class TokenAnalysisData(_Serializable):
    """Everything learned about an address during one analyzer run."""

    address: str
    type: str = "unknown"  # token, program, account or unknown

    # Mint facts
    decimals: Optional[int] = None
    supply: Optional[str] = None
    supply_formatted: Optional[float] = None
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None

    # Metadata
    name: Optional[str] = None
    symbol: Optional[str] = None
    uri: Optional[str] = None
    is_mutable: Optional[bool] = None
    update_authority: Optional[str] = None

    # Holders
    top_holders: Optional[List[TopHolder]] = None
    total_holders: Optional[int] = None
    holder_concentration: Optional[float] = None

    # Activity
    recent_tx_count: Optional[int] = None
    failed_tx_count: Optional[int] = None
    failed_tx_rate: Optional[float] = None
    age_in_days: Optional[int] = None
    last_activity: Optional[str] = None

    # Program facts
    program_data: Optional[str] = None
    upgrade_authority: Optional[str] = None
    is_upgradeable: Optional[bool] = None

    risk_indicators: List[RiskIndicator] = field(default_factory=list)

    @property
    def top_holder_percentage(self) -> float:
        if not self.top_holders:
            return 0.0
        return self.top_holders[0].percentage


@dataclass(frozen=True)
class IndicatorScore(_Serializable):
    """Score and letter grade derived from a list of risk indicators."""

    score: int
    grade: str


# Detection layers

@dataclass(frozen=True)
class SecurityFinding(_Serializable):
    """A match of a static security rule against source code."""

    rule_id: str
    rule_name: str
    severity: Severity
    description: str
    evidence: str
    remediation: str
    confidence: int
    references: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OnChainFinding(_Serializable):
    """A finding from the on-chain detection layer."""

    type: str
    severity: Severity
    description: str
    evidence: str
    remediation: str


@dataclass(frozen=True)
class AuthorityCheck(_Serializable):
    type: str  # mint, freeze, update or admin
    exists: bool
    address: Optional[str]
    is_multisig: bool
    is_disabled: bool
    risk: Severity


@dataclass(frozen=True)
class TokenMetadataCheck(_Serializable):
    name: str
    symbol: str
    total_supply: float
    holders: int
    top_holder_percentage: float
    age: Optional[int]  # days, None when unknown
    is_mutable: bool
    risk: Severity


@dataclass(frozen=True)
class TransactionPatternCheck(_Serializable):
    recent_tx_count: int
    large_transactions: int
    suspicious_patterns: Tuple[str, ...]
    risk: Severity


@dataclass(frozen=True)
class ProgramVerificationCheck(_Serializable):
    is_verified: bool
    is_upgradeable: bool
    has_time_lock: bool
    last_upgrade: Optional[str]
    risk: Severity


@dataclass(frozen=True)
class OnChainAnalysisResult(_Serializable):
    """Input of the aggregator's on-chain layer."""

    authorities: Tuple[AuthorityCheck, ...] = ()
    token_metadata: Optional[TokenMetadataCheck] = None
    transaction_patterns: Optional[TransactionPatternCheck] = None
    program_verification: Optional[ProgramVerificationCheck] = None
    overall_risk: Severity = Severity.LOW
    score: int = 0
    findings: Tuple[OnChainFinding, ...] = ()


@dataclass(frozen=True)
class AIVulnerability(_Serializable):
    name: str
    severity: Severity
    description: str
    confidence: int
    location: Optional[str] = None


@dataclass(frozen=True)
class AIAnalysisResult(_Serializable):
    """Structured output of the AI layer."""

    vulnerabilities: Tuple[AIVulnerability, ...] = ()
    recommendations: Tuple[str, ...] = ()
    contextual_insights: Tuple[str, ...] = ()
    confidence: int = 0
    score: int = 0

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AIAnalysisResult":
        """Normalize a JSON payload returned by an external model.

        Unknown severities become low and confidences are clamped to 0-100.
        """
        def clamp(value: Any) -> int:
            try:
                return max(0, min(100, int(round(float(value)))))
            except (TypeError, ValueError):
                return 0

        vulnerabilities = tuple(
            AIVulnerability(
                name=str(v.get("name") or "Unnamed issue"),
                severity=Severity.parse(v.get("severity")),
                description=str(v.get("description") or ""),
                confidence=clamp(v.get("confidence", 50)),
                location=v.get("location"),
            )
            for v in payload.get("vulnerabilities") or []
            if isinstance(v, dict)
        )
        return cls(
            vulnerabilities=vulnerabilities,
            recommendations=tuple(str(r) for r in payload.get("recommendations") or []),
            contextual_insights=tuple(
                str(i) for i in payload.get("contextual_insights", payload.get("contextualInsights")) or []
            ),
            confidence=clamp(payload.get("confidence", 0)),
            score=clamp(payload.get("score", 0)),
        )


# Aggregation

@dataclass(frozen=True)
class LayerBreakdown(_Serializable):
    """One value per detection layer."""

    pattern_match: float
    on_chain: float
    ai_analysis: float


@dataclass(frozen=True)
class RiskScore(_Serializable):
    overall: int
    confidence: int
    breakdown: LayerBreakdown
    grade: str


@dataclass(frozen=True)
class AnalysisSummary(_Serializable):
    critical_count: int
    high_count: int
    medium_count: int
    low_count: int
    top_risks: Tuple[str, ...]
    recommendation: str


@dataclass(frozen=True)
class PrioritizedRemediation(_Serializable):
    priority: int
    severity: Severity
    issue: str
    action: str
    references: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PatternMatchLayer(_Serializable):
    findings: Tuple[SecurityFinding, ...]
    score: int


@dataclass(frozen=True)
class CombinedAnalysisResult(_Serializable):
    """Three-layer analysis of one address."""

    address: str
    timestamp: str
    risk_score: RiskScore
    pattern_match: PatternMatchLayer
    on_chain: OnChainAnalysisResult
    ai_analysis: AIAnalysisResult
    summary: AnalysisSummary
    remediations: Tuple[PrioritizedRemediation, ...]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self, dict_factory=_dict_factory)
        payload["layers"] = {
            "pattern_match": payload.pop("pattern_match"),
            "on_chain": payload.pop("on_chain"),
            "ai_analysis": payload.pop("ai_analysis"),
        }
        return payload


# MEV

@dataclass(frozen=True)
class MEVThreat(_Serializable):
    type: str
    severity: Severity
    description: str


@dataclass
class TransactionOnChainData(_Serializable):
    """What was learned from the chain about the analyzed transaction."""

    fetched: bool = False
    signature: Optional[str] = None
    slot: Optional[int] = None
    fee: Optional[int] = None
    programs_detected: List[str] = field(default_factory=list)
    is_dex_transaction: bool = False
    inner_instructions_count: Optional[int] = None


@dataclass
class MEVRiskAssessment(_Serializable):
    risk_score: int
    risk_level: str  # low, medium, high or critical
    threats: List[MEVThreat]
    recommendations: List[str]
    transaction_type: str
    on_chain_data: TransactionOnChainData
    analyzed_at: str
