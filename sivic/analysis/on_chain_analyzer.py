"""
On-chain analyzer.

Fetches facts about a single Solana address, classifies it as a token mint,
a program or a plain account, and turns what it learns into risk
indicators. Every fetch runs as a recorded timeline step; a failed fetch
leaves a gap in the data but never aborts the run or invents a finding.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sivic.analysis.steps import MillisClock, epoch_millis, run_step
from sivic.constants import BPF_LOADERS, DEFAULT_THRESHOLDS, RiskThresholds
from sivic.models.analysis import (
    AnalysisTimeline,
    IndicatorScore,
    RiskIndicator,
    Severity,
    TokenAnalysisData,
    TopHolder,
)
from sivic.services.rpc_service import RPCService

logger = logging.getLogger(__name__)

MS_PER_DAY = 1000 * 60 * 60 * 24

INDICATOR_WEIGHTS = {
    Severity.CRITICAL: 30,
    Severity.HIGH: 20,
    Severity.MEDIUM: 10,
    Severity.LOW: 2,
}


def grade_for_score(score: float) -> str:
    """Letter grade for a 0-100 risk score, without severity overrides."""
    if score <= 10:
        return "A"
    if score <= 25:
        return "B"
    if score <= 50:
        return "C"
    return "D"


def calculate_risk_score(indicators: Iterable[RiskIndicator]) -> IndicatorScore:
    """
    Score a list of risk indicators.

    Any critical indicator grades F and any high indicator grades D,
    whatever the numeric score.

    Args:
        indicators: Indicators produced by the analyzer

    Returns:
        Score clamped to 100 and its letter grade
    """
    score = 0
    has_critical = False
    has_high = False
    for indicator in indicators:
        score += INDICATOR_WEIGHTS[indicator.severity]
        if indicator.severity is Severity.CRITICAL:
            has_critical = True
        elif indicator.severity is Severity.HIGH:
            has_high = True

    score = min(score, 100)

    if has_critical:
        grade = "F"
    elif has_high:
        grade = "D"
    else:
        grade = grade_for_score(score)
    return IndicatorScore(score=score, grade=grade)


def _parsed(account: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    data = (account or {}).get("data")
    if isinstance(data, dict):
        return data.get("parsed") or {}
    return {}


def _iso_from_block_time(block_time: int) -> str:
    moment = datetime.fromtimestamp(block_time, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OnChainAnalyzer:
    """Runs the step-by-step on-chain analysis of an address."""

    def __init__(
        self,
        rpc: RPCService,
        thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
        clock: MillisClock = epoch_millis
    ):
        """
        Initialize the analyzer.

        Args:
            rpc: Data gateway
            thresholds: Risk thresholds
            clock: Epoch-millisecond time source
        """
        self.rpc = rpc
        self.thresholds = thresholds
        self.clock = clock

    async def _step(self, timeline, step_id, name, operation):
        return await run_step(timeline, step_id, name, operation, clock=self.clock)

    async def analyze(self, address: str) -> Tuple[TokenAnalysisData, AnalysisTimeline]:
        """
        Analyze an address.

        Args:
            address: Base58 account address

        Returns:
            The collected data with its risk indicators, and the timeline
        """
        timeline = AnalysisTimeline(start_time=self.clock())
        data = TokenAnalysisData(address=address)

        account = await self._step(
            timeline, "account_info", "Fetching Account Info",
            lambda: self.rpc.get_account_info(address)
        )

        if not account:
            data.type = "unknown"
            data.risk_indicators.append(RiskIndicator(
                id="account_not_found",
                category="metadata",
                name="Account Not Found",
                severity=Severity.HIGH,
                value="N/A",
                description="Unable to fetch account data from blockchain",
            ))
            timeline.finalize(self.clock())
            return data, timeline

        parsed = _parsed(account)
        parsed_type = parsed.get("type")

        if parsed_type == "mint":
            data.type = "token"
            await self._analyze_token(data, timeline, parsed.get("info") or {})
        elif (parsed_type == "program" or account.get("owner") in BPF_LOADERS
              or account.get("executable")):
            data.type = "program"
            await self._analyze_program(data, timeline, parsed.get("info") or {})
        else:
            data.type = "account"
            data.risk_indicators.append(RiskIndicator(
                id="regular_account",
                category="metadata",
                name="Regular Account",
                severity=Severity.LOW,
                value=parsed_type or "unknown",
                description="This is a regular account, not a token or program",
            ))

        timeline.finalize(self.clock())
        logger.info(
            f"Analyzed {address} as {data.type}: {len(data.risk_indicators)} indicators "
            f"in {timeline.total_duration}ms"
        )
        return data, timeline

    async def _analyze_token(self, data: TokenAnalysisData, timeline: AnalysisTimeline,
                             mint_info: Dict[str, Any]) -> None:
        indicators = data.risk_indicators

        data.decimals = mint_info.get("decimals")
        data.supply = mint_info.get("supply")
        if data.supply is not None:
            data.supply_formatted = float(data.supply) / (10 ** (data.decimals or 0))
        data.mint_authority = mint_info.get("mintAuthority")
        data.freeze_authority = mint_info.get("freezeAuthority")

        if data.mint_authority:
            indicators.append(RiskIndicator(
                id="active_mint_authority",
                category="authority",
                name="Active Mint Authority",
                severity=Severity.CRITICAL,
                value=data.mint_authority,
                description="Token has an active mint authority that can create unlimited new tokens",
                remediation="Consider disabling mint authority to prevent inflation attacks",
            ))
        else:
            indicators.append(RiskIndicator(
                id="mint_authority_disabled",
                category="authority",
                name="Mint Authority Disabled",
                severity=Severity.LOW,
                value="Disabled",
                description="No new tokens can be minted - supply is fixed",
            ))

        if data.freeze_authority:
            indicators.append(RiskIndicator(
                id="active_freeze_authority",
                category="authority",
                name="Active Freeze Authority",
                severity=Severity.HIGH,
                value=data.freeze_authority,
                description="Token accounts can be frozen, preventing transfers",
                remediation="Consider disabling freeze authority if not needed",
            ))

        metadata = await self._step(
            timeline, "token_metadata", "Fetching Token Metadata",
            lambda: self.rpc.get_token_metadata(data.address)
        )
        if metadata:
            self._apply_metadata(data, metadata)

        holders = await self._step(
            timeline, "largest_holders", "Fetching Largest Holders",
            lambda: self.rpc.get_token_largest_accounts(data.address)
        )
        if holders:
            self._apply_holders(data, holders)

        signatures = await self._step(
            timeline, "recent_transactions", "Fetching Recent Transactions",
            lambda: self.rpc.get_signatures_for_address(data.address, self.thresholds.signature_limit)
        )
        if signatures:
            self._apply_activity(data, signatures)

            if data.failed_tx_rate > self.thresholds.failure_rate_pct:
                indicators.append(RiskIndicator(
                    id="high_failure_rate",
                    category="activity",
                    name="High Transaction Failure Rate",
                    severity=Severity.MEDIUM,
                    value=f"{data.failed_tx_rate:.1f}%",
                    description="Many recent transactions are failing",
                    remediation="May indicate issues with the contract or attack attempts",
                ))

            oldest = signatures[-1]
            if oldest.get("blockTime"):
                data.age_in_days = math.floor(
                    (self.clock() - oldest["blockTime"] * 1000) / MS_PER_DAY
                )
            if data.age_in_days is not None and data.age_in_days < self.thresholds.new_token_days:
                indicators.append(RiskIndicator(
                    id="new_token",
                    category="activity",
                    name="New Token",
                    severity=Severity.MEDIUM,
                    value=f"{data.age_in_days} days",
                    description=f"Token is only {data.age_in_days} days old",
                    remediation="New tokens carry higher risk - do thorough research",
                ))

    def _apply_metadata(self, data: TokenAnalysisData, metadata: Dict[str, Any]) -> None:
        on_chain = (metadata.get("onChainMetadata") or {}).get("metadata") or {}
        fields = on_chain.get("data") or {}
        legacy = metadata.get("legacyMetadata") or {}

        data.name = (fields.get("name") or "").strip() or legacy.get("name") or "Unknown"
        data.symbol = (fields.get("symbol") or "").strip() or legacy.get("symbol") or "UNKNOWN"
        data.uri = fields.get("uri") or legacy.get("uri")
        is_mutable = on_chain.get("isMutable")
        data.is_mutable = True if is_mutable is None else bool(is_mutable)
        data.update_authority = on_chain.get("updateAuthority")

        if data.is_mutable:
            data.risk_indicators.append(RiskIndicator(
                id="mutable_metadata",
                category="metadata",
                name="Mutable Metadata",
                severity=Severity.MEDIUM,
                value="True",
                description="Token metadata can be changed by the update authority",
                remediation="Consider making metadata immutable for transparency",
            ))

    def _apply_holders(self, data: TokenAnalysisData, holders: List[Dict[str, Any]]) -> None:
        scale = 10 ** (data.decimals or 0)
        total_supply = data.supply_formatted or 1
        ranked = sorted(holders, key=lambda h: int(h.get("amount") or 0), reverse=True)

        data.top_holders = [
            TopHolder(
                address=h.get("address"),
                amount=str(h.get("amount")),
                percentage=(float(h.get("amount") or 0) / scale) / total_supply * 100,
                rank=i + 1,
            )
            for i, h in enumerate(ranked[:self.thresholds.top_holder_limit])
        ]
        data.total_holders = len(holders)
        data.holder_concentration = sum(h.percentage for h in data.top_holders)

        top = data.top_holders[0].percentage
        if top > self.thresholds.top_holder_critical_pct:
            data.risk_indicators.append(RiskIndicator(
                id="high_concentration",
                category="holder",
                name="Extremely High Holder Concentration",
                severity=Severity.CRITICAL,
                value=f"{top:.1f}%",
                description=f"Single address holds {top:.1f}% of total supply",
                remediation="High concentration indicates potential rug pull risk",
            ))
        elif top > self.thresholds.top_holder_high_pct:
            data.risk_indicators.append(RiskIndicator(
                id="moderate_concentration",
                category="holder",
                name="High Holder Concentration",
                severity=Severity.HIGH,
                value=f"{top:.1f}%",
                description=f"Top holder has {top:.1f}% of supply",
                remediation="Monitor for large sell-offs",
            ))
        elif data.holder_concentration > self.thresholds.top10_concentration_pct:
            data.risk_indicators.append(RiskIndicator(
                id="top10_concentration",
                category="holder",
                name="Top 10 Hold Majority",
                severity=Severity.MEDIUM,
                value=f"{data.holder_concentration:.1f}%",
                description=f"Top 10 holders control {data.holder_concentration:.1f}% of supply",
            ))

    @staticmethod
    def _apply_activity(data: TokenAnalysisData, signatures: List[Dict[str, Any]]) -> None:
        data.recent_tx_count = len(signatures)
        data.failed_tx_count = sum(1 for s in signatures if s.get("err") is not None)
        data.failed_tx_rate = data.failed_tx_count / data.recent_tx_count * 100

        newest = signatures[0]
        if newest.get("blockTime"):
            data.last_activity = _iso_from_block_time(newest["blockTime"])

    async def _analyze_program(self, data: TokenAnalysisData, timeline: AnalysisTimeline,
                               program_info: Dict[str, Any]) -> None:
        indicators = data.risk_indicators
        data.program_data = program_info.get("programData")

        if data.program_data:
            program_data = await self._step(
                timeline, "program_data", "Fetching Program Data",
                lambda: self.rpc.get_account_info(data.program_data)
            )
            if program_data:
                data.upgrade_authority = (_parsed(program_data).get("info") or {}).get("authority")
                data.is_upgradeable = data.upgrade_authority is not None

                if data.is_upgradeable:
                    indicators.append(RiskIndicator(
                        id="upgradeable_program",
                        category="program",
                        name="Upgradeable Program",
                        severity=Severity.HIGH,
                        value=data.upgrade_authority,
                        description="Program can be modified by the upgrade authority",
                        remediation="Verify the upgrade authority is a multisig or DAO",
                    ))
                else:
                    indicators.append(RiskIndicator(
                        id="immutable_program",
                        category="program",
                        name="Immutable Program",
                        severity=Severity.LOW,
                        value="Immutable",
                        description="Program cannot be upgraded - code is fixed",
                    ))

        signatures = await self._step(
            timeline, "program_usage", "Fetching Program Usage",
            lambda: self.rpc.get_signatures_for_address(data.address, self.thresholds.signature_limit)
        )
        if not signatures:
            return

        self._apply_activity(data, signatures)
        logger.debug(
            f"Program usage: {data.recent_tx_count} recent tx, "
            f"{data.failed_tx_rate:.1f}% failed"
        )

        if data.failed_tx_rate > self.thresholds.failure_rate_pct:
            indicators.append(RiskIndicator(
                id="program_high_failure",
                category="activity",
                name="High Failure Rate",
                severity=Severity.MEDIUM,
                value=f"{data.failed_tx_rate:.1f}%",
                description="Many program invocations are failing",
            ))

        if data.recent_tx_count < self.thresholds.low_usage_tx_count:
            indicators.append(RiskIndicator(
                id="low_usage",
                category="activity",
                name="Low Usage",
                severity=Severity.MEDIUM,
                value=f"{data.recent_tx_count} tx",
                description="Program has very low recent usage",
                remediation="May indicate an inactive or new program",
            ))
