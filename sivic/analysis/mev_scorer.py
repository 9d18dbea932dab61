"""
MEV heuristic scorer.

Estimates how exposed a Solana transaction is to MEV extraction. When the
input is a transaction signature and the RPC provider is configured, the
transaction is fetched and scored from what it actually did; otherwise the
raw input is scored with keyword heuristics.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sivic.constants import DEX_PROGRAMS, LAMPORTS_PER_SOL
from sivic.models.analysis import (
    MEVRiskAssessment,
    MEVThreat,
    Severity,
    TransactionOnChainData,
)
from sivic.services.rpc_service import RPCService
from sivic.utils.errors import RpcError
from sivic.utils.validation import is_transaction_signature

logger = logging.getLogger(__name__)

BASE_SCORE = 10
HIGH_PRIORITY_FEE_LAMPORTS = 10_000
COMPLEX_SWAP_INNER_INSTRUCTIONS = 5
COMPLEX_DATA_LENGTH = 500

SWAP_KEYWORDS = re.compile(r"swap|jupiter|raydium|orca|serum", re.IGNORECASE)

DEX_RECOMMENDATIONS = (
    "Use private RPC endpoints for future transactions",
    "Consider using Jito bundles for MEV protection",
    "Set slippage to 0.5-1% for better protection",
)


@dataclass
class ResolvedTransaction:
    """The parts of a fetched transaction the scorer looks at."""

    signature: str
    slot: Optional[int]
    block_time: Optional[int]
    fee: int
    success: bool
    programs: List[str] = field(default_factory=list)
    account_keys: List[str] = field(default_factory=list)
    inner_instructions_count: int = 0
    log_messages: List[str] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, signature: str, tx: Dict[str, Any]) -> "ResolvedTransaction":
        """Build from a jsonParsed ``getTransaction`` result."""
        message = (tx.get("transaction") or {}).get("message") or {}
        account_keys = [
            key.get("pubkey") if isinstance(key, dict) else key
            for key in message.get("accountKeys") or []
        ]
        meta = tx.get("meta") or {}
        return cls(
            signature=signature,
            slot=tx.get("slot"),
            block_time=tx.get("blockTime"),
            fee=meta.get("fee") or 0,
            success=meta.get("err") is None,
            programs=[key for key in account_keys if key in DEX_PROGRAMS],
            account_keys=account_keys,
            inner_instructions_count=len(meta.get("innerInstructions") or []),
            log_messages=meta.get("logMessages") or [],
        )


def detect_dex(programs: Iterable[str]) -> List[str]:
    """Names of the DEXes behind the given program IDs, first seen first."""
    detected: List[str] = []
    for program in programs:
        name = DEX_PROGRAMS.get(program)
        if name and name not in detected:
            detected.append(name)
    return detected


def risk_level_for_score(score: int) -> str:
    if score >= 76:
        return "critical"
    if score >= 51:
        return "high"
    if score >= 26:
        return "medium"
    return "low"


def score_transaction(
    payload: str,
    tx: Optional[ResolvedTransaction] = None,
    analyzed_at: Optional[str] = None
) -> MEVRiskAssessment:
    """
    Score a transaction for MEV risk.

    Deterministic in ``payload`` and ``tx``; only ``analyzed_at`` varies
    between calls.

    Args:
        payload: Trimmed user input (signature or raw transaction data)
        tx: The fetched transaction, or None if it could not be resolved
        analyzed_at: ISO timestamp to stamp the result with

    Returns:
        The risk assessment
    """
    score = BASE_SCORE
    threats: List[MEVThreat] = []
    recommendations: List[str] = []
    transaction_type = "unknown"
    on_chain = TransactionOnChainData()

    if tx is not None:
        on_chain.fetched = True
        on_chain.signature = tx.signature
        on_chain.slot = tx.slot
        on_chain.fee = tx.fee
        on_chain.inner_instructions_count = tx.inner_instructions_count

        dexes = detect_dex(tx.programs)
        on_chain.programs_detected = dexes
        on_chain.is_dex_transaction = bool(dexes)

        if dexes:
            transaction_type = "swap"
            score += 30
            threats.append(MEVThreat(
                type="dex_swap",
                severity=Severity.MEDIUM,
                description=f"DEX swap detected via {', '.join(dexes)} - common MEV target",
            ))

            if tx.fee > HIGH_PRIORITY_FEE_LAMPORTS:
                score += 15
                threats.append(MEVThreat(
                    type="high_priority_fee",
                    severity=Severity.MEDIUM,
                    description=f"High priority fee ({tx.fee / LAMPORTS_PER_SOL:.6f} SOL) "
                                f"suggests MEV competition",
                ))

            if tx.inner_instructions_count > COMPLEX_SWAP_INNER_INSTRUCTIONS:
                score += 15
                threats.append(MEVThreat(
                    type="complex_swap",
                    severity=Severity.MEDIUM,
                    description=f"Complex transaction with {tx.inner_instructions_count} inner "
                                f"instructions - multi-hop swap increases MEV risk",
                ))

            recommendations.extend(DEX_RECOMMENDATIONS)
        else:
            transaction_type = "transfer"
            recommendations.append("Non-DEX transaction - lower MEV risk")

        if not tx.success:
            score += 20
            threats.append(MEVThreat(
                type="transaction_failed",
                severity=Severity.HIGH,
                description="Transaction failed - possible MEV bot interference or slippage exceeded",
            ))
    else:
        if is_transaction_signature(payload):
            transaction_type = "signature"
            recommendations.append("Could not fetch on-chain data - using heuristic analysis")

        if SWAP_KEYWORDS.search(payload):
            transaction_type = "swap_data"
            score += 25
            on_chain.is_dex_transaction = True
            threats.append(MEVThreat(
                type="swap_keywords",
                severity=Severity.MEDIUM,
                description="DEX swap keywords detected in transaction data",
            ))

        if len(payload) > COMPLEX_DATA_LENGTH:
            score += 10
            threats.append(MEVThreat(
                type="complex_data",
                severity=Severity.LOW,
                description="Complex transaction data detected",
            ))

    if not threats:
        threats.append(MEVThreat(
            type="none",
            severity=Severity.LOW,
            description="No MEV threats detected based on analysis",
        ))
        recommendations.append("Standard precautions apply")

    score = min(100, max(0, score))

    return MEVRiskAssessment(
        risk_score=score,
        risk_level=risk_level_for_score(score),
        threats=threats,
        recommendations=recommendations,
        transaction_type=transaction_type,
        on_chain_data=on_chain,
        analyzed_at=analyzed_at or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


class MEVScorer:
    """Resolves transactions through the gateway and scores them."""

    def __init__(self, rpc: RPCService):
        self.rpc = rpc

    async def resolve(self, signature: str) -> Optional[ResolvedTransaction]:
        """
        Fetch a transaction by signature.

        Returns:
            The resolved transaction, or None when the provider is not
            configured, the transaction is unknown or the fetch fails
        """
        if not self.rpc.is_configured:
            logger.info("Helius not configured, skipping on-chain fetch")
            return None

        try:
            tx = await self.rpc.get_transaction(signature)
        except RpcError as e:
            logger.warning(f"Transaction fetch failed for {signature[:16]}...: {e.message}")
            return None

        if not tx:
            logger.info(f"Transaction {signature[:16]}... not found")
            return None

        resolved = ResolvedTransaction.from_rpc(signature, tx)
        logger.debug(
            f"Fetched transaction slot={resolved.slot} fee={resolved.fee} "
            f"dex_programs={len(resolved.programs)} inner={resolved.inner_instructions_count} "
            f"success={resolved.success}"
        )
        return resolved

    async def analyze(self, transaction: str) -> MEVRiskAssessment:
        """
        Analyze a transaction signature or raw transaction payload.

        Args:
            transaction: User input, trimmed before use

        Returns:
            The risk assessment
        """
        payload = transaction.strip()
        tx = None
        if is_transaction_signature(payload):
            tx = await self.resolve(payload)

        assessment = score_transaction(payload, tx)
        logger.info(
            f"MEV analysis complete: score={assessment.risk_score} level={assessment.risk_level} "
            f"threats={len(assessment.threats)} fetched={assessment.on_chain_data.fetched}"
        )
        return assessment
