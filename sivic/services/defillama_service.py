"""
DeFiLlama market data service.

Fetches TVL, DEX volume and SOL price data from the public DeFiLlama APIs.
Every upstream call goes through the shared response cache, so concurrent
dashboard requests share one upstream fetch and a failing upstream falls
back to the last known data.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from sivic.config import DefiLlamaConfig, get_defillama_config
from sivic.constants import CACHE_KEYS, CACHE_TTL
from sivic.services.base_service import BaseService
from sivic.services.cache_service import ResponseCache
from sivic.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "DeFiLlama"
SOL_PRICE_COIN = "coingecko:solana"
DEX_OVERVIEW_PATH = (
    "/overview/dexs/Solana?excludeTotalDataChart=true&excludeTotalDataChartBreakdown=true"
)

# DeFiLlama category -> dashboard category
CATEGORY_MAP = {
    "Dexs": "dexs",
    "Dexes": "dexs",
    "DEX": "dexs",
    "Lending": "lending",
    "CDP": "lending",
    "Liquid Staking": "staking",
    "Staking": "staking",
    "Staking Pool": "staking",
    "Liquid Restaking": "staking",
    "Algo-Stables": "staking",
    "NFT Lending": "nft",
    "NFT Marketplace": "nft",
    "NFT": "nft",
    "Bridge": "bridges",
    "Cross Chain": "bridges",
    "Yield": "yield",
    "Yield Aggregator": "yield",
    "Farm": "yield",
    "Indexes": "yield",
    "Derivatives": "derivatives",
    "Options": "derivatives",
    "Synthetics": "derivatives",
    "Perpetuals": "perpetuals",
    "Launchpad": "launch",
    "RWA": "rwa",
    "Gaming": "gaming",
    "Privacy": "other",
    "Insurance": "other",
    "Payments": "other",
    "Prediction Market": "other",
}


def normalize_category(category: Optional[str]) -> str:
    """Map a DeFiLlama category onto a dashboard category."""
    return CATEGORY_MAP.get(category or "", "other")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DefiLlamaService(BaseService):
    """Service for DeFiLlama TVL, DEX volume and price data."""

    def __init__(
        self,
        cache: ResponseCache,
        config: Optional[DefiLlamaConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the DeFiLlama service.

        Args:
            cache: Shared response cache
            config: DeFiLlama configuration (defaults to the environment)
            client: Shared HTTP client, created when not given
            logger: Optional logger instance
        """
        self.config = config or get_defillama_config()
        super().__init__(timeout=self.config.timeout, logger=logger)
        self.cache = cache
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout)

    async def _get_json(self, url: str, label: str) -> Any:
        async with self.log_timing(f"defillama.{label}"):
            try:
                response = await self.client.get(url, headers={"Accept": "application/json"})
            except httpx.RequestError as e:
                raise ExternalServiceError(
                    message=f"DeFiLlama {label} request failed: {str(e)}",
                    service_name=SERVICE_NAME
                )
            if not response.is_success:
                raise ExternalServiceError(
                    message=f"DeFiLlama {label} error: {response.status_code}",
                    service_name=SERVICE_NAME,
                    details={"status_code": response.status_code}
                )
            try:
                return response.json()
            except ValueError:
                raise ExternalServiceError(
                    message=f"DeFiLlama {label} response is not valid JSON",
                    service_name=SERVICE_NAME
                )

    async def fetch_all_protocols(self) -> List[Dict[str, Any]]:
        """Fetch every protocol known to DeFiLlama (cached)."""
        async def fetch():
            protocols = await self._get_json(f"{self.config.api_url}/protocols", "/protocols")
            self.logger.debug(f"Fetched {len(protocols)} protocols")
            return protocols

        return await self.cache.get_or_fetch(CACHE_KEYS.DEFILLAMA_PROTOCOLS, fetch, CACHE_TTL.MEDIUM)

    async def fetch_chains(self) -> List[Dict[str, Any]]:
        """Fetch TVL per chain (cached)."""
        return await self.cache.get_or_fetch(
            CACHE_KEYS.DEFILLAMA_CHAINS,
            lambda: self._get_json(f"{self.config.api_url}/v2/chains", "/v2/chains"),
            CACHE_TTL.MEDIUM
        )

    async def fetch_sol_price(self) -> float:
        """Fetch the current SOL price in USD (cached for a short period)."""
        data = await self.cache.get_or_fetch(
            CACHE_KEYS.DEFILLAMA_SOL_PRICE,
            lambda: self._get_json(
                f"{self.config.coins_url}/prices/current/{SOL_PRICE_COIN}", "price"
            ),
            CACHE_TTL.SHORT
        )
        coin = (data.get("coins") or {}).get(SOL_PRICE_COIN) or {}
        return coin.get("price") or 0

    async def fetch_dex_overview(self) -> Dict[str, Any]:
        """Fetch the Solana DEX volume overview (cached)."""
        async def fetch():
            data = await self._get_json(f"{self.config.api_url}{DEX_OVERVIEW_PATH}", "dex-overview")
            return {
                "total_volume_24h": data.get("total24h") or 0,
                "protocols": [
                    {
                        "name": p.get("name"),
                        "display_name": p.get("displayName") or p.get("name"),
                        "total_24h": p.get("total24h") or 0,
                        "total_7d": p.get("total7d") or 0,
                        "change_1d": p.get("change_1d") or 0,
                        "change_7d": p.get("change_7d") or 0,
                    }
                    for p in data.get("protocols") or []
                ],
            }

        return await self.cache.get_or_fetch(CACHE_KEYS.DEFILLAMA_DEX_OVERVIEW, fetch, CACHE_TTL.MEDIUM)

    async def get_solana_protocols(self) -> Dict[str, Any]:
        """
        Get Solana protocols with positive TVL, largest first.

        Derived from the full protocol list and cached under its own key.
        """
        async def build():
            all_protocols = await self.fetch_all_protocols()
            protocols = [
                {
                    "name": p.get("name"),
                    "slug": p.get("slug"),
                    "tvl": p.get("tvl") or 0,
                    "change_24h": p.get("change_1d") or 0,
                    "category": normalize_category(p.get("category")),
                }
                for p in all_protocols
                if ("Solana" in (p.get("chains") or []) or p.get("chain") == "Solana")
                and (p.get("tvl") or 0) > 0
            ]
            protocols.sort(key=lambda p: p["tvl"], reverse=True)
            return {
                "protocols": protocols,
                "total_tvl": sum(p["tvl"] for p in protocols),
            }

        return await self.cache.get_or_fetch(CACHE_KEYS.SOLANA_PROTOCOLS, build, CACHE_TTL.MEDIUM)

    async def get_ecosystem_data(self) -> Dict[str, Any]:
        """
        Get Solana ecosystem TVL grouped by category.

        Returns:
            Total chain TVL, SOL price and categories ordered by TVL, each
            with its ten largest protocols
        """
        chains, sol_price, solana = await asyncio.gather(
            self.fetch_chains(),
            self.fetch_sol_price(),
            self.get_solana_protocols(),
        )

        solana_chain = next((c for c in chains if c.get("name") == "Solana"), None)
        total_tvl = (solana_chain or {}).get("tvl") or 0

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for protocol in solana["protocols"]:
            grouped.setdefault(protocol["category"], []).append(protocol)

        categories = [
            {
                "name": name,
                "total_tvl": sum(p["tvl"] for p in protocols),
                "protocols": [
                    {
                        "name": p["name"],
                        "slug": p["slug"],
                        "tvl": p["tvl"],
                        "change_24h": p["change_24h"],
                    }
                    for p in protocols[:10]
                ],
            }
            for name, protocols in grouped.items()
        ]
        categories.sort(key=lambda c: c["total_tvl"], reverse=True)

        return {
            "total_tvl": total_tvl,
            "sol_price": sol_price,
            "categories": categories,
            "last_updated": _now_iso(),
        }

    async def get_dex_data(self) -> Dict[str, Any]:
        """Get the top 20 Solana DEXes by 24h volume."""
        overview = await self.fetch_dex_overview()
        dexes = [p for p in overview["protocols"] if p["total_24h"] > 0]
        dexes.sort(key=lambda p: p["total_24h"], reverse=True)
        return {
            "total_volume_24h": overview["total_volume_24h"],
            "dexes": dexes[:20],
            "last_updated": _now_iso(),
        }

    async def get_treemap_data(self, limit: int = 50) -> Dict[str, Any]:
        """Get the largest Solana protocols shaped for a treemap."""
        solana = await self.get_solana_protocols()
        protocols = [
            {
                "name": p["name"],
                "value": p["tvl"],
                "change_24h": p["change_24h"],
                "category": p["category"],
            }
            for p in solana["protocols"][:limit]
        ]
        return {
            "protocols": protocols,
            "total_tvl": sum(p["value"] for p in protocols),
            "last_updated": _now_iso(),
        }
