"""Unit tests for DefiLlamaService."""

import httpx
import pytest

from sivic.config import DefiLlamaConfig
from sivic.services.defillama_service import DefiLlamaService, normalize_category
from sivic.utils.errors import ExternalServiceError

PROTOCOLS = [
    {"name": "Jito", "slug": "jito", "tvl": 2_000.0, "change_1d": 1.5,
     "category": "Liquid Staking", "chains": ["Solana"]},
    {"name": "Raydium", "slug": "raydium", "tvl": 1_500.0, "change_1d": -2.0,
     "category": "Dexes", "chains": ["Solana"]},
    {"name": "Orca", "slug": "orca", "tvl": 800.0, "change_1d": None,
     "category": "Dexes", "chains": ["Solana", "Eclipse"]},
    {"name": "Kamino", "slug": "kamino", "tvl": 1_200.0, "change_1d": 0.3,
     "category": "Lending", "chains": ["Solana"]},
    {"name": "Aave", "slug": "aave", "tvl": 9_000.0, "change_1d": 0.1,
     "category": "Lending", "chains": ["Ethereum"]},
    {"name": "Dead", "slug": "dead", "tvl": 0, "category": "Dexes", "chains": ["Solana"]},
]

CHAINS = [
    {"name": "Ethereum", "tvl": 50_000.0},
    {"name": "Solana", "tvl": 9_876.0},
]

DEX_OVERVIEW = {
    "total24h": 1_000_000,
    "protocols": [
        {"name": "raydium", "displayName": "Raydium", "total24h": 600_000, "total7d": 4_000_000,
         "change_1d": 5.0, "change_7d": -1.0},
        {"name": "orca", "displayName": "Orca", "total24h": 400_000, "total7d": 2_500_000},
        {"name": "idle", "displayName": "Idle", "total24h": 0},
    ],
}


def default_handler(calls):
    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/protocols":
            return httpx.Response(200, json=PROTOCOLS)
        if request.url.path == "/v2/chains":
            return httpx.Response(200, json=CHAINS)
        if request.url.path.startswith("/prices/current/"):
            return httpx.Response(200, json={"coins": {"coingecko:solana": {"price": 150.25}}})
        if request.url.path == "/overview/dexs/Solana":
            return httpx.Response(200, json=DEX_OVERVIEW)
        return httpx.Response(404)
    return handler


def make_service(cache, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = DefiLlamaConfig(api_url="https://llama.test", coins_url="https://coins.test")
    return DefiLlamaService(cache=cache, config=config, client=client)


class TestNormalizeCategory:
    @pytest.mark.parametrize("category, expected", [
        ("Dexes", "dexs"), ("Liquid Staking", "staking"), ("CDP", "lending"),
        ("Something New", "other"), (None, "other"),
    ])
    def test_mapping(self, category, expected):
        assert normalize_category(category) == expected


class TestDefiLlamaService:
    """Test suite for DefiLlamaService."""

    @pytest.mark.asyncio
    async def test_solana_protocols_filtered_and_sorted(self, response_cache):
        # Setup
        service = make_service(response_cache, default_handler([]))

        # Execute
        result = await service.get_solana_protocols()

        # Verify
        assert [p["name"] for p in result["protocols"]] == ["Jito", "Raydium", "Kamino", "Orca"]
        assert result["total_tvl"] == 5_500.0
        assert result["protocols"][0]["category"] == "staking"
        assert result["protocols"][3]["change_24h"] == 0

    @pytest.mark.asyncio
    async def test_ecosystem_data(self, response_cache):
        # Setup
        service = make_service(response_cache, default_handler([]))

        # Execute
        result = await service.get_ecosystem_data()

        # Verify
        assert result["total_tvl"] == 9_876.0
        assert result["sol_price"] == 150.25
        assert [c["name"] for c in result["categories"]] == ["dexs", "staking", "lending"]
        dexs = result["categories"][0]
        assert dexs["total_tvl"] == 2_300.0
        assert [p["name"] for p in dexs["protocols"]] == ["Raydium", "Orca"]
        assert result["last_updated"].endswith("Z")

    @pytest.mark.asyncio
    async def test_upstream_calls_cached(self, response_cache):
        # Setup
        calls = []
        service = make_service(response_cache, default_handler(calls))

        # Execute
        await service.get_ecosystem_data()
        await service.get_ecosystem_data()
        await service.get_treemap_data()

        # Verify
        assert calls.count("/protocols") == 1
        assert calls.count("/v2/chains") == 1

    @pytest.mark.asyncio
    async def test_dex_data(self, response_cache):
        # Setup
        service = make_service(response_cache, default_handler([]))

        # Execute
        result = await service.get_dex_data()

        # Verify
        assert result["total_volume_24h"] == 1_000_000
        assert [d["display_name"] for d in result["dexes"]] == ["Raydium", "Orca"]
        assert result["dexes"][1]["change_1d"] == 0

    @pytest.mark.asyncio
    async def test_treemap_limit(self, response_cache):
        # Setup
        service = make_service(response_cache, default_handler([]))

        # Execute
        result = await service.get_treemap_data(limit=2)

        # Verify
        assert [p["name"] for p in result["protocols"]] == ["Jito", "Raydium"]
        assert result["protocols"][0]["value"] == 2_000.0
        assert result["total_tvl"] == 3_500.0

    @pytest.mark.asyncio
    async def test_missing_price_is_zero(self, response_cache):
        def handler(request):
            return httpx.Response(200, json={"coins": {}})

        service = make_service(response_cache, handler)

        assert await service.fetch_sol_price() == 0

    @pytest.mark.asyncio
    async def test_http_error_raises(self, response_cache):
        service = make_service(response_cache, lambda request: httpx.Response(500))

        with pytest.raises(ExternalServiceError) as exc_info:
            await service.fetch_chains()

        assert exc_info.value.details["status_code"] == 500
        assert exc_info.value.details["service_name"] == "DeFiLlama"

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, response_cache):
        service = make_service(response_cache, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ExternalServiceError, match="not valid JSON"):
            await service.fetch_chains()

    @pytest.mark.asyncio
    async def test_stale_data_served_after_failure(self, response_cache, fake_clock):
        """An upstream outage after expiry serves the last known chains."""
        # Setup
        state = {"fail": False}

        def handler(request):
            if state["fail"]:
                return httpx.Response(503)
            return httpx.Response(200, json=CHAINS)

        service = make_service(response_cache, handler)
        first = await service.fetch_chains()

        # Execute
        state["fail"] = True
        fake_clock.advance(10_000)
        second = await service.fetch_chains()

        # Verify
        assert second == first
        assert response_cache.stale_served == 1
