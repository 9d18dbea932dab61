"""
Shared fixtures for the API integration tests.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from sivic.config import AppConfig, CacheConfig, DefiLlamaConfig, ServerConfig
from sivic.dependencies import ServiceContainer
from sivic.main import create_application
from sivic.services.cache_service import ResponseCache
from sivic.services.defillama_service import DefiLlamaService


@pytest.fixture
def mock_defillama_service():
    """Create a mock DeFiLlama service."""
    defillama = AsyncMock(spec=DefiLlamaService)
    defillama.get_ecosystem_data.return_value = {
        "total_tvl": 9_876.0,
        "sol_price": 150.25,
        "categories": [],
        "last_updated": "2026-01-01T00:00:00.000Z",
    }
    defillama.get_dex_data.return_value = {"total_volume_24h": 1_000_000, "dexes": []}
    defillama.get_treemap_data.return_value = {"protocols": [], "total_tvl": 0}
    return defillama


@pytest.fixture
def services(helius_config, mock_rpc_service, mock_defillama_service):
    """Service container backed by mocks."""
    config = AppConfig(
        helius=helius_config,
        defillama=DefiLlamaConfig(),
        cache=CacheConfig(),
        server=ServerConfig(environment="testing"),
    )
    return ServiceContainer(
        config=config,
        cache=ResponseCache(),
        rpc=mock_rpc_service,
        defillama=mock_defillama_service,
    )


@pytest.fixture
def client(services):
    """Test client for an application using the mocked services."""
    return TestClient(create_application(services))
