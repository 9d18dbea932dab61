"""API routes for Solana market data, network health and server status."""

# Standard library imports
from typing import Any, Dict

# Third-party library imports
from fastapi import APIRouter, Depends, Query

# Internal imports
from sivic.config import get_config_status
from sivic.dependencies import (
    ServiceContainer,
    get_cache,
    get_defillama_service,
    get_network_service,
    get_services,
)
from sivic.logging_config import get_logger
from sivic.services.cache_service import ResponseCache
from sivic.services.defillama_service import DefiLlamaService
from sivic.services.network_service import NetworkService

# Set up logging
logger = get_logger(__name__)

# Create router
router = APIRouter(tags=["market data"])


@router.get("/ecosystem")
async def get_ecosystem(
    defillama: DefiLlamaService = Depends(get_defillama_service)
) -> Dict[str, Any]:
    """Get Solana TVL, SOL price and protocols grouped by category."""
    return await defillama.get_ecosystem_data()


@router.get("/dex")
async def get_dex_volumes(
    defillama: DefiLlamaService = Depends(get_defillama_service)
) -> Dict[str, Any]:
    """Get the top Solana DEXes by 24h volume."""
    return await defillama.get_dex_data()


@router.get("/protocols-treemap")
async def get_protocols_treemap(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of protocols"),
    defillama: DefiLlamaService = Depends(get_defillama_service)
) -> Dict[str, Any]:
    """Get the largest Solana protocols sized by TVL."""
    logger.debug(f"Treemap requested with limit={limit}")
    return await defillama.get_treemap_data(limit=limit)


@router.get("/network")
async def get_network(
    network: NetworkService = Depends(get_network_service)
) -> Dict[str, Any]:
    """Get Solana TPS, epoch progress and congestion."""
    return await network.get_network_health()


@router.get("/config/status")
async def get_status(
    services: ServiceContainer = Depends(get_services)
) -> Dict[str, Any]:
    """Report which data providers are configured."""
    return get_config_status(services.config)


@router.get("/cache/stats")
async def get_cache_stats(
    cache: ResponseCache = Depends(get_cache)
) -> Dict[str, Any]:
    """Report response cache statistics."""
    return cache.stats()
