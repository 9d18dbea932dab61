"""
Dependency injection and service provider management for the Sivic API.

Services are built once per application by ``ServiceContainer`` and stored
on ``app.state``; the FastAPI dependency providers below read them back
from the request, so tests can hand ``create_application`` a container of
their own.
"""

import logging
from typing import Optional

import httpx
from fastapi import Depends, Request

from sivic.analysis.ai_layer import AIAnalyzer, ContextualAIAnalyzer
from sivic.analysis.mev_scorer import MEVScorer
from sivic.analysis.on_chain_analyzer import OnChainAnalyzer
from sivic.config import AppConfig, get_app_config
from sivic.constants import DEFAULT_THRESHOLDS, RiskThresholds
from sivic.services.cache_service import ResponseCache
from sivic.services.defillama_service import DefiLlamaService
from sivic.services.network_service import NetworkService
from sivic.services.rpc_service import RPCService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Holds the process-wide service instances."""

    def __init__(
        self,
        config: AppConfig,
        cache: ResponseCache,
        rpc: RPCService,
        defillama: DefiLlamaService,
        ai_analyzer: Optional[AIAnalyzer] = None,
        thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config
        self.cache = cache
        self.rpc = rpc
        self.defillama = defillama
        self.ai_analyzer = ai_analyzer or ContextualAIAnalyzer(thresholds)
        self.thresholds = thresholds
        self.http_client = http_client

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "ServiceContainer":
        """
        Build every service from configuration.

        Args:
            config: Application configuration, defaults to the environment

        Returns:
            A container sharing one HTTP client and one response cache
        """
        config = config or get_app_config()
        logger.info("Initializing service providers")

        http_client = httpx.AsyncClient(timeout=config.helius.timeout)
        cache = ResponseCache(
            default_ttl=config.cache.default_ttl,
            max_size=config.cache.max_size
        )
        return cls(
            config=config,
            cache=cache,
            rpc=RPCService(config=config.helius, client=http_client),
            defillama=DefiLlamaService(cache=cache, config=config.defillama, client=http_client),
            http_client=http_client,
        )

    def on_chain_analyzer(self) -> OnChainAnalyzer:
        return OnChainAnalyzer(self.rpc, thresholds=self.thresholds)

    def mev_scorer(self) -> MEVScorer:
        return MEVScorer(self.rpc)

    def network_service(self) -> NetworkService:
        return NetworkService(self.rpc, self.cache)

    async def aclose(self) -> None:
        """Release network resources."""
        if self.http_client is not None:
            await self.http_client.aclose()
            logger.info("HTTP client closed")


def get_services(request: Request) -> ServiceContainer:
    """Get the service container of the running application."""
    return request.app.state.services


def get_cache(services: ServiceContainer = Depends(get_services)) -> ResponseCache:
    return services.cache


def get_defillama_service(services: ServiceContainer = Depends(get_services)) -> DefiLlamaService:
    return services.defillama


def get_network_service(services: ServiceContainer = Depends(get_services)) -> NetworkService:
    return services.network_service()


def get_on_chain_analyzer(services: ServiceContainer = Depends(get_services)) -> OnChainAnalyzer:
    return services.on_chain_analyzer()


def get_mev_scorer(services: ServiceContainer = Depends(get_services)) -> MEVScorer:
    return services.mev_scorer()


def get_ai_analyzer(services: ServiceContainer = Depends(get_services)) -> AIAnalyzer:
    return services.ai_analyzer
