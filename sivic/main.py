"""Main entry point for the Sivic security API server."""

# Standard library imports
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Optional

# Third-party library imports
import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Internal imports
from sivic import __version__
from sivic.api_routes.contract_analysis import router as contract_analysis_router
from sivic.api_routes.market_data import router as market_data_router
from sivic.api_routes.mev_analysis import router as mev_analysis_router
from sivic.config import get_helius_config, get_server_config
from sivic.dependencies import ServiceContainer
from sivic.logging_config import RequestIdMiddleware, configure_logging, get_logger
from sivic.utils.errors import SivicError, ValidationError

APP_NAME = "Sivic Security API"

# Setup logging
configure_logging(get_server_config().log_level)
logger = get_logger(__name__)


def create_application(services: Optional[ServiceContainer] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Prebuilt service container; built from the environment
            at startup when omitted

    Returns:
        The configured application
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            app.state.services = ServiceContainer.from_config()
        try:
            yield
        finally:
            await app.state.services.aclose()

    app = FastAPI(
        title=APP_NAME,
        description="Solana security dashboard backend: on-chain risk analysis, "
                    "MEV scoring and market data",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    # Include routers
    app.include_router(mev_analysis_router)
    app.include_router(contract_analysis_router)
    app.include_router(market_data_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/version")
    async def version():
        """Get API version information."""
        return {
            "version": __version__,
            "name": APP_NAME,
        }

    @app.exception_handler(SivicError)
    async def sivic_error_handler(request: Request, exc: SivicError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error}: {exc.message}")
        else:
            logger.warning(f"{exc.error}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(
            "Request validation failed",
            details={"errors": jsonable_encoder(exc.errors())}
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions.

        Args:
            request: FastAPI request
            exc: Exception that was raised

        Returns:
            JSON response with error details
        """
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal error", "message": "Internal server error"},
        )

    return app


app = create_application()


def run_server(port: Optional[int] = None):
    """Run the server with uvicorn.

    Args:
        port: Optional port override
    """
    config = get_server_config()
    if port is not None:
        config = replace(config, port=port)

    helius = get_helius_config()
    logger.info(
        f"Starting {APP_NAME} on {config.bind_address} (Environment: {config.environment})"
    )
    logger.info(f"Using Solana RPC: {'helius' if helius.is_configured else helius.public_rpc_url}")

    uvicorn.run(
        "sivic.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )
