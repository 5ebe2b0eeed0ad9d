"""
Arena402 Gateway Server
FastAPI app that fronts the Are.na API with x402 pay-per-block access
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import structlog

from arena402 import __version__
from arena402.config import GatewayConfig, get_gateway_config
from arena402.errors import GatewayError
from arena402.log import configure_logging
from arena402.paywall.challenge import NETWORK_IDS
from arena402.server.errors import gateway_error_handler
from arena402.server.models import X402Manifest
from arena402.server.routers import admin, auth, content, paywall, user
from arena402.server.services import GatewayServices, build_services

logger = structlog.get_logger()


def create_app(config: Optional[GatewayConfig] = None, services: Optional[GatewayServices] = None) -> FastAPI:
    """
    Build the gateway app.

    Services are constructed in the lifespan unless passed in, so the
    facilitator client exists exactly once per process.
    """
    config = config or (services.config if services else get_gateway_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager for the FastAPI app"""
        configure_logging(config.log_level, config.log_format)
        owned = getattr(app.state, "services", None) is None
        if owned:
            app.state.services = build_services(config)

        logger.info(
            "gateway_starting",
            host=config.gateway_host,
            port=config.gateway_port,
            network=config.network,
            facilitator=config.facilitator_url,
        )
        yield
        logger.info("gateway_shutting_down")
        if owned:
            await app.state.services.aclose()

    app = FastAPI(
        title="Arena402 Gateway",
        description="Pay-per-block access to Are.na content using the x402 protocol",
        version=__version__,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Payment", "X-Payment-Receipt"],
    )
    app.add_exception_handler(GatewayError, gateway_error_handler)

    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "name": "Arena402 Gateway",
            "version": __version__,
            "status": "operational",
            "x402_manifest": "/x402.json",
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint"""
        services = request.app.state.services
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "network": config.network,
            "store": type(services.db).__name__,
        }

    @app.get("/x402.json", response_model=X402Manifest)
    async def get_x402_manifest():
        """
        x402 protocol manifest
        Machine-readable description of how to pay for blocks
        """
        return X402Manifest(
            supported_networks=[NETWORK_IDS[config.network]],
            asset=config.usdc_contract_address,
            facilitator=config.facilitator_url,
            endpoints={
                "block": "/v2/blocks/{id}",
                "channel": "/v2/channels/{slug}",
                "channel_contents": "/v2/channels/{slug}/contents",
                "paywall": "/paywall/{blockId}",
                "access": "/paywall/{blockId}/access",
            },
        )

    app.include_router(content.router)
    app.include_router(paywall.router)
    app.include_router(auth.router)
    app.include_router(user.router)
    app.include_router(admin.router)

    return app


def main():
    """Run the gateway with uvicorn"""
    import uvicorn

    config = get_gateway_config()
    uvicorn.run(
        "arena402.server.app:create_app",
        factory=True,
        host=config.gateway_host,
        port=config.gateway_port,
        reload=config.reload,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
