"""
FastAPI application entry point.

AGENT-VAULT - adaptive strategy agents over custodial capital
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..chain.context import block_height
from ..core.config import Settings, get_settings
from ..core.errors import ProtocolError, sanitize_error_message
from ..core.logging_config import configure_logging
from ..db.database import close_db, init_db
from ..monitoring.metrics import get_metrics_collector
from ..monitoring.middleware import setup_prometheus_middleware
from .routes import agents, metrics, protocol, strategies

API_PREFIX = "/api/v1"

configure_logging(get_settings())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    params = settings.protocol_params()

    logger.info(f"{settings.app_name} v{settings.app_version} ({settings.environment}) starting")
    logger.info(
        f"Protocol params: fee={params.registration_fee} "
        f"performance_fee_bps={params.performance_fee_bps} "
        f"cooldown_blocks={params.cooldown_blocks} "
        f"max_agents_per_user={params.max_agents_per_user}"
    )

    # Schema must exist before the first lifecycle transaction
    await init_db()
    get_metrics_collector().set_app_info(settings.app_version, settings.environment)
    if settings.faucet_enabled:
        logger.warning("Ledger faucet is enabled")

    yield

    await close_db()
    logger.info(f"{settings.app_name} stopped")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProtocolError)
    async def protocol_error_handler(request: Request, exc: ProtocolError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": sanitize_error_message(exc, "Internal server error")},
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; routes live under /api/v1, metrics and health at the root"""
    settings = settings or get_settings()
    docs_prefix = API_PREFIX if settings.is_debug else None

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Adaptive strategy agents over custodial capital",
        lifespan=lifespan,
        docs_url=f"{docs_prefix}/docs" if docs_prefix else None,
        redoc_url=None,
        openapi_url=f"{docs_prefix}/openapi.json" if docs_prefix else None,
    )
    app.state.settings = settings

    _register_error_handlers(app)
    setup_prometheus_middleware(app)

    # Added after the metrics middleware so it wraps it
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    for module in (agents, strategies, protocol):
        app.include_router(module.router, prefix=API_PREFIX)
    app.include_router(metrics.router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "block_height": block_height(
                settings.genesis_timestamp, settings.block_time_seconds, time.time()
            ),
        }

    return app


app = create_app()
