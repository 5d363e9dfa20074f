"""PriceLens Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pricelens.api.v1.router import api_v1_router
from pricelens.config import settings
from pricelens.core.logging import configure_logging
from pricelens.dependencies import get_cache
from pricelens.integrations.register_adapters import build_default_registry

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info(
        "server_starting",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
    )

    cache = get_cache()
    if cache is not None and not await cache.health_check():
        logger.warning("redis_unavailable", message="searches will bypass the cache")

    app.state.registry = build_default_registry(settings, cache=cache)

    yield

    logger.info("server_stopping")
    if cache is not None:
        await cache.close()


app = FastAPI(
    title="PriceLens API",
    description="Multi-store price comparison API",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "PriceLens API",
        "version": "0.1.0",
        "description": "Multi-store price comparison",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
