"""FastAPI application for the medical coding service."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coding_core.api import coding_router, diagnoses_router
from coding_core.core.config import settings
from coding_core.core.database import close_db, init_db
from coding_core.core.redis import close_redis, ping_redis
from coding_core.services.coding_service import get_coding_service, reset_coding_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Initialize database (debug only), build the coding service, ensure the full-text index
    - Shutdown: Close the AI client, Redis and database connections
    """
    startup_start = time.perf_counter()

    # Startup
    if settings.debug:
        await init_db()

    service = get_coding_service()
    fts_ready = await service.ensure_fts_index()

    total_startup_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready (fts_index={fts_ready}) - total startup time: {total_startup_ms:.0f}ms")

    app.state.startup_time_ms = total_startup_ms

    yield

    # Shutdown
    await service.aclose()
    reset_coding_service()
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="API for searching medical code catalogs, suggesting codes and recording diagnoses.",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(coding_router, prefix=settings.api_v1_prefix)
app.include_router(diagnoses_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe).

    Returns service status and basic info for monitoring.
    Use /ready for readiness checks.
    """
    return {
        "status": "healthy",
        "service": "medical-coding-service",
        "version": "0.1.0",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, Any]:
    """Readiness check endpoint.

    Redis is optional; a missing Redis is reported but does not make the
    service unready.
    """
    service = get_coding_service()
    return {
        "status": "ready",
        "service": "medical-coding-service",
        "version": "0.1.0",
        "timestamp": datetime.now(UTC).isoformat(),
        "startup_time_ms": getattr(app.state, "startup_time_ms", 0),
        "redis": await ping_redis(),
        "fts_index": service.search.fts_ensured,
        "search_cache_entries": service.cache.local_size,
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "Medical Coding Service API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
