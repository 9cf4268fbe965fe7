"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routes and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from src.api.dependencies import bootstrap_admin, build_backend
from src.api.v1 import router as v1_router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Breeder trust pipeline API v1 - Verification review and report moderation",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Builds the storage backend (runs migrations for PostgreSQL)
    - Seeds the bootstrap admin, once
    - Closes the connection pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")
    backend = build_backend(settings)
    bootstrap_admin(backend, settings)

    # Store backend in app state for dependency injection
    app.state.backend = backend

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    backend.close()


app = FastAPI(
    title="trustdesk",
    description="Breeder trust pipeline - Verification and report moderation state machines",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with storage validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    request.app.state.backend.check_health()
    return {"status": "healthy"}
