# src/penne_stage/main.py
"""Main entry point for the Penne Stage application."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from penne_stage.api.v1 import (
    feed_router,
    halls_router,
    ratings_router,
    votes_router,
)
from penne_stage.core.settings import settings
from penne_stage.services.remote import get_remote_store
from penne_stage.services.votes import get_vote_tracker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Penne API",
    description="Campus dining hall ratings, menus and dish votes",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(halls_router, prefix="/api/v1")
app.include_router(ratings_router, prefix="/api/v1")
app.include_router(votes_router, prefix="/api/v1")
app.include_router(feed_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if not get_remote_store().enabled:
        logger.warning("SUPABASE_URL or SUPABASE_ANON_KEY missing; store calls will fail")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    store = get_remote_store()
    # Let in-flight vote syncs land before the HTTP client goes away.
    await get_vote_tracker(store).drain()
    await store.close()


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint to verify the service and its store are reachable."""
    store = await get_remote_store().health_check()
    return {"status": "ok", "store": store}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Campus dining hall ratings, menus and dish votes",
        "docs": "/docs",
        "redoc": "/redoc"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("penne_stage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
