"""Version 1 API endpoints."""

from .endpoints import (
    feed_router,
    halls_router,
    ratings_router,
    votes_router,
)

__all__ = [
    "feed_router",
    "halls_router",
    "ratings_router",
    "votes_router",
]
