"""API endpoint modules for version 1."""

from .feed import router as feed_router
from .halls import router as halls_router
from .ratings import router as ratings_router
from .votes import router as votes_router

__all__ = [
    "feed_router",
    "halls_router",
    "ratings_router",
    "votes_router",
]
