"""Business logic services for the Penne Stage application."""

from .feed import FeedService
from .image_cache import ImageCache
from .menus import MenuService
from .profiles import ProfileService
from .ranking import RatingService, aggregate_and_rank
from .remote import RemoteStoreClient, RemoteStoreError
from .votes import DishVoteTracker, SyncPolicy

__all__ = [
    "DishVoteTracker",
    "FeedService",
    "ImageCache",
    "MenuService",
    "ProfileService",
    "RatingService",
    "RemoteStoreClient",
    "RemoteStoreError",
    "SyncPolicy",
    "aggregate_and_rank",
]
