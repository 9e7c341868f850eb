"""Shared API dependencies for authentication and service wiring."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from penne_stage.core.settings import settings
from penne_stage.services.feed import FeedService
from penne_stage.services.menus import MenuService
from penne_stage.services.profiles import ProfileService, get_profile_service
from penne_stage.services.ranking import RatingService
from penne_stage.services.remote import RemoteStoreClient, RemoteStoreError, get_remote_store
from penne_stage.services.votes import DishVoteTracker, get_vote_tracker

logger = logging.getLogger(__name__)

# Anonymous callers may browse, so a missing token is not an error here
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the caller's user id from their access token, or None if anonymous.

    Args:
        credentials: HTTP Bearer token credentials, if any were sent

    Returns:
        The ``sub`` claim of a valid token, or None without a token

    Raises:
        HTTPException: If a token was sent but cannot be validated
    """
    if credentials is None:
        return None
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.supabase_jwt_audience,
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return str(subject)


def get_store() -> RemoteStoreClient:
    """Return the shared store client."""
    return get_remote_store()


StoreDep = Annotated[RemoteStoreClient, Depends(get_store)]


def get_tracker(store: StoreDep) -> DishVoteTracker:
    """Return the shared dish vote tracker."""
    return get_vote_tracker(store)


def get_rating_service(store: StoreDep) -> RatingService:
    return RatingService(store)


def get_menu_service(store: StoreDep) -> MenuService:
    return MenuService(store)


def get_feed_service(store: StoreDep) -> FeedService:
    return FeedService(store)


def get_profiles(store: StoreDep) -> ProfileService:
    """Return the shared profile service and its avatar cache."""
    return get_profile_service(store)


@contextmanager
def remote_errors(detail: str) -> Iterator[None]:
    """Translate store failures into a 502 carrying ``detail``."""
    try:
        yield
    except RemoteStoreError as err:
        logger.warning("%s: %s", detail, err)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail) from err


# Type aliases for dependencies
CurrentUserIdDep = Annotated[str | None, Depends(get_current_user_id)]
TrackerDep = Annotated[DishVoteTracker, Depends(get_tracker)]
RatingServiceDep = Annotated[RatingService, Depends(get_rating_service)]
MenuServiceDep = Annotated[MenuService, Depends(get_menu_service)]
FeedServiceDep = Annotated[FeedService, Depends(get_feed_service)]
ProfileServiceDep = Annotated[ProfileService, Depends(get_profiles)]
