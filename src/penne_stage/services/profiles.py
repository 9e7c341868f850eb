"""User profiles and avatars."""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Any

from penne_stage.core.settings import settings
from penne_stage.schemas.feed import Profile
from penne_stage.schemas.query import QuerySpec
from penne_stage.services.image_cache import ImageCache
from penne_stage.services.remote import RemoteStoreClient

logger = logging.getLogger(__name__)

PROFILES_RELATION = "profiles"
AVATAR_BUCKET = "avatars"


class ProfileService:
    """Reads profiles and resolves avatar paths to data URLs."""

    def __init__(self, store: RemoteStoreClient, cache: ImageCache | None = None) -> None:
        self._store = store
        self._cache = cache or ImageCache(
            max_entries=settings.image_cache_max_entries,
            ttl_seconds=settings.image_cache_ttl_seconds,
        )

    @property
    def cache(self) -> ImageCache:
        return self._cache

    async def get_profile(self, user_id: str) -> Profile | None:
        rows = await self._store.select(
            QuerySpec(
                relation=PROFILES_RELATION,
                columns=("id", "username", "full_name", "avatar_url"),
                limit=1,
            ).where("id", "eq", user_id)
        )
        return Profile.model_validate(rows[0]) if rows else None

    async def update_profile(
        self,
        user_id: str | None,
        *,
        username: str | None = None,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> Profile | None:
        """Upsert the caller's own profile row; anonymous callers are ignored.

        Only the fields given are written.

        Raises:
            ValueError: If ``username`` is given but blank
        """
        if not user_id:
            logger.debug("Ignoring profile update from anonymous caller")
            return None

        changes: dict[str, Any] = {}
        if username is not None:
            username = username.strip()
            if not username:
                raise ValueError("Username cannot be empty")
            changes["username"] = username
        if full_name is not None:
            changes["full_name"] = full_name.strip()
        if avatar_url is not None:
            changes["avatar_url"] = avatar_url

        record = {
            "id": user_id,
            **changes,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        rows = await self._store.upsert(PROFILES_RELATION, record, on_conflict=("id",))
        logger.info("Updated profile %s (%s)", user_id, ", ".join(sorted(changes)) or "no fields")
        return Profile.model_validate(rows[0]) if rows else Profile.model_validate(record)

    async def avatar_data_url(self, path: str) -> str:
        """Return the avatar at ``path`` as a ``data:`` URL, cached."""
        if path.startswith("data:"):
            return path
        return await self._cache.get_or_load(path, self._download_avatar)

    async def _download_avatar(self, path: str) -> str:
        content, content_type = await self._store.download(AVATAR_BUCKET, path)
        encoded = base64.b64encode(content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"


class _ProfileServiceSingleton:
    """Singleton wrapper so the avatar cache outlives a single request."""

    _instance: ProfileService | None = None

    @classmethod
    def get_instance(cls, store: RemoteStoreClient) -> ProfileService:
        if cls._instance is None:
            cls._instance = ProfileService(store)
        return cls._instance


def get_profile_service(store: RemoteStoreClient) -> ProfileService:
    """Return the process-wide profile service bound to ``store``."""
    return _ProfileServiceSingleton.get_instance(store)
