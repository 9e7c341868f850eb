"""Dining feed comments."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from penne_stage.schemas.feed import UNKNOWN_PROFILE, Comment, Profile
from penne_stage.schemas.query import Order, QuerySpec
from penne_stage.services.remote import RemoteStoreClient

logger = logging.getLogger(__name__)

COMMENTS_RELATION = "dining_comments"
PROFILES_RELATION = "profiles"


def format_time_ago(timestamp: datetime, now: datetime | None = None) -> str:
    """Render a short relative age such as ``5min``, ``3h`` or ``Mar 4``."""
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}min"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    days = hours // 24
    if days < 7:
        return f"{days}d"
    return f"{timestamp:%b} {timestamp.day}"


class FeedService:
    """Lists and posts comments, joining author profiles."""

    def __init__(self, store: RemoteStoreClient) -> None:
        self._store = store

    async def list_comments(
        self,
        dining_hall_name: str | None = None,
        *,
        limit: int = 50,
    ) -> list[Comment]:
        query = QuerySpec(
            relation=COMMENTS_RELATION,
            order=(Order("created_at", descending=True),),
            limit=limit,
        )
        if dining_hall_name:
            query = query.where("dining_hall_name", "eq", dining_hall_name)

        rows = await self._store.select(query)
        if not rows:
            return []

        user_ids = sorted({row["user_id"] for row in rows})
        profile_rows = await self._store.select(
            QuerySpec(
                relation=PROFILES_RELATION,
                columns=("id", "username", "full_name", "avatar_url"),
            ).where("id", "in", user_ids)
        )
        profiles = {row["id"]: Profile.model_validate(row) for row in profile_rows}

        return [
            Comment.model_validate(
                {**row, "profile": profiles.get(row["user_id"], UNKNOWN_PROFILE)}
            )
            for row in rows
        ]

    async def post_comment(
        self,
        user_id: str | None,
        dining_hall_name: str,
        content: str,
    ) -> Comment | None:
        """Insert a comment; anonymous callers are ignored.

        Raises:
            ValueError: If the trimmed content is empty
        """
        if not user_id:
            logger.debug("Ignoring comment on %s from anonymous caller", dining_hall_name)
            return None

        body = content.strip()
        if not body:
            raise ValueError("Comment content cannot be empty")

        rows = await self._store.insert(
            COMMENTS_RELATION,
            {"user_id": user_id, "dining_hall_name": dining_hall_name, "content": body},
        )
        if not rows:
            return None
        return Comment.model_validate(rows[0])
