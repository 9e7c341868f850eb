"""Feed and profile schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Profile(BaseModel):
    """Public profile of a user."""

    id: str | None = None
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(extra="ignore")


UNKNOWN_PROFILE = Profile(username="unknown", full_name="Unknown User", avatar_url=None)


class Comment(BaseModel):
    """A comment posted to the dining feed."""

    id: str | int
    user_id: str
    dining_hall_name: str
    content: str
    created_at: datetime
    profile: Profile = Field(default_factory=lambda: UNKNOWN_PROFILE.model_copy())

    model_config = ConfigDict(extra="ignore")


class CommentCreate(BaseModel):
    """Schema for posting a new comment."""

    dining_hall_name: str = Field(..., min_length=1)
    content: str = Field(..., max_length=2000)


class CommentResponse(Comment):
    """Comment as returned by the API, with a relative timestamp."""

    time_ago: str


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile; omitted fields are kept."""

    username: str | None = Field(None, max_length=50)
    full_name: str | None = Field(None, max_length=100)
    avatar_url: str | None = None


class ProfileResponse(Profile):
    """Profile with the avatar resolved to a data URL."""

    avatar_data_url: str | None = None
