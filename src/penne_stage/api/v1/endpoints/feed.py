"""Feed and profile endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Response, status

from penne_stage.core.settings import settings
from penne_stage.schemas.feed import (
    CommentCreate,
    CommentResponse,
    ProfileResponse,
    ProfileUpdate,
)
from penne_stage.services.feed import format_time_ago

from ..dependencies import (
    CurrentUserIdDep,
    FeedServiceDep,
    ProfileServiceDep,
    remote_errors,
)

router = APIRouter(tags=["feed"])


@router.get("/feed", response_model=list[CommentResponse])
async def list_feed(
    feed: FeedServiceDep,
    dining_hall_name: str | None = Query(None, description="Only comments about this hall"),
    limit: int | None = Query(None, ge=1, le=200, description="Maximum comments to return"),
) -> list[CommentResponse]:
    """Newest comments first, each with its author's profile."""
    with remote_errors("Failed to load feed"):
        comments = await feed.list_comments(
            dining_hall_name,
            limit=limit or settings.feed_page_size,
        )
    now = datetime.now(timezone.utc)
    return [
        CommentResponse(**comment.model_dump(), time_ago=format_time_ago(comment.created_at, now))
        for comment in comments
    ]


@router.post("/feed", status_code=status.HTTP_201_CREATED)
async def post_comment(
    comment_data: CommentCreate,
    current_user_id: CurrentUserIdDep,
    feed: FeedServiceDep,
    response: Response,
) -> dict[str, str]:
    try:
        with remote_errors("Failed to post comment"):
            comment = await feed.post_comment(
                current_user_id,
                comment_data.dining_hall_name,
                comment_data.content,
            )
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    if current_user_id is None:
        response.status_code = status.HTTP_202_ACCEPTED
        return {"status": "ignored"}
    return {"status": "success", "id": str(comment.id) if comment else ""}


@router.get("/profiles/{user_id}", response_model=ProfileResponse)
async def get_profile(user_id: str, profiles: ProfileServiceDep) -> ProfileResponse:
    with remote_errors("Failed to load profile"):
        profile = await profiles.get_profile(user_id)
        if profile is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
        avatar = await profiles.avatar_data_url(profile.avatar_url) if profile.avatar_url else None
    return ProfileResponse(**profile.model_dump(), avatar_data_url=avatar)


@router.patch("/profiles/me")
async def update_my_profile(
    profile_data: ProfileUpdate,
    current_user_id: CurrentUserIdDep,
    profiles: ProfileServiceDep,
    response: Response,
) -> dict[str, str | None]:
    """Change the caller's username, full name or avatar path."""
    try:
        with remote_errors("Failed to update profile"):
            profile = await profiles.update_profile(
                current_user_id,
                **profile_data.model_dump(exclude_unset=True),
            )
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    if profile is None:
        response.status_code = status.HTTP_202_ACCEPTED
        return {"status": "ignored"}
    return {
        "status": "success",
        "id": current_user_id,
        "username": profile.username,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
    }
