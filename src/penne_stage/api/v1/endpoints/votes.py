"""Dish vote endpoints."""

from fastapi import APIRouter, HTTPException, status

from penne_stage.schemas.vote import UserDishVote, VoteResult
from penne_stage.services.votes import DishVoteTracker

from ..dependencies import CurrentUserIdDep, TrackerDep, remote_errors

router = APIRouter(tags=["votes"])


def _result(
    tracker: DishVoteTracker, dish_id: int, user_id: str | None, accepted: bool
) -> VoteResult:
    if not accepted or user_id is None:
        return VoteResult(status="ignored", dish_id=dish_id)
    counter = tracker.counter_for(dish_id)
    return VoteResult(
        dish_id=dish_id,
        state=tracker.state_for(dish_id, user_id),
        upvotes=counter.upvotes,
        downvotes=counter.downvotes,
    )


async def _prepare(tracker: DishVoteTracker, dish_id: int, user_id: str | None) -> None:
    # Anonymous taps are ignored, so there is nothing to load for them.
    if user_id is None:
        return
    with remote_errors("Failed to load dish votes"):
        found = await tracker.prepare(dish_id, user_id)
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dish not found")


@router.post(
    "/dishes/{dish_id}/upvote",
    response_model=VoteResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def upvote_dish(
    dish_id: int,
    current_user_id: CurrentUserIdDep,
    tracker: TrackerDep,
) -> VoteResult:
    """Toggle the caller's upvote; the store is updated in the background."""
    await _prepare(tracker, dish_id, current_user_id)
    task = tracker.toggle_upvote(dish_id, current_user_id)
    return _result(tracker, dish_id, current_user_id, task is not None)


@router.post(
    "/dishes/{dish_id}/downvote",
    response_model=VoteResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def downvote_dish(
    dish_id: int,
    current_user_id: CurrentUserIdDep,
    tracker: TrackerDep,
) -> VoteResult:
    """Toggle the caller's downvote; the store is updated in the background."""
    await _prepare(tracker, dish_id, current_user_id)
    task = tracker.toggle_downvote(dish_id, current_user_id)
    return _result(tracker, dish_id, current_user_id, task is not None)


@router.get("/votes/me", response_model=list[UserDishVote])
async def my_votes(current_user_id: CurrentUserIdDep, tracker: TrackerDep) -> list[UserDishVote]:
    """Reload the caller's votes from the store, replacing any local state."""
    if current_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    with remote_errors("Failed to load votes"):
        votes = await tracker.load_user_votes(current_user_id)
    return list(votes.values())
