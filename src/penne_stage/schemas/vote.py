"""Dish vote schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class VoteState(str, Enum):
    """Current vote of one user on one dish."""

    NONE = "none"
    UPVOTED = "upvoted"
    DOWNVOTED = "downvoted"


class VoteDirection(str, Enum):
    """Which button was tapped."""

    UP = "up"
    DOWN = "down"


class DishVoteCounter(BaseModel):
    """Aggregate tally for one dish."""

    dish_id: int
    upvotes: int = Field(0, ge=0)
    downvotes: int = Field(0, ge=0)


class UserDishVote(BaseModel):
    """Ledger row: a user's current vote on a dish.

    ``upvote`` and ``downvote`` are mutually exclusive.
    """

    dish_id: int
    user_id: str
    upvote: bool = False
    downvote: bool = False

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _check_exclusive(self) -> "UserDishVote":
        if self.upvote and self.downvote:
            raise ValueError("a vote cannot be both an upvote and a downvote")
        return self

    @property
    def state(self) -> VoteState:
        if self.upvote:
            return VoteState.UPVOTED
        if self.downvote:
            return VoteState.DOWNVOTED
        return VoteState.NONE

    @classmethod
    def from_state(cls, dish_id: int, user_id: str, state: VoteState) -> "UserDishVote":
        return cls(
            dish_id=dish_id,
            user_id=user_id,
            upvote=state is VoteState.UPVOTED,
            downvote=state is VoteState.DOWNVOTED,
        )


class VoteResult(BaseModel):
    """Local state reported back to the client after a tap.

    Anonymous taps come back with ``status="ignored"`` and no state.
    """

    status: str = "accepted"
    dish_id: int
    state: VoteState | None = None
    upvotes: int | None = None
    downvotes: int | None = None
