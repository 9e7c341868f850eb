"""Dining hall rating schemas."""

from pydantic import BaseModel, ConfigDict, Field

MIN_SCORE = 1
MAX_SCORE = 10


class Rating(BaseModel):
    """One user's score for one dining hall.

    At most one live rating exists per (dining_hall_name, user_id); writes are
    upserts keyed on that pair.
    """

    dining_hall_name: str = Field(..., min_length=1)
    user_id: str
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)

    model_config = ConfigDict(extra="ignore")


class RatingCreate(BaseModel):
    """Schema for submitting a hall rating."""

    dining_hall_name: str = Field(..., min_length=1, description="Hall being rated")
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE, description="Score from 1 to 10")


class AggregatedRanking(BaseModel):
    """Derived ranking row; never persisted."""

    dining_hall_name: str
    average_score: float
    rating_count: int = 0
    rank: int = Field(..., ge=1)
    personal: bool = Field(
        False,
        description="True when the score shown is the requesting user's own rating",
    )
