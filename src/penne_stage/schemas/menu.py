"""Dining hall and menu schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class OperatingHours(BaseModel):
    """Opening window for one weekday, as 24h ``HH:MM`` strings."""

    open: str = Field(..., pattern=r"^\d{1,2}:\d{2}$")
    close: str = Field(..., pattern=r"^\d{1,2}:\d{2}$")


class DiningHall(BaseModel):
    """A dining hall and its weekly operating hours."""

    name: str
    operating_hours: dict[str, OperatingHours] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class MenuItem(BaseModel):
    """One dish served at a hall for a meal period."""

    id: int
    dish: str
    dish_upvote: int = 0
    dish_downvote: int = 0
    meal_type: str
    station: str
    dining_hall_name: str
    created_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")


class HallSummary(BaseModel):
    """Hall listing entry."""

    name: str
    rank: int
    average_score: float
    rating_count: int
    personal: bool = False


class HallMenu(BaseModel):
    """Menu grouped as ``{meal_type: {station: [items]}}``."""

    dining_hall_name: str
    meals: dict[str, dict[str, list[MenuItem]]]


class HallOpenStatus(BaseModel):
    name: str
    open: bool
    checked_at: datetime
