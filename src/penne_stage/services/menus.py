"""Dining hall listings and menus."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Final

from penne_stage.schemas.menu import DiningHall, MenuItem, OperatingHours
from penne_stage.schemas.query import Order, QuerySpec
from penne_stage.services.remote import RemoteStoreClient

MENUS_RELATION: Final[str] = "menus"
HALLS_RELATION: Final[str] = "dining_halls"
WEEKDAYS: Final[tuple[str, ...]] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)
MENU_COLUMNS: Final[tuple[str, ...]] = (
    "id", "dish", "dish_upvote", "dish_downvote", "meal_type", "station",
    "dining_hall_name", "created_at",
)


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_open(hall: DiningHall, at: datetime) -> bool:
    """Return True if ``hall`` is serving at ``at`` (local wall-clock time).

    A window whose close time is earlier than its open time runs past midnight.
    """
    now = at.hour * 60 + at.minute
    today = WEEKDAYS[at.weekday()]
    yesterday = WEEKDAYS[(at.weekday() - 1) % 7]

    hours: OperatingHours | None = hall.operating_hours.get(today)
    if hours is not None:
        start, end = _minutes(hours.open), _minutes(hours.close)
        if start <= end and start <= now < end:
            return True
        if start > end and now >= start:
            return True

    # Spill-over from a window that opened yesterday and closes after midnight.
    previous = hall.operating_hours.get(yesterday)
    if previous is not None:
        start, end = _minutes(previous.open), _minutes(previous.close)
        if start > end and now < end:
            return True
    return False


def group_menu(items: Iterable[MenuItem]) -> dict[str, dict[str, list[MenuItem]]]:
    """Nest items as ``{meal_type: {station: [items]}}`` keeping input order."""
    meals: dict[str, dict[str, list[MenuItem]]] = {}
    for item in items:
        meals.setdefault(item.meal_type, {}).setdefault(item.station, []).append(item)
    return meals


class MenuService:
    """Reads halls and menus from the hosted store."""

    def __init__(self, store: RemoteStoreClient) -> None:
        self._store = store

    async def list_halls(self) -> list[DiningHall]:
        rows = await self._store.select(
            QuerySpec(
                relation=HALLS_RELATION,
                columns=("name", "operating_hours"),
                order=(Order("name"),),
            )
        )
        return [DiningHall.model_validate(row) for row in rows]

    async def get_hall(self, name: str) -> DiningHall | None:
        rows = await self._store.select(
            QuerySpec(
                relation=HALLS_RELATION,
                columns=("name", "operating_hours"),
                limit=1,
            ).where("name", "eq", name)
        )
        return DiningHall.model_validate(rows[0]) if rows else None

    async def fetch_menu(
        self,
        dining_hall_name: str,
        *,
        meal_type: str | None = None,
        since: datetime | None = None,
    ) -> list[MenuItem]:
        """Dishes served at a hall, ordered by meal, station and id."""
        query = QuerySpec(
            relation=MENUS_RELATION,
            columns=MENU_COLUMNS,
            order=(Order("meal_type"), Order("station"), Order("id")),
        ).where("dining_hall_name", "eq", dining_hall_name)
        if meal_type:
            query = query.where("meal_type", "eq", meal_type)
        if since is not None:
            query = query.where("created_at", "gte", since)

        rows = await self._store.select(query)
        return [MenuItem.model_validate(row) for row in rows]
