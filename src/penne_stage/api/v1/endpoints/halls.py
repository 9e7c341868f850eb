"""Dining hall listing, menu and leaderboard endpoints."""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from penne_stage.schemas.menu import HallMenu, HallOpenStatus, HallSummary
from penne_stage.schemas.rating import AggregatedRanking
from penne_stage.services.menus import group_menu, is_open

from ..dependencies import (
    CurrentUserIdDep,
    MenuServiceDep,
    RatingServiceDep,
    TrackerDep,
    remote_errors,
)

router = APIRouter(tags=["halls"])


@router.get("/halls", response_model=list[HallSummary])
async def list_halls(
    current_user_id: CurrentUserIdDep,
    ratings: RatingServiceDep,
) -> list[HallSummary]:
    """List halls best first, showing the caller's own rating where they gave one."""
    with remote_errors("Failed to load dining halls"):
        rankings = await ratings.hall_rankings(current_user_id)
    return [
        HallSummary(
            name=row.dining_hall_name,
            rank=row.rank,
            average_score=row.average_score,
            rating_count=row.rating_count,
            personal=row.personal,
        )
        for row in rankings
    ]


@router.get("/leaderboard", response_model=list[AggregatedRanking])
async def leaderboard(ratings: RatingServiceDep) -> list[AggregatedRanking]:
    """Cross-user ranking of every hall."""
    with remote_errors("Failed to load dining hall ratings"):
        return await ratings.leaderboard()


@router.get("/halls/{hall_name}/menu", response_model=HallMenu)
async def hall_menu(
    hall_name: str,
    menus: MenuServiceDep,
    tracker: TrackerDep,
    meal_type: str | None = Query(None, description="Only return this meal period"),
    since: datetime | None = Query(None, description="Only dishes created at or after this time"),
) -> HallMenu:
    """Return the hall's menu grouped by meal and station.

    Counts read here become the tracker's starting point for vote taps.
    """
    with remote_errors("Failed to load menu"):
        items = await menus.fetch_menu(hall_name, meal_type=meal_type, since=since)
    tracker.reconcile_counters(items)
    return HallMenu(dining_hall_name=hall_name, meals=group_menu(items))


@router.get("/halls/{hall_name}/open", response_model=HallOpenStatus)
async def hall_open(
    hall_name: str,
    menus: MenuServiceDep,
    at: datetime | None = Query(None, description="Wall-clock time to check; defaults to now"),
) -> HallOpenStatus:
    with remote_errors("Failed to load dining hall"):
        hall = await menus.get_hall(hall_name)
    if hall is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dining hall not found")
    checked_at = at or datetime.now()
    return HallOpenStatus(name=hall.name, open=is_open(hall, checked_at), checked_at=checked_at)
