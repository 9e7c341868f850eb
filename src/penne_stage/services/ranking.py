"""Dining hall rating aggregation and ranking."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from penne_stage.schemas.query import Order, QuerySpec
from penne_stage.schemas.rating import AggregatedRanking, Rating
from penne_stage.services.remote import RemoteStoreClient

logger = logging.getLogger(__name__)

RATINGS_RELATION = "dining_hall_ratings"
HALLS_RELATION = "dining_halls"
RATING_CONFLICT_KEY = ("user_id", "dining_hall_name")


@dataclass
class _Tally:
    total: int = 0
    count: int = 0


def aggregate_and_rank(
    ratings: Iterable[Rating],
    known_subjects: Iterable[str] | None = None,
    overrides: Mapping[str, float] | None = None,
) -> list[AggregatedRanking]:
    """Rank halls by mean score, best first.

    Args:
        ratings: Raw rating rows, any number per hall
        known_subjects: Full set of halls; halls without ratings are ranked
            last with a mean of 0 instead of being omitted
        overrides: Per-hall scores shown (and sorted on) in place of the
            cross-user mean, e.g. the requesting user's own ratings

    Returns:
        Rankings ordered by score descending. Ties are broken by hall name
        ascending and every row gets a distinct sequential rank.
    """
    tallies: dict[str, _Tally] = {}
    for rating in ratings:
        tally = tallies.setdefault(rating.dining_hall_name, _Tally())
        tally.total += rating.score
        tally.count += 1

    for name in known_subjects or ():
        tallies.setdefault(name, _Tally())

    overrides = overrides or {}
    rows: list[tuple[str, float, int, bool]] = []
    for name, tally in tallies.items():
        if name in overrides:
            rows.append((name, float(overrides[name]), tally.count, True))
        elif tally.count:
            rows.append((name, tally.total / tally.count, tally.count, False))
        else:
            rows.append((name, 0.0, 0, False))

    # Rated halls before unrated ones, then score descending, then name.
    rows.sort(key=lambda row: (not (row[2] or row[3]), -row[1], row[0]))

    return [
        AggregatedRanking(
            dining_hall_name=name,
            average_score=score,
            rating_count=count,
            rank=index + 1,
            personal=personal,
        )
        for index, (name, score, count, personal) in enumerate(rows)
    ]


def personal_overrides(ratings: Iterable[Rating], user_id: str | None) -> dict[str, float]:
    """Return the given user's own scores keyed by hall."""
    if not user_id:
        return {}
    return {
        rating.dining_hall_name: float(rating.score)
        for rating in ratings
        if rating.user_id == user_id
    }


class RatingService:
    """Reads and writes hall ratings against the hosted store."""

    def __init__(self, store: RemoteStoreClient) -> None:
        self._store = store

    async def fetch_ratings(self) -> list[Rating]:
        rows = await self._store.select(
            QuerySpec(
                relation=RATINGS_RELATION,
                columns=("dining_hall_name", "user_id", "score"),
            )
        )
        return [Rating.model_validate(row) for row in rows]

    async def fetch_hall_names(self) -> list[str]:
        rows = await self._store.select(
            QuerySpec(relation=HALLS_RELATION, columns=("name",), order=(Order("name"),))
        )
        return [row["name"] for row in rows]

    async def leaderboard(self) -> list[AggregatedRanking]:
        """Cross-user ranking of every known hall."""
        ratings = await self.fetch_ratings()
        halls = await self.fetch_hall_names()
        return aggregate_and_rank(ratings, known_subjects=halls)

    async def hall_rankings(self, user_id: str | None) -> list[AggregatedRanking]:
        """Hall listing ranking, preferring the user's own rating where one exists."""
        ratings = await self.fetch_ratings()
        halls = await self.fetch_hall_names()
        overrides = personal_overrides(ratings, user_id)
        others = [rating for rating in ratings if rating.user_id != user_id]
        return aggregate_and_rank(others, known_subjects=halls, overrides=overrides)

    async def submit_rating(
        self,
        dining_hall_name: str,
        user_id: str | None,
        score: int,
    ) -> Rating | None:
        """Upsert the user's rating and wait for the store to confirm it.

        Anonymous callers are ignored and get None back. Store failures
        propagate as ``RemoteStoreError``.
        """
        if not user_id:
            logger.debug("Ignoring rating for %s from anonymous caller", dining_hall_name)
            return None

        rating = Rating(dining_hall_name=dining_hall_name, user_id=user_id, score=score)
        rows = await self._store.upsert(
            RATINGS_RELATION,
            rating.model_dump(),
            on_conflict=RATING_CONFLICT_KEY,
        )
        logger.info("Stored rating %s/10 for %s", rating.score, dining_hall_name)
        if rows:
            return Rating.model_validate(rows[0])
        return rating
