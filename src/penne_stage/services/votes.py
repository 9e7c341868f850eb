"""Dish upvote/downvote tracking with optimistic local state.

A tap updates the local counter and the caller's vote state immediately, then
a background task pushes the change to the hosted store: one atomic counter
RPC per changed counter followed by an upsert of the caller's ledger row.
The store stays the source of truth; ``load_user_votes`` and
``reconcile_counters`` overwrite local state with what it holds.

Counter RPCs are derived from the state the remote counters already reflect
for a (dish, user) pair, not from the optimistic local state, so a failed
sync is not compounded by the ones queued behind it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

from penne_stage.core.settings import settings
from penne_stage.schemas.menu import MenuItem
from penne_stage.schemas.query import QuerySpec
from penne_stage.schemas.vote import DishVoteCounter, UserDishVote, VoteDirection, VoteState
from penne_stage.services.menus import MENUS_RELATION
from penne_stage.services.remote import RemoteStoreClient, RemoteStoreError

logger = logging.getLogger(__name__)

LEDGER_RELATION: Final[str] = "dish_ratings"
LEDGER_CONFLICT_KEY: Final[tuple[str, str]] = ("dish_id", "user_id")

VoteKey = tuple[int, str]


class SyncPolicy(str, Enum):
    """What to do with optimistic local state when the remote write fails."""

    OPTIMISTIC = "optimistic"  # keep it until the next full reload
    ROLLBACK = "rollback"  # revert the failed toggle locally


@dataclass(frozen=True)
class VoteTransition:
    """Result of one tap: the new state and the counter deltas it implies."""

    state: VoteState
    upvote_delta: int = 0
    downvote_delta: int = 0


_TRANSITIONS: Final[dict[tuple[VoteState, VoteDirection], VoteTransition]] = {
    (VoteState.NONE, VoteDirection.UP): VoteTransition(VoteState.UPVOTED, upvote_delta=1),
    (VoteState.NONE, VoteDirection.DOWN): VoteTransition(VoteState.DOWNVOTED, downvote_delta=1),
    (VoteState.UPVOTED, VoteDirection.UP): VoteTransition(VoteState.NONE, upvote_delta=-1),
    (VoteState.UPVOTED, VoteDirection.DOWN): VoteTransition(
        VoteState.DOWNVOTED, upvote_delta=-1, downvote_delta=1
    ),
    (VoteState.DOWNVOTED, VoteDirection.UP): VoteTransition(
        VoteState.UPVOTED, upvote_delta=1, downvote_delta=-1
    ),
    (VoteState.DOWNVOTED, VoteDirection.DOWN): VoteTransition(VoteState.NONE, downvote_delta=-1),
}


def apply_vote(current: VoteState, direction: VoteDirection) -> VoteTransition:
    """Return the transition for tapping ``direction`` while in ``current``."""
    return _TRANSITIONS[(current, direction)]


def transition_between(current: VoteState, target: VoteState) -> VoteTransition:
    """Counter deltas that move one user's contribution from ``current`` to ``target``."""
    return VoteTransition(
        target,
        upvote_delta=int(target is VoteState.UPVOTED) - int(current is VoteState.UPVOTED),
        downvote_delta=int(target is VoteState.DOWNVOTED) - int(current is VoteState.DOWNVOTED),
    )


def counter_rpcs(transition: VoteTransition) -> list[str]:
    """Names of the counter procedures to call, decrements first."""
    calls: list[tuple[int, str]] = []
    for delta, column in (
        (transition.upvote_delta, "upvote"),
        (transition.downvote_delta, "downvote"),
    ):
        if delta > 0:
            calls.append((1, f"increment_dish_{column}"))
        elif delta < 0:
            calls.append((0, f"decrement_dish_{column}"))
    return [name for _, name in sorted(calls, key=lambda call: call[0])]


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class DishVoteTracker:
    """Per-(dish, user) vote state with optimistic updates.

    Toggle methods must be called from inside a running event loop; they
    return the scheduled sync task so callers can keep or await it. Callers
    that did not load the user's votes or the dish counter themselves should
    await ``prepare`` before tapping.
    """

    def __init__(
        self,
        store: RemoteStoreClient,
        *,
        sync_policy: SyncPolicy | str | None = None,
        serialize_writes: bool | None = None,
    ) -> None:
        self._store = store
        self.sync_policy = SyncPolicy(sync_policy or settings.vote_sync_policy)
        self.serialize_writes = (
            settings.vote_serialize_writes if serialize_writes is None else serialize_writes
        )
        self._states: dict[VoteKey, VoteState] = {}
        self._counters: dict[int, DishVoteCounter] = {}
        # Vote each pair contributes to the store's counters, as far as this process knows.
        self._remote_counted: dict[VoteKey, VoteState] = {}
        self._taps: dict[VoteKey, int] = {}
        self._locks: dict[VoteKey, _KeyLock] = {}
        self._loaded_users: set[str] = set()
        self._user_loads: dict[str, asyncio.Task[dict[int, UserDishVote]]] = {}
        self._pending: set[asyncio.Task[bool]] = set()

    # --- Local state ----------------------------------------------------------------
    def state_for(self, dish_id: int, user_id: str) -> VoteState:
        return self._states.get((dish_id, user_id), VoteState.NONE)

    def counter_for(self, dish_id: int) -> DishVoteCounter:
        counter = self._counters.get(dish_id)
        if counter is None:
            counter = DishVoteCounter(dish_id=dish_id)
            self._counters[dish_id] = counter
        return counter

    def reconcile_counters(self, items: Iterable[MenuItem]) -> None:
        """Overwrite local counters with the counts read from menu rows."""
        for item in items:
            self._counters[item.id] = DishVoteCounter(
                dish_id=item.id,
                upvotes=max(0, item.dish_upvote),
                downvotes=max(0, item.dish_downvote),
            )

    def _adjust_counter(self, dish_id: int, upvote_delta: int, downvote_delta: int) -> tuple[int, int]:
        # Returns the deltas actually applied; counters never go below zero.
        counter = self.counter_for(dish_id)
        upvotes = max(0, counter.upvotes + upvote_delta)
        downvotes = max(0, counter.downvotes + downvote_delta)
        applied = (upvotes - counter.upvotes, downvotes - counter.downvotes)
        self._counters[dish_id] = DishVoteCounter(
            dish_id=dish_id, upvotes=upvotes, downvotes=downvotes
        )
        return applied

    # --- Loading --------------------------------------------------------------------
    async def prepare(self, dish_id: int, user_id: str | None) -> bool:
        """Load what a tap on ``dish_id`` needs before it is applied.

        Fetches the user's ledger once per process and the dish counter when
        none is held locally. Returns False when the dish does not exist.

        Raises:
            RemoteStoreError: If either read fails
        """
        if user_id:
            await self.ensure_user_loaded(user_id)
        if dish_id in self._counters:
            return True
        return await self.load_counter(dish_id) is not None

    async def ensure_user_loaded(self, user_id: str) -> None:
        """Run ``load_user_votes`` unless it already succeeded for ``user_id``."""
        if user_id in self._loaded_users:
            return
        load = self._user_loads.get(user_id)
        if load is None:
            load = asyncio.get_running_loop().create_task(self.load_user_votes(user_id))
            self._user_loads[user_id] = load

            def _forget(done: asyncio.Task[dict[int, UserDishVote]]) -> None:
                if self._user_loads.get(user_id) is done:
                    del self._user_loads[user_id]

            load.add_done_callback(_forget)
        # Concurrent first taps by one user share a single read.
        await asyncio.shield(load)

    async def load_counter(self, dish_id: int) -> DishVoteCounter | None:
        """Read the dish's counts from ``menus``; None if there is no such dish."""
        rows = await self._store.select(
            QuerySpec(
                relation=MENUS_RELATION,
                columns=("id", "dish_upvote", "dish_downvote"),
                limit=1,
            ).where("id", "eq", dish_id)
        )
        if not rows:
            return None
        # A tap that landed while the read was in flight already holds a counter.
        if dish_id not in self._counters:
            self._counters[dish_id] = DishVoteCounter(
                dish_id=dish_id,
                upvotes=max(0, rows[0].get("dish_upvote") or 0),
                downvotes=max(0, rows[0].get("dish_downvote") or 0),
            )
        return self._counters[dish_id]

    # --- Toggles --------------------------------------------------------------------
    def toggle_upvote(self, dish_id: int, user_id: str | None) -> asyncio.Task[bool] | None:
        """Tap "upvote"; anonymous callers are ignored."""
        return self._toggle(dish_id, user_id, VoteDirection.UP)

    def toggle_downvote(self, dish_id: int, user_id: str | None) -> asyncio.Task[bool] | None:
        """Tap "downvote"; anonymous callers are ignored."""
        return self._toggle(dish_id, user_id, VoteDirection.DOWN)

    def _toggle(
        self,
        dish_id: int,
        user_id: str | None,
        direction: VoteDirection,
    ) -> asyncio.Task[bool] | None:
        if not user_id:
            return None

        key = (dish_id, user_id)
        previous = self.state_for(dish_id, user_id)
        transition = apply_vote(previous, direction)

        # Local effect happens before any await so it is never observed half-done.
        self._states[key] = transition.state
        applied = self._adjust_counter(dish_id, transition.upvote_delta, transition.downvote_delta)
        self._remote_counted.setdefault(key, previous)
        tap = self._taps[key] = self._taps.get(key, 0) + 1

        task = asyncio.get_running_loop().create_task(
            self._sync(key, tap, previous, transition, applied)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @contextlib.asynccontextmanager
    async def _write_guard(self, key: VoteKey) -> AsyncIterator[None]:
        if not self.serialize_writes:
            yield
            return
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if not entry.users:
                del self._locks[key]

    async def _sync(
        self,
        key: VoteKey,
        tap: int,
        previous: VoteState,
        transition: VoteTransition,
        applied: tuple[int, int],
    ) -> bool:
        dish_id, user_id = key
        async with self._write_guard(key):
            try:
                await self._push(key, transition.state)
            except RemoteStoreError as exc:
                logger.warning(
                    "Failed to sync vote for dish %s (user %s, %s -> %s): %s",
                    dish_id,
                    user_id,
                    previous.value,
                    transition.state.value,
                    exc,
                )
                if self.sync_policy is SyncPolicy.ROLLBACK:
                    self._rollback(key, tap, previous, applied)
                return False

        logger.debug("Synced vote for dish %s: %s", dish_id, transition.state.value)
        return True

    async def _push(self, key: VoteKey, target: VoteState) -> None:
        dish_id, user_id = key
        counted = self._remote_counted.get(key, VoteState.NONE)
        for function in counter_rpcs(transition_between(counted, target)):
            await self._store.rpc(function, {"dish_id": dish_id})
            # Decrements run first, so after one the counters hold no vote from this user.
            counted = VoteState.NONE if function.startswith("decrement") else target
            self._remote_counted[key] = counted

        ledger = UserDishVote.from_state(dish_id, user_id, target)
        await self._store.upsert(
            LEDGER_RELATION,
            ledger.model_dump(),
            on_conflict=LEDGER_CONFLICT_KEY,
        )

    def _rollback(
        self,
        key: VoteKey,
        tap: int,
        previous: VoteState,
        applied: tuple[int, int],
    ) -> None:
        if self._taps.get(key) != tap:
            logger.info("Skipping rollback for dish %s: superseded by a later tap", key[0])
            return
        self._states[key] = previous
        self._adjust_counter(key[0], -applied[0], -applied[1])

    def pending(self) -> int:
        """Number of remote syncs still in flight."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight remote sync to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # --- Reconciliation -------------------------------------------------------------
    async def load_user_votes(self, user_id: str) -> dict[int, UserDishVote]:
        """Fetch the user's ledger and replace local state with it.

        Dishes without a ledger row are reset to ``VoteState.NONE``.
        """
        rows = await self._store.select(
            QuerySpec(relation=LEDGER_RELATION).where("user_id", "eq", user_id)
        )

        votes: dict[int, UserDishVote] = {}
        for row in rows:
            try:
                vote = UserDishVote.model_validate(row)
            except ValueError as exc:
                logger.warning("Ignoring invalid ledger row %r: %s", row, exc)
                continue
            votes[vote.dish_id] = vote

        for key in [key for key in self._states if key[1] == user_id]:
            del self._states[key]
        for dish_id, vote in votes.items():
            if vote.state is not VoteState.NONE:
                self._states[(dish_id, user_id)] = vote.state
            # Counter RPCs already made by this process know better than the ledger.
            self._remote_counted.setdefault((dish_id, user_id), vote.state)

        self._loaded_users.add(user_id)
        return votes


class _VoteTrackerSingleton:
    """Singleton wrapper for DishVoteTracker."""

    _instance: DishVoteTracker | None = None

    @classmethod
    def get_instance(cls, store: RemoteStoreClient) -> DishVoteTracker:
        if cls._instance is None:
            cls._instance = DishVoteTracker(store)
        return cls._instance


def get_vote_tracker(store: RemoteStoreClient) -> DishVoteTracker:
    """Return the process-wide tracker bound to ``store``."""
    return _VoteTrackerSingleton.get_instance(store)
