# tests/conftest.py
from __future__ import annotations

import copy
import time
from collections import defaultdict
from collections.abc import Iterator, Mapping, Sequence
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from penne_stage.api.v1 import dependencies
from penne_stage.core.settings import Settings, settings
from penne_stage.main import app as fastapi_app
from penne_stage.schemas.query import Filter, QuerySpec
from penne_stage.services.profiles import ProfileService
from penne_stage.services.remote import RemoteStoreError
from penne_stage.services.votes import DishVoteTracker

_ROW_IDS = count(1000)

HALLS = [
    {
        "name": "1920 Commons",
        "operating_hours": {
            day: {"open": "7:30", "close": "20:00"}
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
        },
    },
    {
        "name": "Hill House",
        "operating_hours": {
            day: {"open": "7:30", "close": "21:00"}
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
        },
    },
    {"name": "Quaker Kitchen", "operating_hours": {}},
]

MENU = [
    {
        "id": 5, "dish": "Mango-glazed chicken thigh", "dish_upvote": 200, "dish_downvote": 100,
        "meal_type": "Dinner", "station": "Grill", "dining_hall_name": "Quaker Kitchen",
        "created_at": "2025-03-01T17:00:00+00:00",
    },
    {
        "id": 6, "dish": "Vegan Tacos", "dish_upvote": 180, "dish_downvote": 40,
        "meal_type": "Dinner", "station": "Grill", "dining_hall_name": "Quaker Kitchen",
        "created_at": "2025-03-01T17:00:00+00:00",
    },
    {
        "id": 7, "dish": "Lentil Soup", "dish_upvote": 160, "dish_downvote": 30,
        "meal_type": "Lunch", "station": "Soups", "dining_hall_name": "Quaker Kitchen",
        "created_at": "2025-02-28T11:00:00+00:00",
    },
    {
        "id": 8, "dish": "Burgers", "dish_upvote": 250, "dish_downvote": 60,
        "meal_type": "Lunch", "station": "Grill", "dining_hall_name": "Hill House",
        "created_at": "2025-03-01T11:00:00+00:00",
    },
]


def _normalise(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _matches(row: Mapping[str, Any], flt: Filter) -> bool:
    actual = row.get(flt.column)
    expected = _normalise(flt.value)
    if flt.op == "eq":
        return actual == expected
    if flt.op == "neq":
        return actual != expected
    if flt.op == "in":
        return actual in [_normalise(item) for item in flt.value]
    if actual is None:
        return False
    if flt.op == "gt":
        return actual > expected
    if flt.op == "gte":
        return actual >= expected
    if flt.op == "lt":
        return actual < expected
    if flt.op == "lte":
        return actual <= expected
    raise NotImplementedError(flt.op)


class FakeRemoteStore:
    """In-memory stand-in for RemoteStoreClient.

    Operations named in ``failures`` (e.g. ``"rpc:increment_dish_upvote"`` or
    ``"upsert:dish_ratings"``) raise RemoteStoreError.
    """

    enabled = True

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.failures: set[str] = set()

    def seed(self, relation: str, rows: Sequence[Mapping[str, Any]]) -> None:
        self.tables[relation].extend(copy.deepcopy(list(rows)))

    def _check(self, operation: str) -> None:
        if operation in self.failures:
            raise RemoteStoreError(f"injected failure for {operation}", status_code=503)

    async def select(self, query: QuerySpec) -> list[dict[str, Any]]:
        self.calls.append(("select", query.relation, query))
        self._check(f"select:{query.relation}")
        rows = [
            row for row in self.tables[query.relation]
            if all(_matches(row, flt) for flt in query.filters)
        ]
        for key in reversed(list(query.order)):
            rows.sort(key=lambda row: row.get(key.column), reverse=key.descending)
        if query.limit is not None:
            rows = rows[: query.limit]
        if tuple(query.columns) != ("*",):
            rows = [{column: row.get(column) for column in query.columns} for row in rows]
        return copy.deepcopy(rows)

    async def upsert(
        self,
        relation: str,
        record: Mapping[str, Any],
        *,
        on_conflict: Sequence[str],
    ) -> list[dict[str, Any]]:
        self.calls.append(("upsert", relation, dict(record)))
        self._check(f"upsert:{relation}")
        for row in self.tables[relation]:
            if all(row.get(key) == record.get(key) for key in on_conflict):
                row.update(record)
                return [dict(row)]
        self.tables[relation].append(dict(record))
        return [dict(record)]

    async def insert(self, relation: str, record: Mapping[str, Any]) -> list[dict[str, Any]]:
        self.calls.append(("insert", relation, dict(record)))
        self._check(f"insert:{relation}")
        row = {"id": next(_ROW_IDS), "created_at": "2025-03-01T12:00:00+00:00", **record}
        self.tables[relation].append(row)
        return [dict(row)]

    async def rpc(self, function: str, arguments: Mapping[str, Any] | None = None) -> Any:
        arguments = dict(arguments or {})
        self.calls.append(("rpc", function, arguments))
        self._check(f"rpc:{function}")
        action, _, column = function.partition("_dish_")
        for row in self.tables["menus"]:
            if row["id"] == arguments.get("dish_id"):
                field = f"dish_{column}"
                row[field] += 1 if action == "increment" else -1
                return None
        return None

    async def download(self, bucket: str, path: str) -> tuple[bytes, str]:
        self.calls.append(("download", bucket, path))
        self._check(f"download:{bucket}")
        try:
            return self.objects[(bucket, path)]
        except KeyError:
            raise RemoteStoreError("Object not found", status_code=404) from None

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "enabled": True}

    async def close(self) -> None:
        return None

    def calls_of(self, kind: str) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture()
def fake_store() -> FakeRemoteStore:
    store = FakeRemoteStore()
    store.seed("dining_halls", HALLS)
    store.seed("menus", MENU)
    return store


@pytest.fixture()
def tracker(fake_store: FakeRemoteStore) -> DishVoteTracker:
    return DishVoteTracker(fake_store, sync_policy="optimistic", serialize_writes=True)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    fake_store: FakeRemoteStore,
    tracker: DishVoteTracker,
) -> Iterator[None]:
    profile_service = ProfileService(fake_store)
    app.dependency_overrides[dependencies.get_store] = lambda: fake_store
    app.dependency_overrides[dependencies.get_tracker] = lambda: tracker
    app.dependency_overrides[dependencies.get_profiles] = lambda: profile_service
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return settings


def make_access_token(user_id: str, *, secret: str | None = None, audience: str = "authenticated") -> str:
    now = int(time.time())
    payload = {
        "sub": user_id,
        "aud": audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + 3600,
    }
    return jwt.encode(payload, secret or settings.supabase_jwt_secret, algorithm="HS256")


@pytest.fixture()
def user_id() -> str:
    return "8d0f6c3e-2b1a-4f5e-9c7d-1a2b3c4d5e6f"


@pytest.fixture()
def auth_headers(user_id: str) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return {"Authorization": f"Bearer {make_access_token(user_id)}"}
