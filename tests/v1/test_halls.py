# tests/v1/test_halls.py
"""Tests for hall, menu and leaderboard endpoints."""

from fastapi import status

from tests.conftest import make_access_token

RATINGS = [
    {"dining_hall_name": "Hill House", "user_id": "u2", "score": 9},
    {"dining_hall_name": "Hill House", "user_id": "u3", "score": 5},
    {"dining_hall_name": "1920 Commons", "user_id": "u2", "score": 8},
]


def test_leaderboard_ranks_every_hall(client, fake_store) -> None:
    fake_store.seed("dining_hall_ratings", RATINGS)

    response = client.get("/api/v1/leaderboard")

    assert response.status_code == status.HTTP_200_OK
    rows = response.json()
    assert [(row["dining_hall_name"], row["rank"]) for row in rows] == [
        ("1920 Commons", 1),
        ("Hill House", 2),
        ("Quaker Kitchen", 3),
    ]
    assert rows[1]["average_score"] == 7.0
    assert rows[2]["average_score"] == 0
    assert rows[2]["rating_count"] == 0


def test_halls_show_callers_own_rating(client, fake_store) -> None:
    fake_store.seed("dining_hall_ratings", [
        *RATINGS,
        {"dining_hall_name": "Quaker Kitchen", "user_id": "me", "score": 10},
    ])
    headers = {"Authorization": f"Bearer {make_access_token('me')}"}

    rows = client.get("/api/v1/halls", headers=headers).json()

    assert rows[0] == {
        "name": "Quaker Kitchen",
        "rank": 1,
        "average_score": 10.0,
        "rating_count": 0,
        "personal": True,
    }
    assert [row["rank"] for row in rows] == [1, 2, 3]


def test_halls_anonymous_uses_shared_means(client, fake_store) -> None:
    fake_store.seed("dining_hall_ratings", RATINGS)

    rows = client.get("/api/v1/halls").json()

    assert [row["name"] for row in rows] == ["1920 Commons", "Hill House", "Quaker Kitchen"]
    assert not any(row["personal"] for row in rows)


def test_leaderboard_store_failure(client, fake_store) -> None:
    fake_store.failures.add("select:dining_hall_ratings")

    response = client.get("/api/v1/leaderboard")

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["detail"] == "Failed to load dining hall ratings"


def test_hall_menu_grouped_by_meal_and_station(client) -> None:
    response = client.get("/api/v1/halls/Quaker Kitchen/menu")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["dining_hall_name"] == "Quaker Kitchen"
    assert set(body["meals"]) == {"Dinner", "Lunch"}
    assert [item["id"] for item in body["meals"]["Dinner"]["Grill"]] == [5, 6]
    assert body["meals"]["Lunch"]["Soups"][0]["dish"] == "Lentil Soup"


def test_hall_menu_meal_filter(client) -> None:
    body = client.get("/api/v1/halls/Quaker Kitchen/menu", params={"meal_type": "Lunch"}).json()
    assert list(body["meals"]) == ["Lunch"]


def test_hall_open_status(client) -> None:
    open_response = client.get(
        "/api/v1/halls/Hill House/open", params={"at": "2025-03-03T20:30:00"}
    )
    closed_response = client.get(
        "/api/v1/halls/Hill House/open", params={"at": "2025-03-08T12:00:00"}
    )

    assert open_response.json()["open"] is True
    assert closed_response.json()["open"] is False


def test_hall_open_unknown_hall(client) -> None:
    response = client.get("/api/v1/halls/Nowhere/open")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Dining hall not found"
