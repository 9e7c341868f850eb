# tests/v1/test_vote_endpoints.py
"""Tests for dish vote endpoints."""

from fastapi import status

from penne_stage.schemas.vote import VoteState


def test_upvote_returns_local_state(client, auth_headers, tracker, user_id) -> None:
    """An upvote is reflected immediately in the response and the tracker."""
    response = client.post("/api/v1/dishes/5/upvote", headers=auth_headers)

    assert response.status_code == status.HTTP_202_ACCEPTED
    body = response.json()
    assert body["status"] == "accepted"
    assert body["state"] == "upvoted"
    # Counts start from the store's menu row, not from zero.
    assert (body["upvotes"], body["downvotes"]) == (201, 100)
    assert tracker.state_for(5, user_id) is VoteState.UPVOTED


def test_vote_counts_start_from_loaded_menu(client, auth_headers) -> None:
    client.get("/api/v1/halls/Quaker Kitchen/menu")

    response = client.post("/api/v1/dishes/5/downvote", headers=auth_headers)

    body = response.json()
    assert body["state"] == "downvoted"
    assert (body["upvotes"], body["downvotes"]) == (200, 101)


def test_existing_upvote_is_loaded_before_tapping(client, auth_headers, fake_store, user_id) -> None:
    """Tapping upvote on a dish the user already upvoted clears the vote."""
    fake_store.seed("dish_ratings", [
        {"dish_id": 5, "user_id": user_id, "upvote": True, "downvote": False},
    ])

    body = client.post("/api/v1/dishes/5/upvote", headers=auth_headers).json()

    assert body["state"] == "none"
    assert (body["upvotes"], body["downvotes"]) == (199, 100)


def test_ledger_is_read_once_per_user(client, auth_headers, fake_store) -> None:
    client.post("/api/v1/dishes/5/upvote", headers=auth_headers)
    client.post("/api/v1/dishes/6/upvote", headers=auth_headers)

    ledger_reads = [call for call in fake_store.calls_of("select") if call[1] == "dish_ratings"]
    assert len(ledger_reads) == 1


def test_switching_vote_moves_one_count(client, auth_headers) -> None:
    client.post("/api/v1/dishes/6/upvote", headers=auth_headers)

    body = client.post("/api/v1/dishes/6/downvote", headers=auth_headers).json()

    assert body["state"] == "downvoted"
    assert (body["upvotes"], body["downvotes"]) == (180, 41)


def test_second_tap_clears_vote(client, auth_headers) -> None:
    client.post("/api/v1/dishes/7/upvote", headers=auth_headers)

    body = client.post("/api/v1/dishes/7/upvote", headers=auth_headers).json()

    assert body["state"] == "none"
    assert body["upvotes"] == 160


def test_unknown_dish(client, auth_headers) -> None:
    response = client.post("/api/v1/dishes/999/upvote", headers=auth_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Dish not found"


def test_vote_when_ledger_unreadable(client, auth_headers, fake_store, tracker, user_id) -> None:
    fake_store.failures.add("select:dish_ratings")

    response = client.post("/api/v1/dishes/5/upvote", headers=auth_headers)

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["detail"] == "Failed to load dish votes"
    assert tracker.state_for(5, user_id) is VoteState.NONE


def test_anonymous_vote_is_ignored(client, tracker, fake_store) -> None:
    response = client.post("/api/v1/dishes/5/upvote")

    assert response.status_code == status.HTTP_202_ACCEPTED
    assert response.json()["status"] == "ignored"
    assert response.json()["state"] is None
    assert tracker.counter_for(5).upvotes == 0
    assert fake_store.calls == []


def test_invalid_dish_id(client, auth_headers) -> None:
    response = client.post("/api/v1/dishes/not-a-number/upvote", headers=auth_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_my_votes_requires_authentication(client) -> None:
    response = client.get("/api/v1/votes/me")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Not authenticated"


def test_my_votes_reloads_from_store(client, auth_headers, fake_store, tracker, user_id) -> None:
    fake_store.seed("dish_ratings", [
        {"dish_id": 7, "user_id": user_id, "upvote": False, "downvote": True},
    ])

    response = client.get("/api/v1/votes/me", headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == [
        {"dish_id": 7, "user_id": user_id, "upvote": False, "downvote": True}
    ]
    assert tracker.state_for(7, user_id) is VoteState.DOWNVOTED


def test_my_votes_store_failure_is_bad_gateway(client, auth_headers, fake_store) -> None:
    fake_store.failures.add("select:dish_ratings")

    response = client.get("/api/v1/votes/me", headers=auth_headers)

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["detail"] == "Failed to load votes"
