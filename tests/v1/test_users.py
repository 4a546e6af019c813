# mypy: ignore-errors
"""Tests for follow, profile, onboarding and preference endpoints."""

from fastapi import status


def test_follow_twice_conflicts(client, bob, alice_headers) -> None:
    payload = {"targetUserId": bob.id, "action": "follow"}
    first = client.post("/api/user/follow", json=payload, headers=alice_headers)
    assert first.status_code == status.HTTP_200_OK
    assert first.json() == {"success": True, "action": "follow"}

    second = client.post("/api/user/follow", json=payload, headers=alice_headers)
    assert second.status_code == status.HTTP_409_CONFLICT

    followers = client.get(f"/api/user/{bob.id}/followers", headers=alice_headers).json()
    assert [user["username"] for user in followers["users"]] == ["alice"]


def test_follow_self_is_bad_request(client, alice, alice_headers) -> None:
    response = client.post(
        "/api/user/follow",
        json={"targetUserId": alice.id, "action": "follow"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Cannot follow yourself"}


def test_unknown_follow_action(client, bob, alice_headers) -> None:
    response = client.post(
        "/api/user/follow",
        json={"targetUserId": bob.id, "action": "stalk"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_check_username(client, bob, alice_headers) -> None:
    free = client.get(
        "/api/user/check-username", params={"username": "Fresh_Name"}, headers=alice_headers
    )
    assert free.json() == {
        "available": True,
        "username": "fresh_name",
        "message": "Username is available",
    }
    taken = client.get(
        "/api/user/check-username", params={"username": "bob"}, headers=alice_headers
    )
    assert taken.status_code == status.HTTP_409_CONFLICT
    reserved = client.get(
        "/api/user/check-username", params={"username": "ADMIN"}, headers=alice_headers
    )
    assert reserved.status_code == status.HTTP_400_BAD_REQUEST


def test_onboarding_then_profile(client, alice_headers, bob_headers) -> None:
    response = client.post(
        "/api/user/onboarding",
        json={"username": "alice_g", "birthDate": "1991-03-02", "bio": "Gardens"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["user"]["username"] == "alice_g"

    again = client.post(
        "/api/user/onboarding",
        json={"username": "alice_h", "birthDate": "1991-03-02"},
        headers=alice_headers,
    )
    assert again.status_code == status.HTTP_409_CONFLICT

    profile = client.get("/api/user/profile/alice_g", headers=bob_headers).json()
    assert profile["profile"]["bio"] == "Gardens"
    assert profile["isFollowing"] is False
    assert profile["connection"]["status"] == "not_connected"


def test_partial_profile_update(client, alice_headers) -> None:
    client.put("/api/user/profile", json={"bio": "one", "location": "Bergen"}, headers=alice_headers)
    response = client.put("/api/user/profile", json={"name": "Ally"}, headers=alice_headers)
    data = response.json()
    assert data["user"]["name"] == "Ally"
    assert data["profile"]["bio"] == "one"
    assert data["profile"]["location"] == "Bergen"


def test_preferences_round_trip(client, alice_headers) -> None:
    initial = client.get("/api/user/preferences", headers=alice_headers).json()
    assert initial == {"preferences": {}, "version": 0, "theme": None}

    merged = client.put(
        "/api/user/preferences",
        json={"preferences": {"compact": True}},
        headers=alice_headers,
    ).json()
    assert merged["preferences"] == {"compact": True}
    assert merged["version"] == 1

    themed = client.patch("/api/user/preferences", json={"theme": "dark"}, headers=alice_headers)
    assert themed.json()["preferences"] == {"compact": True, "theme": "dark"}
    assert themed.json()["version"] == 2

    bad = client.put(
        "/api/user/preferences",
        json={"preferences": {"theme": "sepia"}},
        headers=alice_headers,
    )
    assert bad.status_code == status.HTTP_400_BAD_REQUEST
    assert bad.json() == {"error": "Invalid theme. Must be light, dark, or system"}
