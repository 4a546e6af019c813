# mypy: ignore-errors
"""Tests for people and community suggestion endpoints."""

from fastapi import status

from threadline.services import social


def test_people_suggestions(client, db_session, alice, bob, carol, alice_headers) -> None:
    connection = social.request_connection(db_session, alice, bob.id)
    social.respond_connection(db_session, bob, connection.id, "accept")
    connection = social.request_connection(db_session, bob, carol.id)
    social.respond_connection(db_session, carol, connection.id, "accept")

    response = client.get("/api/user/suggestions/people", headers=alice_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    [suggestion] = data["suggestions"]
    assert suggestion["user"]["username"] == "carol"
    assert suggestion["reason"] == "mutual_connections"
    assert suggestion["mutualCount"] == 1
    assert [user["id"] for user in suggestion["mutualConnections"]] == [bob.id]
    assert data["hasMoreSuggestions"] is False
    assert data["message"] is None


def test_community_suggestions(client, alice, community, bob_headers) -> None:
    response = client.get(
        "/api/user/suggestions/communities", params={"limit": 3}, headers=bob_headers
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    [suggestion] = data["communities"]
    assert suggestion["community"]["id"] == community.id
    assert suggestion["reason"] == "popular"
    assert suggestion["memberCount"] == 1
    assert data["message"] == "Connect with others to get personalized community suggestions!"


def test_suggestion_limit_is_bounded(client, alice_headers) -> None:
    response = client.get(
        "/api/user/suggestions/people", params={"limit": 0}, headers=alice_headers
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
