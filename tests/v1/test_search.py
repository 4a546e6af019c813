# mypy: ignore-errors
"""Tests for the global search endpoint."""

from fastapi import status

from threadline.models import PostVisibility
from threadline.services import posts as post_service


def test_search_all_kinds(client, db_session, alice, bob, community, bob_headers) -> None:
    post = post_service.create_post(
        db_session, alice, content="Garden party", visibility=PostVisibility.PUBLIC
    )

    response = client.get("/api/search", params={"q": "garden"}, headers=bob_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["query"] == "garden"
    assert data["type"] == "all"
    assert [row["id"] for row in data["posts"]] == [post.id]
    assert [row["id"] for row in data["communities"]] == [community.id]
    assert data["users"] == []
    assert data["hasNextPage"] is False


def test_search_single_type_pages(client, make_user, alice_headers) -> None:
    oaks = [make_user(f"oak{number}") for number in range(3)]

    first = client.get(
        "/api/search", params={"q": "oak", "type": "users", "limit": 2}, headers=alice_headers
    ).json()
    assert [row["id"] for row in first["users"]] == [oaks[2].id, oaks[1].id]
    assert first["hasNextPage"] is True

    second = client.get(
        "/api/search",
        params={"q": "oak", "type": "users", "limit": 2, "cursor": first["nextCursor"]},
        headers=alice_headers,
    ).json()
    assert [row["id"] for row in second["users"]] == [oaks[0].id]


def test_search_rejects_unknown_type(client, alice_headers) -> None:
    response = client.get("/api/search", params={"q": "x", "type": "tags"}, headers=alice_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_search_requires_authentication(client) -> None:
    assert client.get("/api/search", params={"q": "x"}).status_code == status.HTTP_401_UNAUTHORIZED
