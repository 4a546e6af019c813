# mypy: ignore-errors
"""Tests for bookmark endpoints."""

from fastapi import status


def test_bookmark_lifecycle(client, public_post, bob_headers) -> None:
    payload = {"postId": public_post.id}
    added = client.post("/api/bookmarks", json=payload, headers=bob_headers)
    assert added.status_code == status.HTTP_201_CREATED

    duplicate = client.post("/api/bookmarks", json=payload, headers=bob_headers)
    assert duplicate.status_code == status.HTTP_409_CONFLICT
    assert duplicate.json() == {"error": "Post already bookmarked"}

    check = client.get(
        "/api/bookmarks/check", params={"postId": public_post.id}, headers=bob_headers
    )
    assert check.json() == {"bookmarked": True}

    listing = client.get("/api/bookmarks", headers=bob_headers).json()
    assert [row["post"]["id"] for row in listing["bookmarks"]] == [public_post.id]

    removed = client.request("DELETE", "/api/bookmarks", json=payload, headers=bob_headers)
    assert removed.json()["message"] == "Bookmark removed"
    check = client.get(
        "/api/bookmarks/check", params={"postId": public_post.id}, headers=bob_headers
    )
    assert check.json() == {"bookmarked": False}


def test_cannot_bookmark_hidden_post(client, alice, bob_headers, db_session) -> None:
    from threadline.services import posts as post_service

    hidden = post_service.create_post(db_session, alice, content="followers only")
    response = client.post("/api/bookmarks", json={"postId": hidden.id}, headers=bob_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
