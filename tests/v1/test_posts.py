# mypy: ignore-errors
"""Tests for post, thread and reaction endpoints."""

from fastapi import status


def _create(client, headers, **payload):
    response = client.post("/api/posts", json={"content": "hello", **payload}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def test_create_and_fetch_post(client, alice_headers) -> None:
    post = _create(client, alice_headers, visibility="public", mediaAttachments=["a.png"])
    assert post["mediaAttachments"] == ["a.png"]
    assert post["parentId"] is None

    response = client.get(f"/api/posts/{post['id']}", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["post"]["id"] == post["id"]
    assert data["replies"] == []


def test_too_many_attachments_rejected(client, alice_headers) -> None:
    response = client.post(
        "/api/posts",
        json={"content": "pics", "mediaAttachments": ["1", "2", "3", "4", "5"]},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_reply_to_missing_parent_is_404(client, alice_headers) -> None:
    response = client.post(
        "/api/posts", json={"content": "hi", "parentId": 12345}, headers=alice_headers
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Parent post not found"}


def test_feed_pagination_and_limits(client, alice_headers) -> None:
    ids = [_create(client, alice_headers)["id"] for _ in range(3)]

    first = client.get("/api/posts", params={"limit": 2}, headers=alice_headers).json()
    assert [post["id"] for post in first["posts"]] == ids[::-1][:2]
    assert first["hasNextPage"] is True

    second = client.get(
        "/api/posts", params={"limit": 2, "cursor": first["nextCursor"]}, headers=alice_headers
    ).json()
    assert [post["id"] for post in second["posts"]] == [ids[0]]
    assert second["hasNextPage"] is False
    assert second["nextCursor"] is None

    huge = client.get("/api/posts", params={"limit": 1000}, headers=alice_headers)
    assert huge.status_code == status.HTTP_200_OK
    zero = client.get("/api/posts", params={"limit": 0}, headers=alice_headers)
    assert zero.status_code == status.HTTP_400_BAD_REQUEST


def test_feed_visibility_between_users(client, alice, alice_headers, bob_headers) -> None:
    hidden = _create(client, alice_headers)
    public = _create(client, alice_headers, visibility="public")

    feed = client.get("/api/posts", headers=bob_headers).json()
    assert [post["id"] for post in feed["posts"]] == [public["id"]]

    client.post(
        "/api/user/follow", json={"targetUserId": alice.id, "action": "follow"}, headers=bob_headers
    )
    feed = client.get("/api/posts", headers=bob_headers).json()
    assert [post["id"] for post in feed["posts"]] == [public["id"], hidden["id"]]


def test_followers_only_post_is_forbidden(client, alice_headers, bob_headers) -> None:
    hidden = _create(client, alice_headers)
    response = client.get(f"/api/posts/{hidden['id']}", headers=bob_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_edit_and_delete_are_author_only(client, alice_headers, bob_headers) -> None:
    post = _create(client, alice_headers, visibility="public")

    denied = client.patch(
        f"/api/posts/{post['id']}", json={"content": "mine now"}, headers=bob_headers
    )
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert client.delete(f"/api/posts/{post['id']}", headers=bob_headers).status_code == 403

    edited = client.patch(
        f"/api/posts/{post['id']}", json={"content": "updated"}, headers=alice_headers
    )
    assert edited.json()["content"] == "updated"

    deleted = client.delete(f"/api/posts/{post['id']}", headers=alice_headers)
    assert deleted.status_code == status.HTTP_204_NO_CONTENT
    gone = client.get(f"/api/posts/{post['id']}", headers=alice_headers)
    assert gone.status_code == status.HTTP_404_NOT_FOUND


def test_thread_replies_and_comments(client, alice_headers, bob_headers) -> None:
    root = _create(client, alice_headers, visibility="public")
    first = _create(client, bob_headers, parentId=root["id"])
    second = _create(client, alice_headers, parentId=root["id"])
    nested = _create(client, alice_headers, parentId=first["id"])

    thread = client.get(f"/api/posts/{root['id']}/thread", headers=bob_headers).json()
    assert thread["rootId"] == root["id"]
    assert [post["id"] for post in thread["posts"]] == [
        root["id"], first["id"], second["id"], nested["id"]
    ]
    assert thread["children"][str(root["id"])] == [first["id"], second["id"]]

    replies = client.get(
        f"/api/posts/{root['id']}/replies", params={"limit": 1}, headers=bob_headers
    ).json()
    assert [post["id"] for post in replies["replies"]] == [second["id"]]
    assert replies["hasMore"] is True

    comments = client.get(f"/api/posts/{root['id']}/comments", headers=bob_headers).json()
    assert [post["id"] for post in comments["comments"]] == [first["id"], second["id"]]
    assert comments["comments"][0]["replyCount"] == 1

    nested_replies = client.get(
        f"/api/posts/{root['id']}/replies",
        params={"parentId": first["id"]},
        headers=bob_headers,
    ).json()
    assert [post["id"] for post in nested_replies["replies"]] == [nested["id"]]


def test_nested_replies_must_belong_to_the_thread(
    client, db_session, alice, carol, private_community, headers_for
) -> None:
    from threadline.models import PostVisibility
    from threadline.services import posts as post_service

    secret = post_service.create_post(
        db_session,
        alice,
        content="members only",
        visibility=PostVisibility.PUBLIC,
        community_id=private_community.id,
    )
    post_service.create_post(db_session, alice, content="secret reply", parent_id=secret.id)
    carol_headers = headers_for(carol)
    own = _create(client, carol_headers, visibility="public")

    direct = client.get(f"/api/posts/{secret.id}/replies", headers=carol_headers)
    assert direct.status_code == status.HTTP_403_FORBIDDEN

    foreign_parent = client.get(
        f"/api/posts/{own['id']}/replies",
        params={"parentId": secret.id},
        headers=carol_headers,
    )
    assert foreign_parent.status_code == status.HTTP_404_NOT_FOUND
    assert foreign_parent.json() == {"error": "Post not found"}


def test_reaction_toggle_round_trip(client, alice_headers, bob_headers) -> None:
    post = _create(client, alice_headers, visibility="public")
    url = f"/api/posts/{post['id']}/reactions"

    added = client.post(url, json={"type": "LIKE"}, headers=bob_headers).json()
    assert added["action"] == "added"
    assert added["counts"]["LIKE"] == 1

    listed = client.get(url, headers=alice_headers).json()
    assert [reaction["type"] for reaction in listed["reactions"]] == ["LIKE"]

    removed = client.post(url, json={"type": "LIKE"}, headers=bob_headers).json()
    assert removed["action"] == "removed"
    assert removed["counts"]["LIKE"] == 0

    invalid = client.post(url, json={"type": "MEH"}, headers=bob_headers)
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST


def test_user_posts_listing(client, alice_headers, bob_headers) -> None:
    public = _create(client, alice_headers, visibility="public")
    _create(client, alice_headers)
    response = client.get("/api/posts/user/alice", headers=bob_headers)
    assert [post["id"] for post in response.json()["posts"]] == [public["id"]]
    assert client.get("/api/posts/user/nobody", headers=bob_headers).status_code == 404
