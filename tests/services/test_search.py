"""Tests for global search."""

from threadline.models import PostVisibility
from threadline.services import posts, search, social
from threadline.services.search import SearchType


def _search(db_session, user, query, kind=SearchType.ALL, cursor=None, limit=20):
    return search.search(db_session, user.id, query, kind=kind, cursor=cursor, limit=limit)


def test_blank_query_returns_nothing(db_session, alice, public_post) -> None:
    results = _search(db_session, alice, "   ")
    assert results.query == ""
    assert results.posts == results.users == results.communities == []
    assert results.has_next_page is False


def test_posts_follow_feed_visibility(db_session, bob, carol) -> None:
    public = posts.create_post(
        db_session, bob, content="Tomato harvest", visibility=PostVisibility.PUBLIC
    )
    followers_only = posts.create_post(db_session, bob, content="Tomato secrets")

    found = _search(db_session, carol, "tomato", SearchType.POSTS)
    assert [post.id for post in found.posts] == [public.id]

    social.toggle_follow(db_session, carol, bob.id, "follow")
    found = _search(db_session, carol, "TOMATO", SearchType.POSTS)
    assert [post.id for post in found.posts] == [followers_only.id, public.id]


def test_private_community_posts_stay_hidden(db_session, alice, bob, private_community) -> None:
    posts.create_post(
        db_session,
        alice,
        content="Members only tomato",
        visibility=PostVisibility.PUBLIC,
        community_id=private_community.id,
    )
    assert _search(db_session, bob, "tomato", SearchType.POSTS).posts == []
    assert len(_search(db_session, alice, "tomato", SearchType.POSTS).posts) == 1


def test_private_communities_are_never_matched(
    db_session, alice, community, private_community
) -> None:
    assert _search(db_session, alice, "circle", SearchType.COMMUNITIES).communities == []
    found = _search(db_session, alice, "garden", SearchType.COMMUNITIES)
    assert [row.id for row in found.communities] == [community.id]


def test_users_match_name_or_username(db_session, alice, bob, make_user) -> None:
    dana = make_user("dana", name="Bobbie Smith")
    found = _search(db_session, alice, "bob", SearchType.USERS)
    assert [user.id for user in found.users] == [dana.id, bob.id]


def test_like_wildcards_match_literally(db_session, alice, bob) -> None:
    assert _search(db_session, alice, "%", SearchType.USERS).users == []
    assert _search(db_session, alice, "_", SearchType.USERS).users == []


def test_single_kind_pages_with_cursor(db_session, alice, make_user) -> None:
    ferns = [make_user(f"fern{number}") for number in range(3)]
    first = _search(db_session, alice, "fern", SearchType.USERS, limit=2)
    assert [user.id for user in first.users] == [ferns[2].id, ferns[1].id]
    assert first.has_next_page is True

    second = _search(
        db_session, alice, "fern", SearchType.USERS, cursor=first.next_cursor, limit=2
    )
    assert [user.id for user in second.users] == [ferns[0].id]
    assert second.has_next_page is False


def test_all_takes_a_share_of_each_kind(db_session, alice, make_user) -> None:
    for number in range(4):
        make_user(f"tulip{number}")
        posts.create_post(
            db_session, alice, content=f"tulip {number}", visibility=PostVisibility.PUBLIC
        )

    results = _search(db_session, alice, "tulip", limit=3)
    assert len(results.users) == 1
    assert len(results.posts) == 1
    assert results.communities == []
    assert results.next_cursor is None
    assert results.has_next_page is False
