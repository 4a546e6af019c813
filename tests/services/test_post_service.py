"""Tests for posts, threads, reactions and bookmarks."""

import pytest
from sqlalchemy import delete, select

from threadline import errors
from threadline.models import Notification, NotificationType, Post, PostVisibility, Reaction
from threadline.services import communities, social
from threadline.services import posts as post_service


def _feed_ids(db_session, user) -> list[int]:
    return [post.id for post in post_service.feed(db_session, user.id, cursor=None, limit=50).items]


def test_feed_includes_followed_authors_posts(db_session, alice, bob) -> None:
    social.toggle_follow(db_session, alice, bob.id, "follow")
    public = post_service.create_post(
        db_session, bob, content="for everyone", visibility=PostVisibility.PUBLIC
    )
    followers_only = post_service.create_post(db_session, bob, content="for followers")

    assert _feed_ids(db_session, alice) == [followers_only.id, public.id]


def test_feed_hides_followers_only_posts_from_strangers(db_session, alice, bob, carol) -> None:
    own = post_service.create_post(db_session, carol, content="mine")
    post_service.create_post(db_session, bob, content="followers only")
    public = post_service.create_post(
        db_session, alice, content="open", visibility=PostVisibility.PUBLIC
    )

    assert _feed_ids(db_session, carol) == [public.id, own.id]


def test_feed_skips_replies_and_deleted_posts(db_session, alice, public_post) -> None:
    post_service.create_post(db_session, alice, content="a reply", parent_id=public_post.id)
    doomed = post_service.create_post(
        db_session, alice, content="gone soon", visibility=PostVisibility.PUBLIC
    )
    post_service.delete_post(db_session, alice.id, doomed.id)

    assert _feed_ids(db_session, alice) == [public_post.id]


def test_feed_hides_private_community_posts(db_session, alice, bob, private_community) -> None:
    post_service.create_post(
        db_session,
        alice,
        content="members only",
        visibility=PostVisibility.PUBLIC,
        community_id=private_community.id,
    )
    assert _feed_ids(db_session, bob) == []
    assert len(_feed_ids(db_session, alice)) == 1


def test_reply_to_missing_parent(db_session, alice) -> None:
    with pytest.raises(errors.ParentNotFound):
        post_service.create_post(db_session, alice, content="orphan", parent_id=404)


def test_reply_notifies_parent_author_but_not_self(db_session, alice, bob, public_post) -> None:
    post_service.create_post(db_session, alice, content="self reply", parent_id=public_post.id)
    post_service.create_post(db_session, bob, content="nice", parent_id=public_post.id)

    notes = db_session.scalars(select(Notification).where(Notification.user_id == alice.id)).all()
    assert [note.type for note in notes] == [NotificationType.POST_REPLY.value]
    assert notes[0].actor_id == bob.id
    assert notes[0].post_id == public_post.id


def test_reply_inherits_community(db_session, alice, community) -> None:
    root = post_service.create_post(
        db_session, alice, content="root", community_id=community.id
    )
    reply = post_service.create_post(db_session, alice, content="reply", parent_id=root.id)
    assert reply.community_id == community.id


def test_non_member_cannot_post_in_community(db_session, bob, community) -> None:
    with pytest.raises(errors.Forbidden):
        post_service.create_post(db_session, bob, content="hi", community_id=community.id)
    communities.join_community(db_session, bob, community.id)
    post = post_service.create_post(db_session, bob, content="hi", community_id=community.id)
    assert post.community_id == community.id


def test_only_author_may_edit(db_session, alice, bob, public_post) -> None:
    with pytest.raises(errors.Forbidden):
        post_service.edit_post(db_session, bob.id, public_post.id, content="hijacked")
    edited = post_service.edit_post(db_session, alice.id, public_post.id, content="edited")
    assert edited.content == "edited"


def test_soft_delete_keeps_tombstone_for_thread(db_session, alice, bob, public_post) -> None:
    reply = post_service.create_post(db_session, bob, content="reply", parent_id=public_post.id)
    post_service.delete_post(db_session, alice.id, public_post.id)

    tombstone = db_session.get(Post, public_post.id)
    assert tombstone.deleted is True
    assert tombstone.content == ""
    with pytest.raises(errors.NotFound):
        post_service.get_post(db_session, alice.id, public_post.id)

    thread = post_service.load_thread(db_session, alice.id, public_post.id)
    assert thread.children == {public_post.id: [reply.id]}


def test_thread_arena_is_breadth_first(db_session, alice, public_post) -> None:
    first = post_service.create_post(db_session, alice, content="1", parent_id=public_post.id)
    second = post_service.create_post(db_session, alice, content="2", parent_id=public_post.id)
    nested = post_service.create_post(db_session, alice, content="1.1", parent_id=first.id)

    thread = post_service.load_thread(db_session, alice.id, public_post.id)
    assert thread.children == {public_post.id: [first.id, second.id], first.id: [nested.id]}
    assert [post.id for post in thread.walk()] == [public_post.id, first.id, second.id, nested.id]


def test_replies_and_comments_ordering(db_session, alice, public_post) -> None:
    replies = [
        post_service.create_post(db_session, alice, content=str(i), parent_id=public_post.id)
        for i in range(3)
    ]
    newest = post_service.list_replies(db_session, alice.id, public_post.id, cursor=None, limit=10)
    oldest = post_service.list_comments(db_session, alice.id, public_post.id, cursor=None, limit=10)
    assert [post.id for post in newest.items] == [post.id for post in reversed(replies)]
    assert [post.id for post in oldest.items] == [post.id for post in replies]
    assert post_service.reply_counts(db_session, [public_post.id]) == {public_post.id: 3}


def test_followers_only_post_forbidden_to_stranger(db_session, alice, bob) -> None:
    hidden = post_service.create_post(db_session, alice, content="shh")
    with pytest.raises(errors.Forbidden):
        post_service.get_post(db_session, bob.id, hidden.id)
    social.toggle_follow(db_session, bob, alice.id, "follow")
    post, replies = post_service.get_post(db_session, bob.id, hidden.id)
    assert post.id == hidden.id and replies == []


def test_reaction_toggle_twice_restores_state(db_session, alice, bob, public_post) -> None:
    before = post_service.reaction_counts(db_session, public_post.id)

    added = post_service.toggle_reaction(db_session, bob, public_post.id, "like")
    assert (added.action, added.type) == ("added", "LIKE")
    assert added.counts["LIKE"] == 1

    removed = post_service.toggle_reaction(db_session, bob, public_post.id, "LIKE")
    assert removed.action == "removed"
    assert removed.counts == before


def test_reaction_types_are_independent(db_session, bob, public_post) -> None:
    post_service.toggle_reaction(db_session, bob, public_post.id, "LIKE")
    result = post_service.toggle_reaction(db_session, bob, public_post.id, "LOVE")
    assert result.counts["LIKE"] == 1 and result.counts["LOVE"] == 1

    reactions, counts = post_service.list_reactions(db_session, bob.id, public_post.id, "love")
    assert [reaction.type for reaction in reactions] == ["LOVE"]
    assert counts["WOW"] == 0


def test_reaction_removed_concurrently_is_a_conflict(
    db_session, bob, public_post, monkeypatch
) -> None:
    post_service.toggle_reaction(db_session, bob, public_post.id, "LIKE")
    plain_scalar = db_session.scalar

    def scalar_then_delete_elsewhere(statement, *args, **kwargs):
        row = plain_scalar(statement, *args, **kwargs)
        if isinstance(row, Reaction):
            # Another request removes the row after this one has read it.
            db_session.connection().execute(
                delete(Reaction.__table__).where(Reaction.__table__.c.id == row.id)
            )
        return row

    monkeypatch.setattr(db_session, "scalar", scalar_then_delete_elsewhere)
    with pytest.raises(errors.Conflict, match="changed concurrently"):
        post_service.toggle_reaction(db_session, bob, public_post.id, "LIKE")


def test_invalid_reaction_type(db_session, bob, public_post) -> None:
    with pytest.raises(errors.ValidationError):
        post_service.toggle_reaction(db_session, bob, public_post.id, "MEH")


def test_reaction_notifies_author_once(db_session, alice, bob, public_post) -> None:
    post_service.toggle_reaction(db_session, bob, public_post.id, "WOW")
    post_service.toggle_reaction(db_session, alice, public_post.id, "WOW")
    notes = db_session.scalars(select(Notification).where(Notification.user_id == alice.id)).all()
    assert [note.type for note in notes] == [NotificationType.POST_REACTION.value]
    assert notes[0].data == {"type": "WOW"}


def test_bookmarks(db_session, alice, bob, public_post) -> None:
    post_service.add_bookmark(db_session, bob.id, public_post.id)
    with pytest.raises(errors.Conflict, match="Post already bookmarked"):
        post_service.add_bookmark(db_session, bob.id, public_post.id)
    assert post_service.is_bookmarked(db_session, bob.id, public_post.id)

    page = post_service.list_bookmarks(db_session, bob.id, cursor=None, limit=10)
    assert [bookmark.post.id for bookmark in page.items] == [public_post.id]

    post_service.delete_post(db_session, alice.id, public_post.id)
    assert post_service.list_bookmarks(db_session, bob.id, cursor=None, limit=10).items == []

    assert post_service.remove_bookmark(db_session, bob.id, public_post.id) is True
    assert post_service.remove_bookmark(db_session, bob.id, public_post.id) is False


def test_user_posts_respects_visibility(db_session, alice, bob) -> None:
    post_service.create_post(db_session, alice, content="followers")
    public = post_service.create_post(
        db_session, alice, content="public", visibility=PostVisibility.PUBLIC
    )
    page = post_service.user_posts(db_session, bob.id, "Alice", cursor=None, limit=10)
    assert [post.id for post in page.items] == [public.id]
