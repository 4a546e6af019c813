"""Post, thread, reaction and bookmark operations."""
from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import Select, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from threadline import errors
from threadline.models import (
    Bookmark,
    Community,
    CommunityMember,
    Follow,
    NotificationType,
    Post,
    PostVisibility,
    Reaction,
    ReactionType,
    User,
)
from threadline.services import notifications
from threadline.services.pagination import Page, paginate
from threadline.services.policy import (
    CommunityAccess,
    Operation,
    PostAccess,
    authorize,
    feed_visibility_clause,
    readable_community_clause,
)

logger = logging.getLogger(__name__)

__all__ = [
    "create_post",
    "edit_post",
    "delete_post",
    "feed",
    "get_post",
    "list_replies",
    "list_comments",
    "load_thread",
    "user_posts",
    "community_posts",
    "reply_counts",
    "toggle_reaction",
    "list_reactions",
    "list_bookmarks",
    "add_bookmark",
    "remove_bookmark",
    "is_bookmarked",
]


def _get_post_or_404(db: Session, post_id: int, *, include_deleted: bool = False) -> Post:
    stmt = select(Post).options(joinedload(Post.author)).where(Post.id == post_id)
    if not include_deleted:
        stmt = stmt.where(Post.deleted.is_(False))
    post = db.scalar(stmt)
    if post is None:
        raise errors.NotFound("Post not found")
    return post


def _membership(db: Session, user_id: int, community_id: int) -> CommunityMember | None:
    return db.scalar(
        select(CommunityMember).where(
            CommunityMember.user_id == user_id,
            CommunityMember.community_id == community_id,
        )
    )


def _follows(db: Session, follower_id: int, following_id: int) -> bool:
    stmt = select(Follow.id).where(
        Follow.follower_id == follower_id, Follow.following_id == following_id
    )
    return db.scalar(stmt) is not None


def ensure_can_view(db: Session, principal_id: int, post: Post) -> None:
    """Raise ``Forbidden`` unless ``principal_id`` may read ``post``."""
    community = membership = None
    if post.community_id is not None:
        community = db.get(Community, post.community_id)
        membership = _membership(db, principal_id, post.community_id)
    follows_author = post.author_id != principal_id and _follows(
        db, principal_id, post.author_id
    )
    access = PostAccess(
        post=post,
        follows_author=follows_author,
        community=community,
        membership=membership,
    )
    authorize(principal_id, Operation.VIEW_POST, access).enforce()


def _visible_top_level(principal_id: int) -> Select[tuple[Post]]:
    return (
        select(Post)
        .options(joinedload(Post.author))
        .where(
            Post.parent_id.is_(None),
            Post.deleted.is_(False),
            feed_visibility_clause(principal_id),
            readable_community_clause(principal_id),
        )
    )


def create_post(
    db: Session,
    author: User,
    *,
    content: str,
    parent_id: int | None = None,
    media: Sequence[str] = (),
    visibility: PostVisibility = PostVisibility.FOLLOWERS,
    community_id: int | None = None,
) -> Post:
    """Create a top-level post or a reply.

    Raises:
        ParentNotFound: ``parent_id`` does not name a live post.
        NotFound: ``community_id`` does not name a community.
        Forbidden: The author may not see the parent or post in the community.
    """
    parent: Post | None = None
    if parent_id is not None:
        parent = db.scalar(select(Post).where(Post.id == parent_id, Post.deleted.is_(False)))
        if parent is None:
            raise errors.ParentNotFound()
        ensure_can_view(db, author.id, parent)
        # Replies live in the same community as the thread they belong to.
        community_id = parent.community_id

    if community_id is not None:
        community = db.get(Community, community_id)
        if community is None:
            raise errors.NotFound("Community not found")
        access = CommunityAccess(community, _membership(db, author.id, community_id))
        authorize(author.id, Operation.POST_IN_COMMUNITY, access).enforce()

    post = Post(
        author_id=author.id,
        parent_id=parent_id,
        community_id=community_id,
        content=content,
        media_attachments=list(media),
        visibility=visibility.value,
    )
    db.add(post)
    db.flush()

    if parent is not None:
        notifications.notify(
            db,
            actor_id=author.id,
            recipient_id=parent.author_id,
            kind=NotificationType.POST_REPLY,
            message=f"{author.display_name} replied to your post",
            post_id=parent.id,
        )

    db.commit()
    db.refresh(post)
    logger.info("User %s created post %s (parent=%s)", author.id, post.id, parent_id)
    return post


def edit_post(
    db: Session,
    editor_id: int,
    post_id: int,
    *,
    content: str | None = None,
    media: Sequence[str] | None = None,
    visibility: PostVisibility | None = None,
) -> Post:
    """Apply a partial edit. Ownership is checked against the author id."""
    post = _get_post_or_404(db, post_id)
    authorize(editor_id, Operation.EDIT_POST, post).enforce()

    if content is not None:
        post.content = content
    if media is not None:
        post.media_attachments = list(media)
    if visibility is not None:
        post.visibility = visibility.value

    db.commit()
    db.refresh(post)
    logger.info("User %s edited post %s", editor_id, post_id)
    return post


def delete_post(db: Session, actor_id: int, post_id: int) -> None:
    """Soft-delete a post.

    The row stays as a tombstone with its content blanked; replies keep
    pointing at it so the thread structure is preserved.
    """
    post = _get_post_or_404(db, post_id)
    authorize(actor_id, Operation.DELETE_POST, post).enforce()

    post.deleted = True
    post.content = ""
    post.media_attachments = []
    db.commit()
    logger.info("User %s deleted post %s", actor_id, post_id)


def feed(db: Session, principal_id: int, *, cursor: int | None, limit: int) -> Page[Post]:
    """Top-level posts visible to ``principal_id``, newest first."""
    return paginate(db, _visible_top_level(principal_id), Post.id, cursor=cursor, limit=limit)


def get_post(db: Session, principal_id: int, post_id: int) -> tuple[Post, list[Post]]:
    """Return a post and its live direct replies, newest first."""
    post = _get_post_or_404(db, post_id)
    ensure_can_view(db, principal_id, post)
    replies = db.scalars(
        select(Post)
        .options(joinedload(Post.author))
        .where(Post.parent_id == post.id, Post.deleted.is_(False))
        .order_by(Post.id.desc())
    ).all()
    return post, list(replies)


def _replies_stmt(parent_id: int) -> Select[tuple[Post]]:
    return (
        select(Post)
        .options(joinedload(Post.author))
        .where(Post.parent_id == parent_id, Post.deleted.is_(False))
    )


def _descends_from(db: Session, post: Post, ancestor_id: int) -> bool:
    parent_id = post.parent_id
    seen: set[int] = set()
    while parent_id is not None and parent_id not in seen:
        if parent_id == ancestor_id:
            return True
        seen.add(parent_id)
        parent_id = db.scalar(select(Post.parent_id).where(Post.id == parent_id))
    return False


def list_replies(
    db: Session,
    principal_id: int,
    post_id: int,
    *,
    parent_id: int | None = None,
    cursor: int | None,
    limit: int,
) -> Page[Post]:
    """Direct replies newest first.

    ``parent_id`` narrows the listing to the replies of a nested reply in
    the same thread; the root post still governs access, so a parent from
    another thread is reported as missing.
    """
    root = _get_post_or_404(db, post_id)
    ensure_can_view(db, principal_id, root)
    target = root.id
    if parent_id is not None and parent_id != root.id:
        nested = _get_post_or_404(db, parent_id, include_deleted=True)
        if not _descends_from(db, nested, root.id):
            raise errors.NotFound("Post not found")
        target = nested.id
    return paginate(db, _replies_stmt(target), Post.id, cursor=cursor, limit=limit)


def list_comments(
    db: Session, principal_id: int, post_id: int, *, cursor: int | None, limit: int
) -> Page[Post]:
    """Direct replies oldest first."""
    root = _get_post_or_404(db, post_id)
    ensure_can_view(db, principal_id, root)
    return paginate(
        db, _replies_stmt(root.id), Post.id, cursor=cursor, limit=limit, ascending=True
    )


@dataclass
class Thread:
    """A thread as an id-indexed arena.

    ``posts`` maps id to row (tombstones included so structure survives
    deletions); ``children`` maps a parent id to its child ids, oldest
    first. Nodes never own their subtrees.
    """

    root_id: int
    posts: dict[int, Post] = field(default_factory=dict)
    children: dict[int, list[int]] = field(default_factory=dict)

    def walk(self) -> list[Post]:
        """Return the posts in breadth-first order from the root."""
        ordered: list[Post] = []
        queue = deque([self.root_id])
        while queue:
            post_id = queue.popleft()
            ordered.append(self.posts[post_id])
            queue.extend(self.children.get(post_id, ()))
        return ordered


def load_thread(db: Session, principal_id: int, post_id: int) -> Thread:
    """Load ``post_id`` and its transitive replies one level per query."""
    root = _get_post_or_404(db, post_id, include_deleted=True)
    ensure_can_view(db, principal_id, root)

    thread = Thread(root_id=root.id, posts={root.id: root})
    frontier = [root.id]
    while frontier:
        level = db.scalars(
            select(Post)
            .options(joinedload(Post.author))
            .where(Post.parent_id.in_(frontier))
            .order_by(Post.id.asc())
        ).all()
        frontier = []
        for reply in level:
            if reply.id in thread.posts:
                continue
            thread.posts[reply.id] = reply
            thread.children.setdefault(reply.parent_id, []).append(reply.id)
            frontier.append(reply.id)
    return thread


def user_posts(
    db: Session, principal_id: int, username: str, *, cursor: int | None, limit: int
) -> Page[Post]:
    """An author's top-level posts, filtered by the feed visibility rule."""
    author = db.scalar(select(User).where(User.username == username.strip().lower()))
    if author is None:
        raise errors.NotFound("User not found")
    stmt = _visible_top_level(principal_id).where(Post.author_id == author.id)
    return paginate(db, stmt, Post.id, cursor=cursor, limit=limit)


def community_posts(
    db: Session, principal_id: int, community_id: int, *, cursor: int | None, limit: int
) -> Page[Post]:
    community = db.get(Community, community_id)
    if community is None:
        raise errors.NotFound("Community not found")
    access = CommunityAccess(community, _membership(db, principal_id, community_id))
    authorize(principal_id, Operation.VIEW_COMMUNITY, access).enforce()
    stmt = (
        select(Post)
        .options(joinedload(Post.author))
        .where(
            Post.community_id == community_id,
            Post.parent_id.is_(None),
            Post.deleted.is_(False),
        )
    )
    return paginate(db, stmt, Post.id, cursor=cursor, limit=limit)


def reply_counts(db: Session, post_ids: Sequence[int]) -> dict[int, int]:
    """Live direct-reply count per post id, in one grouped query."""
    if not post_ids:
        return {}
    rows = db.execute(
        select(Post.parent_id, func.count(Post.id))
        .where(Post.parent_id.in_(post_ids), Post.deleted.is_(False))
        .group_by(Post.parent_id)
    ).all()
    return {parent_id: count for parent_id, count in rows}


# -- reactions ---------------------------------------------------------------


def _parse_reaction_type(value: str) -> ReactionType:
    try:
        return ReactionType(value.upper())
    except ValueError as exc:
        raise errors.ValidationError("Invalid reaction type") from exc


def reaction_counts(db: Session, post_id: int) -> dict[str, int]:
    counts = {kind.value: 0 for kind in ReactionType}
    rows = db.execute(
        select(Reaction.type, func.count(Reaction.id))
        .where(Reaction.post_id == post_id)
        .group_by(Reaction.type)
    ).all()
    counts.update({kind: count for kind, count in rows})
    return counts


@dataclass
class ReactionToggle:
    action: str
    type: str
    counts: dict[str, int]


def toggle_reaction(db: Session, user: User, post_id: int, reaction_type: str) -> ReactionToggle:
    """Remove the (user, post, type) reaction if present, else add it.

    Two toggles in a row leave the post as it was. A concurrent toggle of
    the same triple, whether it inserts or deletes, surfaces as ``Conflict``.
    """
    kind = _parse_reaction_type(reaction_type)
    post = _get_post_or_404(db, post_id)
    ensure_can_view(db, user.id, post)

    existing = db.scalar(
        select(Reaction).where(
            Reaction.user_id == user.id,
            Reaction.post_id == post.id,
            Reaction.type == kind.value,
        )
    )
    if existing is not None:
        # A concurrent toggle that already deleted the row leaves rowcount 0.
        result = db.execute(delete(Reaction).where(Reaction.id == existing.id))
        if result.rowcount != 1:
            db.rollback()
            raise errors.Conflict("Reaction was changed concurrently")
        action = "removed"
    else:
        try:
            with db.begin_nested():
                db.add(Reaction(user_id=user.id, post_id=post.id, type=kind.value))
        except IntegrityError as exc:
            db.rollback()
            raise errors.Conflict("Reaction was changed concurrently") from exc
        action = "added"
        notifications.notify(
            db,
            actor_id=user.id,
            recipient_id=post.author_id,
            kind=NotificationType.POST_REACTION,
            message=f"{user.display_name} reacted to your post",
            data={"type": kind.value},
            post_id=post.id,
        )

    db.commit()
    logger.info("User %s %s %s reaction on post %s", user.id, action, kind.value, post.id)
    return ReactionToggle(action=action, type=kind.value, counts=reaction_counts(db, post.id))


def list_reactions(
    db: Session, principal_id: int, post_id: int, reaction_type: str | None = None
) -> tuple[list[Reaction], dict[str, int]]:
    """Reactions on a post (optionally one type) newest first, plus counts."""
    post = _get_post_or_404(db, post_id)
    ensure_can_view(db, principal_id, post)
    stmt = (
        select(Reaction)
        .options(joinedload(Reaction.user))
        .where(Reaction.post_id == post.id)
        .order_by(Reaction.id.desc())
    )
    if reaction_type:
        stmt = stmt.where(Reaction.type == _parse_reaction_type(reaction_type).value)
    return list(db.scalars(stmt).all()), reaction_counts(db, post.id)


# -- bookmarks ---------------------------------------------------------------


def list_bookmarks(
    db: Session, user_id: int, *, cursor: int | None, limit: int
) -> Page[Bookmark]:
    stmt = (
        select(Bookmark)
        .join(Bookmark.post)
        .options(joinedload(Bookmark.post).joinedload(Post.author))
        .where(Bookmark.user_id == user_id, Post.deleted.is_(False))
    )
    return paginate(db, stmt, Bookmark.id, cursor=cursor, limit=limit)


def add_bookmark(db: Session, user_id: int, post_id: int) -> Bookmark:
    post = _get_post_or_404(db, post_id)
    ensure_can_view(db, user_id, post)
    bookmark = Bookmark(user_id=user_id, post_id=post.id)
    try:
        with db.begin_nested():
            db.add(bookmark)
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict("Post already bookmarked") from exc
    db.commit()
    db.refresh(bookmark)
    logger.info("User %s bookmarked post %s", user_id, post_id)
    return bookmark


def remove_bookmark(db: Session, user_id: int, post_id: int) -> bool:
    """Delete the bookmark if present; returns whether a row was removed."""
    result = db.execute(
        delete(Bookmark).where(Bookmark.user_id == user_id, Bookmark.post_id == post_id)
    )
    db.commit()
    if not result.rowcount:
        return False
    logger.info("User %s removed bookmark on post %s", user_id, post_id)
    return True


def is_bookmarked(db: Session, user_id: int, post_id: int) -> bool:
    stmt = select(Bookmark.id).where(Bookmark.user_id == user_id, Bookmark.post_id == post_id)
    return db.scalar(stmt) is not None
