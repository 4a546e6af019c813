"""Global search over posts, users and public communities."""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session, joinedload

from threadline.models import Community, CommunityVisibility, Post, User
from threadline.services.pagination import paginate
from threadline.services.policy import feed_visibility_clause, readable_community_clause

logger = logging.getLogger(__name__)


class SearchType(str, enum.Enum):
    ALL = "all"
    POSTS = "posts"
    USERS = "users"
    COMMUNITIES = "communities"


@dataclass
class SearchResults:
    """Matches per kind; only single-kind searches carry a cursor."""

    query: str
    type: SearchType
    posts: list[Post] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    communities: list[Community] = field(default_factory=list)
    next_cursor: int | None = None
    has_next_page: bool = False


def _pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _posts_stmt(principal_id: int, pattern: str) -> Select[tuple[Post]]:
    return (
        select(Post)
        .options(joinedload(Post.author))
        .where(
            Post.deleted.is_(False),
            Post.content.ilike(pattern, escape="\\"),
            feed_visibility_clause(principal_id),
            readable_community_clause(principal_id),
        )
    )


def _users_stmt(pattern: str) -> Select[tuple[User]]:
    return select(User).where(
        or_(User.name.ilike(pattern, escape="\\"), User.username.ilike(pattern, escape="\\"))
    )


def _communities_stmt(pattern: str) -> Select[tuple[Community]]:
    return select(Community).where(
        Community.visibility == CommunityVisibility.PUBLIC.value,
        or_(
            Community.name.ilike(pattern, escape="\\"),
            Community.description.ilike(pattern, escape="\\"),
        ),
    )


def search(
    db: Session,
    principal_id: int,
    query: str,
    *,
    kind: SearchType = SearchType.ALL,
    cursor: int | None,
    limit: int,
) -> SearchResults:
    """Case-insensitive substring search, newest first.

    Posts follow the same visibility rules as the feed and PRIVATE
    communities are never matched. A blank query returns no results.
    With ``kind=ALL`` each kind contributes up to ``ceil(limit / 3)``
    items and no cursor is returned.
    """
    query = query.strip()
    results = SearchResults(query=query, type=kind)
    if not query:
        return results

    pattern = _pattern(query)
    statements = {
        SearchType.POSTS: (_posts_stmt(principal_id, pattern), Post.id, "posts"),
        SearchType.USERS: (_users_stmt(pattern), User.id, "users"),
        SearchType.COMMUNITIES: (_communities_stmt(pattern), Community.id, "communities"),
    }

    if kind is SearchType.ALL:
        share = math.ceil(limit / 3)
        for stmt, id_column, attr in statements.values():
            rows = db.scalars(stmt.order_by(id_column.desc()).limit(share)).unique().all()
            setattr(results, attr, list(rows))
    else:
        stmt, id_column, attr = statements[kind]
        page = paginate(db, stmt, id_column, cursor=cursor, limit=limit)
        setattr(results, attr, page.items)
        results.next_cursor = page.next_cursor
        results.has_next_page = page.has_next_page

    logger.debug("Search %r (%s) by user %s", query, kind.value, principal_id)
    return results
