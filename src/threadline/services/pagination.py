"""Cursor pagination shared by every list operation.

The cursor is the id of the last item the client has seen. Ids are
assigned in creation order, so ``id DESC`` is newest-first and
``id < cursor`` resumes exactly after the previous page. One extra row is
fetched to learn whether another page exists and is trimmed before
returning.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import InstrumentedAttribute, Session

T = TypeVar("T")

__all__ = ["Page", "paginate", "clamp_limit"]


@dataclass
class Page(Generic[T]):
    """One page of results plus the cursor for the next one."""

    items: list[T] = field(default_factory=list)
    next_cursor: int | None = None
    has_next_page: bool = False


def clamp_limit(limit: int | None, *, default: int, cap: int) -> int:
    """Return ``limit`` bounded to ``1..cap`` (``default`` when missing)."""
    if limit is None:
        return default
    return max(1, min(int(limit), cap))


def paginate(
    db: Session,
    stmt: Select[Any],
    id_column: InstrumentedAttribute[int],
    *,
    cursor: int | None,
    limit: int,
    ascending: bool = False,
) -> Page[Any]:
    """Run ``stmt`` as one cursor page.

    Args:
        db: Database session.
        stmt: Select of ORM entities; ordering is applied here.
        id_column: Monotonic id column used for both ordering and cursor.
        cursor: Last id seen by the client, or ``None`` for the first page.
        limit: Page size (already validated by the caller).
        ascending: Oldest-first instead of newest-first.

    Returns:
        A :class:`Page` whose ``next_cursor`` is the id of the last item
        returned when another page exists.
    """
    if cursor is not None:
        stmt = stmt.where(id_column > cursor if ascending else id_column < cursor)
    order = id_column.asc() if ascending else id_column.desc()
    rows = list(db.scalars(stmt.order_by(order).limit(limit + 1)).unique())

    has_next_page = len(rows) > limit
    if has_next_page:
        rows = rows[:limit]
    next_cursor = getattr(rows[-1], id_column.key) if has_next_page and rows else None
    return Page(items=rows, next_cursor=next_cursor, has_next_page=has_next_page)
