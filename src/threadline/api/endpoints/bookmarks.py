"""Bookmark endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.api.endpoints.posts import serialize_posts
from threadline.schemas.common import Message
from threadline.schemas.post import (
    BookmarkCheckResponse,
    BookmarkPage,
    BookmarkRequest,
    BookmarkResponse,
)
from threadline.services import posts as post_service

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("", response_model=BookmarkPage)
async def list_bookmarks(db: SessionDep, current_user: CurrentUserDep, page: PageDep) -> BookmarkPage:
    cursor, limit = page
    result = post_service.list_bookmarks(db, current_user.id, cursor=cursor, limit=limit)
    posts = serialize_posts(db, [bookmark.post for bookmark in result.items])
    return BookmarkPage(
        bookmarks=[
            BookmarkResponse(id=bookmark.id, created_at=bookmark.created_at, post=post)
            for bookmark, post in zip(result.items, posts)
        ],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.post("", response_model=Message, status_code=status.HTTP_201_CREATED)
async def add_bookmark(
    payload: BookmarkRequest, db: SessionDep, current_user: CurrentUserDep
) -> Message:
    """Bookmark a post; bookmarking it twice is a 409."""
    post_service.add_bookmark(db, current_user.id, payload.post_id)
    return Message(message="Post bookmarked")


@router.delete("", response_model=Message)
async def remove_bookmark(
    payload: BookmarkRequest, db: SessionDep, current_user: CurrentUserDep
) -> Message:
    removed = post_service.remove_bookmark(db, current_user.id, payload.post_id)
    return Message(message="Bookmark removed" if removed else "Post was not bookmarked")


@router.get("/check", response_model=BookmarkCheckResponse)
async def check_bookmark(
    db: SessionDep,
    current_user: CurrentUserDep,
    post_id: Annotated[int, Query(alias="postId")],
) -> BookmarkCheckResponse:
    return BookmarkCheckResponse(
        bookmarked=post_service.is_bookmarked(db, current_user.id, post_id)
    )
