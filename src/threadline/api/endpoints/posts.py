"""Post, thread and reaction endpoints for the Threadline API."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated

from fastapi import APIRouter, Query, status
from sqlalchemy.orm import Session

from threadline.api.dependencies import CurrentUserDep, FeedPageDep, PageDep, SessionDep
from threadline.models import Post
from threadline.schemas.post import (
    CommentsPage,
    FeedPage,
    PostCreate,
    PostDetailResponse,
    PostResponse,
    PostUpdate,
    ReactionListResponse,
    ReactionResponse,
    ReactionToggleRequest,
    ReactionToggleResponse,
    RepliesPage,
    ThreadResponse,
)
from threadline.services import posts as post_service

router = APIRouter(prefix="/posts", tags=["posts"])


def serialize_posts(db: Session, posts: Sequence[Post]) -> list[PostResponse]:
    """Build responses for ``posts`` with reply counts fetched in one query."""
    counts = post_service.reply_counts(db, [post.id for post in posts])
    responses = []
    for post in posts:
        response = PostResponse.model_validate(post)
        response.reply_count = counts.get(post.id, 0)
        responses.append(response)
    return responses


@router.get("", response_model=FeedPage)
async def get_feed(db: SessionDep, current_user: CurrentUserDep, page: FeedPageDep) -> FeedPage:
    """Top-level posts the caller may see, newest first.

    A post is included when the caller wrote it, follows its author, or it
    is public.
    """
    cursor, limit = page
    result = post_service.feed(db, current_user.id, cursor=cursor, limit=limit)
    return FeedPage(
        posts=serialize_posts(db, result.items),
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate, db: SessionDep, current_user: CurrentUserDep
) -> PostResponse:
    """Create a post, or a reply when ``parentId`` is given.

    Raises:
        ParentNotFound: If ``parentId`` names no live post
        Forbidden: If posting into a community the caller does not belong to
    """
    post = post_service.create_post(
        db,
        current_user,
        content=payload.content,
        parent_id=payload.parent_id,
        media=payload.media_attachments,
        visibility=payload.visibility,
        community_id=payload.community_id,
    )
    return PostResponse.model_validate(post)


@router.get("/user/{username}", response_model=FeedPage)
async def get_user_posts(
    username: str, db: SessionDep, current_user: CurrentUserDep, page: PageDep
) -> FeedPage:
    cursor, limit = page
    result = post_service.user_posts(db, current_user.id, username, cursor=cursor, limit=limit)
    return FeedPage(
        posts=serialize_posts(db, result.items),
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/{post_id}", response_model=PostDetailResponse)
async def get_post(
    post_id: int, db: SessionDep, current_user: CurrentUserDep
) -> PostDetailResponse:
    """Get a post with its direct replies, newest first."""
    post, replies = post_service.get_post(db, current_user.id, post_id)
    return PostDetailResponse(
        post=serialize_posts(db, [post])[0],
        replies=serialize_posts(db, replies),
    )


@router.patch("/{post_id}", response_model=PostResponse)
async def edit_post(
    post_id: int, payload: PostUpdate, db: SessionDep, current_user: CurrentUserDep
) -> PostResponse:
    """Edit a post; only its author (matched by id) may."""
    post = post_service.edit_post(
        db,
        current_user.id,
        post_id,
        content=payload.content,
        media=payload.media_attachments,
        visibility=payload.visibility,
    )
    return serialize_posts(db, [post])[0]


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: int, db: SessionDep, current_user: CurrentUserDep) -> None:
    """Soft-delete a post. Replies stay attached to the tombstone."""
    post_service.delete_post(db, current_user.id, post_id)


@router.get("/{post_id}/replies", response_model=RepliesPage)
async def get_replies(
    post_id: int,
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    parent_id: Annotated[int | None, Query(alias="parentId")] = None,
) -> RepliesPage:
    """Direct replies, newest first."""
    cursor, limit = page
    result = post_service.list_replies(
        db, current_user.id, post_id, parent_id=parent_id, cursor=cursor, limit=limit
    )
    return RepliesPage(
        replies=serialize_posts(db, result.items),
        next_cursor=result.next_cursor,
        has_more=result.has_next_page,
    )


@router.get("/{post_id}/comments", response_model=CommentsPage)
async def get_comments(
    post_id: int, db: SessionDep, current_user: CurrentUserDep, page: PageDep
) -> CommentsPage:
    """Direct replies, oldest first."""
    cursor, limit = page
    result = post_service.list_comments(db, current_user.id, post_id, cursor=cursor, limit=limit)
    return CommentsPage(
        comments=serialize_posts(db, result.items),
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/{post_id}/thread", response_model=ThreadResponse)
async def get_thread(post_id: int, db: SessionDep, current_user: CurrentUserDep) -> ThreadResponse:
    """The whole reply tree under a post as an id-indexed arena."""
    thread = post_service.load_thread(db, current_user.id, post_id)
    return ThreadResponse(
        root_id=thread.root_id,
        posts=serialize_posts(db, thread.walk()),
        children=thread.children,
    )


@router.post("/{post_id}/reactions", response_model=ReactionToggleResponse)
async def toggle_reaction(
    post_id: int,
    payload: ReactionToggleRequest,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> ReactionToggleResponse:
    """Add the reaction, or remove it if the caller already left it."""
    result = post_service.toggle_reaction(db, current_user, post_id, payload.type)
    return ReactionToggleResponse(action=result.action, type=result.type, counts=result.counts)


@router.get("/{post_id}/reactions", response_model=ReactionListResponse)
async def list_reactions(
    post_id: int,
    db: SessionDep,
    current_user: CurrentUserDep,
    reaction_type: Annotated[str | None, Query(alias="type")] = None,
) -> ReactionListResponse:
    reactions, counts = post_service.list_reactions(db, current_user.id, post_id, reaction_type)
    return ReactionListResponse(
        reactions=[ReactionResponse.model_validate(reaction) for reaction in reactions],
        counts=counts,
    )
