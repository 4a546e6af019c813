"""Post, reaction and bookmark schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from threadline.models import PostVisibility

from .common import APIModel, PageMeta, UserSummary

MAX_CONTENT_LENGTH = 5000
MAX_MEDIA_ATTACHMENTS = 4


class PostCreate(APIModel):
    """Schema for creating a new post or reply."""

    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    parent_id: int | None = Field(None, description="Parent post ID for replies")
    community_id: int | None = Field(None, description="Community to post into")
    media_attachments: list[str] = Field(
        default_factory=list, max_length=MAX_MEDIA_ATTACHMENTS, description="Media URLs"
    )
    visibility: PostVisibility = PostVisibility.FOLLOWERS


class PostUpdate(APIModel):
    """Partial edit; omitted fields are left unchanged."""

    content: str | None = Field(None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    media_attachments: list[str] | None = Field(None, max_length=MAX_MEDIA_ATTACHMENTS)
    visibility: PostVisibility | None = None


class PostResponse(APIModel):
    """Schema for post information returned by the API."""

    id: int
    content: str
    author_id: int
    author: UserSummary | None = None
    parent_id: int | None
    community_id: int | None
    media_attachments: list[str]
    visibility: str
    deleted: bool
    created_at: datetime
    updated_at: datetime
    reply_count: int = 0


class PostDetailResponse(APIModel):
    post: PostResponse
    replies: list[PostResponse]


class FeedPage(PageMeta):
    posts: list[PostResponse]


class CommentsPage(PageMeta):
    comments: list[PostResponse]


class RepliesPage(APIModel):
    """Reply listing; this endpoint reports ``hasMore`` rather than ``hasNextPage``."""

    replies: list[PostResponse]
    next_cursor: int | None = None
    has_more: bool = False


class ThreadResponse(APIModel):
    """A thread flattened into an id-indexed arena."""

    root_id: int
    posts: list[PostResponse]
    children: dict[int, list[int]]


class ReactionToggleRequest(APIModel):
    type: str = Field(..., min_length=1, max_length=16)


class ReactionToggleResponse(APIModel):
    action: Literal["added", "removed"]
    type: str
    counts: dict[str, int]


class ReactionResponse(APIModel):
    id: int
    type: str
    created_at: datetime
    user: UserSummary


class ReactionListResponse(APIModel):
    reactions: list[ReactionResponse]
    counts: dict[str, int]


class BookmarkRequest(APIModel):
    post_id: int


class BookmarkResponse(APIModel):
    id: int
    created_at: datetime
    post: PostResponse


class BookmarkPage(PageMeta):
    bookmarks: list[BookmarkResponse]


class BookmarkCheckResponse(APIModel):
    bookmarked: bool
