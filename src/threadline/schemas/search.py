"""Global search payloads."""
from __future__ import annotations

from .common import APIModel, PageMeta, UserSummary
from .post import PostResponse


class CommunityMatch(APIModel):
    id: int
    name: str
    description: str | None = None
    image: str | None = None
    visibility: str


class SearchResponse(PageMeta):
    query: str
    type: str
    posts: list[PostResponse] = []
    users: list[UserSummary] = []
    communities: list[CommunityMatch] = []
