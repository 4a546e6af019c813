"""Global search endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.api.endpoints.posts import serialize_posts
from threadline.schemas.common import UserSummary
from threadline.schemas.search import CommunityMatch, SearchResponse
from threadline.services import search as search_service
from threadline.services.search import SearchType

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search(
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    q: Annotated[str, Query(max_length=100)] = "",
    search_type: Annotated[SearchType, Query(alias="type")] = SearchType.ALL,
) -> SearchResponse:
    """Search posts, users and public communities by substring.

    With ``type=all`` a few matches of each kind are returned without a
    cursor; a single type pages like every other listing.
    """
    cursor, limit = page
    results = search_service.search(
        db, current_user.id, q, kind=search_type, cursor=cursor, limit=limit
    )
    return SearchResponse(
        query=results.query,
        type=results.type.value,
        posts=serialize_posts(db, results.posts),
        users=[UserSummary.model_validate(user) for user in results.users],
        communities=[CommunityMatch.model_validate(row) for row in results.communities],
        next_cursor=results.next_cursor,
        has_next_page=results.has_next_page,
    )
