"""People and community suggestions for the caller."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from threadline.api.dependencies import CurrentUserDep, SessionDep
from threadline.schemas.common import UserSummary
from threadline.schemas.suggestion import (
    CommunitySuggestionResponse,
    CommunitySuggestionsResponse,
    PeopleSuggestionsResponse,
    PersonSuggestionResponse,
    SuggestedCommunity,
)
from threadline.services import suggestions as suggestion_service

router = APIRouter(prefix="/user/suggestions", tags=["suggestions"])

SuggestionLimit = Annotated[int, Query(ge=1, le=50)]


@router.get("/people", response_model=PeopleSuggestionsResponse)
async def suggest_people(
    db: SessionDep, current_user: CurrentUserDep, limit: SuggestionLimit = 5
) -> PeopleSuggestionsResponse:
    """People the caller may know, ranked by mutual connections."""
    result = suggestion_service.suggest_people(db, current_user.id, limit=limit)
    return PeopleSuggestionsResponse(
        suggestions=[
            PersonSuggestionResponse(
                user=UserSummary.model_validate(item.user),
                reason=item.reason,
                mutual_count=item.mutual_count,
                mutual_connections=[
                    UserSummary.model_validate(user) for user in item.mutual_connections
                ],
            )
            for item in result.suggestions
        ],
        has_more_suggestions=result.has_more,
        message=result.message,
    )


@router.get("/communities", response_model=CommunitySuggestionsResponse)
async def suggest_communities(
    db: SessionDep, current_user: CurrentUserDep, limit: SuggestionLimit = 5
) -> CommunitySuggestionsResponse:
    result = suggestion_service.suggest_communities(db, current_user.id, limit=limit)
    return CommunitySuggestionsResponse(
        communities=[
            CommunitySuggestionResponse(
                community=SuggestedCommunity.model_validate(item.community),
                reason=item.reason,
                member_count=item.member_count,
                users=[UserSummary.model_validate(user) for user in item.users],
                total_count=item.total_count,
            )
            for item in result.communities
        ],
        has_more_suggestions=result.has_more,
        message=result.message,
    )
