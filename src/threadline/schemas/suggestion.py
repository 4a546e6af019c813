"""People, connection and community suggestion payloads."""
from __future__ import annotations

from .common import APIModel, UserSummary


class PersonSuggestionResponse(APIModel):
    user: UserSummary
    reason: str
    mutual_count: int = 0
    mutual_connections: list[UserSummary] = []


class PeopleSuggestionsResponse(APIModel):
    suggestions: list[PersonSuggestionResponse]
    has_more_suggestions: bool
    message: str | None = None


class CommunityRef(APIModel):
    id: int
    name: str


class ConnectionSuggestionResponse(APIModel):
    user: UserSummary
    suggested_because: str
    mutual_connections_count: int = 0
    mutual_communities: list[CommunityRef] = []


class ConnectionSuggestionsResponse(APIModel):
    suggestions: list[ConnectionSuggestionResponse]


class SuggestedCommunity(APIModel):
    id: int
    name: str
    description: str | None = None
    image: str | None = None
    visibility: str


class CommunitySuggestionResponse(APIModel):
    community: SuggestedCommunity
    reason: str
    member_count: int = 0
    users: list[UserSummary] = []
    total_count: int = 0


class CommunitySuggestionsResponse(APIModel):
    communities: list[CommunitySuggestionResponse]
    has_more_suggestions: bool
    message: str | None = None
