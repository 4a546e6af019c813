"""Connection endpoints: requests, responses, listings and status."""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Query

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.models import Connection, ConnectionStatus
from threadline.schemas.common import UserSummary
from threadline.schemas.social import (
    ConnectionAction,
    ConnectionActionResponse,
    ConnectionPage,
    ConnectionRespond,
    ConnectionResponse,
    MutualConnectionsResponse,
)
from threadline.schemas.suggestion import (
    CommunityRef,
    ConnectionSuggestionResponse,
    ConnectionSuggestionsResponse,
)
from threadline.schemas.user import ConnectionStatusResponse
from threadline.services import social as social_service
from threadline.services import suggestions as suggestion_service

router = APIRouter(prefix="/user/connections", tags=["connections"])


def _as_seen_by(connection: Connection, viewer_id: int) -> ConnectionResponse:
    """Present ``connection`` with the other party as ``user``."""
    return ConnectionResponse(
        id=connection.id,
        status=connection.status,
        created_at=connection.created_at,
        updated_at=connection.updated_at,
        is_requester=connection.requester_id == viewer_id,
        user=UserSummary.model_validate(connection.other_party(viewer_id)),
    )


@router.post("", response_model=ConnectionActionResponse)
async def connection_action(
    payload: ConnectionAction, db: SessionDep, current_user: CurrentUserDep
) -> ConnectionActionResponse:
    """Act on the connection with ``targetUserId``.

    ``send_request`` opens a request; ``accept``/``reject``/``block`` answer
    the request the target sent; ``remove`` deletes an accepted connection.

    Raises:
        SelfConnection: If the target is the caller
        DuplicateConnection: If the pair already has a connection row
        NotFound: If there is nothing to answer or remove
    """
    connection = social_service.connection_action(
        db, current_user, payload.target_user_id, payload.action
    )
    return ConnectionActionResponse(
        action=payload.action,
        connection=_as_seen_by(connection, current_user.id) if connection else None,
    )


@router.put("/{connection_id:int}", response_model=ConnectionActionResponse)
async def respond_connection(
    connection_id: int,
    payload: ConnectionRespond,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> ConnectionActionResponse:
    """Answer a PENDING request addressed to the caller."""
    connection = social_service.respond_connection(
        db, current_user, connection_id, payload.action
    )
    return ConnectionActionResponse(
        action=payload.action, connection=_as_seen_by(connection, current_user.id)
    )


@router.get("", response_model=ConnectionPage)
async def list_connections(
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    connection_status: Annotated[ConnectionStatus, Query(alias="status")] = ConnectionStatus.ACCEPTED,
) -> ConnectionPage:
    cursor, limit = page
    result = social_service.list_connections(
        db, current_user.id, status=connection_status, cursor=cursor, limit=limit
    )
    return ConnectionPage(
        connections=[_as_seen_by(row, current_user.id) for row in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/requests", response_model=ConnectionPage)
async def list_requests(
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    direction: Annotated[Literal["received", "sent"], Query(alias="type")] = "received",
) -> ConnectionPage:
    """PENDING requests the caller received (default) or sent."""
    cursor, limit = page
    result = social_service.list_requests(
        db, current_user.id, direction=direction, cursor=cursor, limit=limit
    )
    return ConnectionPage(
        connections=[_as_seen_by(row, current_user.id) for row in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/status/{user_id:int}", response_model=ConnectionStatusResponse)
async def connection_status(
    user_id: int, db: SessionDep, current_user: CurrentUserDep
) -> ConnectionStatusResponse:
    """Describe how the caller relates to ``user_id``.

    ``status`` is one of self, not_connected, request_sent,
    request_received, connected, rejected, blocked or unknown.
    """
    state = social_service.connection_status(db, current_user.id, user_id)
    return ConnectionStatusResponse.model_validate(state)


@router.get("/mutual/{user_id:int}", response_model=MutualConnectionsResponse)
async def mutual_connections(
    user_id: int,
    db: SessionDep,
    current_user: CurrentUserDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> MutualConnectionsResponse:
    users = social_service.mutual_connections(db, current_user.id, user_id, limit=limit)
    return MutualConnectionsResponse(
        users=[UserSummary.model_validate(user) for user in users], count=len(users)
    )


@router.get("/suggestions", response_model=ConnectionSuggestionsResponse)
async def connection_suggestions(
    db: SessionDep,
    current_user: CurrentUserDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
) -> ConnectionSuggestionsResponse:
    """Users without any connection row to the caller, most related first."""
    suggestions = suggestion_service.suggest_connections(db, current_user.id, limit=limit)
    return ConnectionSuggestionsResponse(
        suggestions=[
            ConnectionSuggestionResponse(
                user=UserSummary.model_validate(item.user),
                suggested_because=item.suggested_because,
                mutual_connections_count=item.mutual_connections_count,
                mutual_communities=[
                    CommunityRef.model_validate(community)
                    for community in item.mutual_communities
                ],
            )
            for item in suggestions
        ]
    )
