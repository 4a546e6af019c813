"""Endpoints for the caller's community invitations."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.models import RequestStatus
from threadline.schemas.community import DecisionRequest, InvitationPage, InvitationResponse
from threadline.services import communities as community_service

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get("", response_model=InvitationPage)
async def list_invitations(
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    invitation_status: Annotated[RequestStatus, Query(alias="status")] = RequestStatus.PENDING,
) -> InvitationPage:
    """Invitations addressed to the caller, newest first (PENDING by default)."""
    cursor, limit = page
    result = community_service.list_invitations(
        db, current_user.id, status=invitation_status, cursor=cursor, limit=limit
    )
    return InvitationPage(
        invitations=[InvitationResponse.model_validate(row) for row in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.put("/{invitation_id}", response_model=InvitationResponse)
async def respond_invitation(
    invitation_id: int,
    payload: DecisionRequest,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> InvitationResponse:
    invitation = community_service.respond_invitation(
        db, current_user, invitation_id, payload.action
    )
    return InvitationResponse.model_validate(invitation)
