"""Community, membership and join-request endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated

from fastapi import APIRouter, Query, status
from sqlalchemy.orm import Session

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.api.endpoints.posts import serialize_posts
from threadline.models import Community, CommunityRole, CommunityVisibility, RequestStatus
from threadline.schemas.common import Message
from threadline.schemas.community import (
    BulkInviteRequest,
    BulkInviteResponse,
    CommunityCreate,
    CommunityPage,
    CommunityResponse,
    CommunityUpdate,
    DecisionRequest,
    InvitationCounts,
    InvitationResponse,
    InvitationStatsResponse,
    InvitedUser,
    InviteRequest,
    JoinRequestPage,
    JoinRequestResponse,
    JoinResponse,
    MemberPage,
    MemberResponse,
    RoleUpdate,
    RoleUpdateResponse,
    SentInvitation,
)
from threadline.schemas.post import FeedPage
from threadline.services import communities as community_service
from threadline.services import posts as post_service

router = APIRouter(prefix="/communities", tags=["communities"])


def _serialize(
    db: Session, communities: Sequence[Community], roles: dict[int, str] | None = None
) -> list[CommunityResponse]:
    counts = community_service.member_counts(db, [community.id for community in communities])
    responses = []
    for community in communities:
        response = CommunityResponse.model_validate(community)
        response.member_count = counts.get(community.id, 0)
        if roles:
            response.role = roles.get(community.id)
        responses.append(response)
    return responses


@router.post("", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    payload: CommunityCreate, db: SessionDep, current_user: CurrentUserDep
) -> CommunityResponse:
    """Create a community; the caller becomes its first ADMIN."""
    community = community_service.create_community(
        db,
        current_user,
        name=payload.name,
        description=payload.description,
        visibility=payload.visibility,
        image=payload.image,
    )
    return _serialize(db, [community], {community.id: CommunityRole.ADMIN.value})[0]


@router.get("", response_model=CommunityPage)
async def list_communities(
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    search: Annotated[str | None, Query(max_length=64)] = None,
    visibility: CommunityVisibility | None = None,
    mine: bool = False,
) -> CommunityPage:
    cursor, limit = page
    result = community_service.list_communities(
        db,
        current_user.id,
        search=search,
        visibility=visibility,
        mine=mine,
        cursor=cursor,
        limit=limit,
    )
    return CommunityPage(
        communities=_serialize(db, result.items),
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/{community_id}", response_model=CommunityResponse)
async def get_community(
    community_id: int, db: SessionDep, current_user: CurrentUserDep
) -> CommunityResponse:
    """Get one community. PRIVATE communities are visible to members only."""
    community, membership = community_service.get_community(db, current_user.id, community_id)
    roles = {community.id: membership.role} if membership else None
    return _serialize(db, [community], roles)[0]


@router.put("/{community_id}", response_model=CommunityResponse)
async def update_community(
    community_id: int, payload: CommunityUpdate, db: SessionDep, current_user: CurrentUserDep
) -> CommunityResponse:
    community = community_service.update_community(
        db,
        current_user,
        community_id,
        name=payload.name,
        description=payload.description,
        visibility=payload.visibility,
        image=payload.image,
    )
    return _serialize(db, [community])[0]


@router.get("/{community_id}/posts", response_model=FeedPage)
async def get_community_posts(
    community_id: int, db: SessionDep, current_user: CurrentUserDep, page: PageDep
) -> FeedPage:
    cursor, limit = page
    result = post_service.community_posts(
        db, current_user.id, community_id, cursor=cursor, limit=limit
    )
    return FeedPage(
        posts=serialize_posts(db, result.items),
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.post("/{community_id}/join", response_model=JoinResponse)
async def join_community(
    community_id: int, db: SessionDep, current_user: CurrentUserDep
) -> JoinResponse:
    """Join a PUBLIC community, or file a join request for a PRIVATE one.

    Raises:
        AlreadyMember: If the caller already belongs to the community
        DuplicateRequest: If a join request is already pending
    """
    outcome = community_service.join_community(db, current_user, community_id)
    message = (
        "Successfully joined community"
        if outcome.status == "joined"
        else "Join request submitted"
    )
    return JoinResponse(status=outcome.status, message=message)


@router.post("/{community_id}/leave", response_model=Message)
async def leave_community(
    community_id: int, db: SessionDep, current_user: CurrentUserDep
) -> Message:
    community_service.leave_community(db, current_user, community_id)
    return Message(message="Left community")


@router.get("/{community_id}/members", response_model=MemberPage)
async def list_members(
    community_id: int,
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    role: CommunityRole | None = None,
) -> MemberPage:
    cursor, limit = page
    result = community_service.list_members(
        db, current_user.id, community_id, role=role, cursor=cursor, limit=limit
    )
    return MemberPage(
        members=[MemberResponse.model_validate(member) for member in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.put("/{community_id}/members/{member_id}/role", response_model=RoleUpdateResponse)
async def update_member_role(
    community_id: int,
    member_id: int,
    payload: RoleUpdate,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> RoleUpdateResponse:
    """Change a member's role.

    Raises:
        Forbidden: If the caller is not an ADMIN of the community
        NotFound: If ``member_id`` is not a member of this community
        ValidationError: If the role is not USER, MODERATOR or ADMIN
        LastAdminViolation: If the change would leave no ADMIN
    """
    member = community_service.update_member_role(
        db, current_user, community_id, member_id, payload.role
    )
    return RoleUpdateResponse(
        message="Member role updated successfully",
        member=MemberResponse.model_validate(member),
    )


@router.delete("/{community_id}/members/{member_id}", response_model=Message)
async def remove_member(
    community_id: int, member_id: int, db: SessionDep, current_user: CurrentUserDep
) -> Message:
    """Remove a member.

    Raises:
        Forbidden: If the caller is not an ADMIN or MODERATOR
        CreatorProtected: If the target is the community creator
        InsufficientRole: If a MODERATOR targets an ADMIN or MODERATOR
    """
    name = community_service.remove_member(db, current_user, community_id, member_id)
    return Message(message=f"{name} has been removed from the community")


@router.get("/{community_id}/requests", response_model=JoinRequestPage)
async def list_join_requests(
    community_id: int,
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    request_status: Annotated[RequestStatus, Query(alias="status")] = RequestStatus.PENDING,
) -> JoinRequestPage:
    cursor, limit = page
    result = community_service.list_join_requests(
        db, current_user, community_id, status=request_status, cursor=cursor, limit=limit
    )
    return JoinRequestPage(
        requests=[JoinRequestResponse.model_validate(row) for row in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.put("/{community_id}/requests/{request_id}", response_model=JoinRequestResponse)
async def handle_join_request(
    community_id: int,
    request_id: int,
    payload: DecisionRequest,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> JoinRequestResponse:
    request = community_service.handle_join_request(
        db, current_user, community_id, request_id, payload.action
    )
    return JoinRequestResponse.model_validate(request)


@router.delete("/{community_id}/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_join_request(
    community_id: int, request_id: int, db: SessionDep, current_user: CurrentUserDep
) -> None:
    community_service.cancel_join_request(db, current_user, community_id, request_id)


@router.post(
    "/{community_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_user(
    community_id: int, payload: InviteRequest, db: SessionDep, current_user: CurrentUserDep
) -> InvitationResponse:
    """Invite a user by username (ADMIN or MODERATOR only)."""
    invitation = community_service.invite_user(db, current_user, community_id, payload.username)
    return InvitationResponse.model_validate(invitation)


@router.post("/{community_id}/invitations/bulk", response_model=BulkInviteResponse)
async def invite_users(
    community_id: int, payload: BulkInviteRequest, db: SessionDep, current_user: CurrentUserDep
) -> BulkInviteResponse:
    """Invite up to 50 usernames at once (ADMIN or MODERATOR only).

    Usernames that cannot be invited are reported per reason instead of
    failing the batch.
    """
    result = community_service.invite_users(
        db, current_user, community_id, payload.usernames, note=payload.message
    )
    return BulkInviteResponse(
        invited=len(result.invitations),
        already_members=result.already_members,
        already_invited=result.already_invited,
        not_found=result.not_found,
        invitations=[
            InvitedUser(
                id=invitation.id,
                username=invitation.invitee.username,
                name=invitation.invitee.name,
            )
            for invitation in result.invitations
        ],
    )


@router.get("/{community_id}/invitations/stats", response_model=InvitationStatsResponse)
async def invitation_stats(
    community_id: int, db: SessionDep, current_user: CurrentUserDep
) -> InvitationStatsResponse:
    stats = community_service.invitation_stats(db, current_user, community_id)
    return InvitationStatsResponse(
        stats=InvitationCounts(
            pending=stats.pending,
            accepted=stats.accepted,
            rejected=stats.rejected,
            total=stats.total,
        ),
        recent_invitations=[SentInvitation.model_validate(row) for row in stats.recent],
    )
