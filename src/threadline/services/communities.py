"""Community lifecycle, membership, join requests and invitations."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from threadline import errors
from threadline.models import (
    Community,
    CommunityInvitation,
    CommunityMember,
    CommunityRole,
    CommunityVisibility,
    JoinRequest,
    NotificationType,
    RequestStatus,
    User,
)
from threadline.services import notifications
from threadline.services.pagination import Page, paginate
from threadline.services.policy import (
    CommunityAccess,
    MemberRemoval,
    Operation,
    RoleChange,
    authorize,
)

logger = logging.getLogger(__name__)

DECISIONS = {"accept": RequestStatus.ACCEPTED, "reject": RequestStatus.REJECTED}


def get_community_or_404(db: Session, community_id: int) -> Community:
    community = db.get(Community, community_id)
    if community is None:
        raise errors.NotFound("Community not found")
    return community


def get_membership(db: Session, user_id: int, community_id: int) -> CommunityMember | None:
    return db.scalar(
        select(CommunityMember).where(
            CommunityMember.user_id == user_id,
            CommunityMember.community_id == community_id,
        )
    )


def _locked_admin_count(db: Session, community_id: int) -> int:
    """Count ADMIN rows, locking them until the transaction ends."""
    admins = db.scalars(
        select(CommunityMember)
        .where(
            CommunityMember.community_id == community_id,
            CommunityMember.role == CommunityRole.ADMIN.value,
        )
        .with_for_update()
    ).all()
    return len(admins)


def _parse_decision(action: str) -> RequestStatus:
    decision = DECISIONS.get(action)
    if decision is None:
        raise errors.ValidationError("Invalid action")
    return decision


def _add_member(
    db: Session,
    user_id: int,
    community_id: int,
    role: CommunityRole = CommunityRole.USER,
    *,
    tolerate_existing: bool = False,
) -> CommunityMember | None:
    """Insert a membership inside a SAVEPOINT.

    A duplicate raises ``AlreadyMember`` unless ``tolerate_existing``, in
    which case the existing row is returned.
    """
    member = CommunityMember(user_id=user_id, community_id=community_id, role=role.value)
    try:
        with db.begin_nested():
            db.add(member)
    except IntegrityError as exc:
        if not tolerate_existing:
            db.rollback()
            raise errors.AlreadyMember() from exc
        return get_membership(db, user_id, community_id)
    return member


def _announce_new_member(db: Session, community: Community, user: User) -> None:
    notifications.notify(
        db,
        actor_id=user.id,
        recipient_id=community.creator_id,
        kind=NotificationType.COMMUNITY_NEW_MEMBER,
        message=f"{user.display_name} joined {community.name}",
        community_id=community.id,
    )


# -- communities -------------------------------------------------------------


def create_community(
    db: Session,
    creator: User,
    *,
    name: str,
    description: str | None = None,
    visibility: CommunityVisibility = CommunityVisibility.PUBLIC,
    image: str | None = None,
) -> Community:
    """Create a community with ``creator`` as its first ADMIN.

    Both rows are written in one transaction; a taken name raises
    ``Conflict``.
    """
    name = name.strip()
    if not name:
        raise errors.ValidationError("Community name is required")
    if db.scalar(select(Community.id).where(Community.name == name)) is not None:
        raise errors.Conflict("Community name already exists")

    community = Community(
        name=name,
        description=description,
        visibility=visibility.value,
        image=image,
        creator_id=creator.id,
    )
    try:
        with db.begin_nested():
            db.add(community)
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict("Community name already exists") from exc

    db.add(
        CommunityMember(
            user_id=creator.id, community_id=community.id, role=CommunityRole.ADMIN.value
        )
    )
    db.commit()
    db.refresh(community)
    logger.info("User %s created community %s", creator.id, community.id)
    return community


def list_communities(
    db: Session,
    principal_id: int,
    *,
    search: str | None = None,
    visibility: CommunityVisibility | None = None,
    mine: bool = False,
    cursor: int | None,
    limit: int,
) -> Page[Community]:
    """Newest communities first. PRIVATE ones are listed so they can be requested."""
    stmt = select(Community).options(joinedload(Community.creator))
    if search:
        stmt = stmt.where(Community.name.ilike(f"%{search.strip()}%"))
    if visibility is not None:
        stmt = stmt.where(Community.visibility == visibility.value)
    if mine:
        member_of = select(CommunityMember.community_id).where(
            CommunityMember.user_id == principal_id
        )
        stmt = stmt.where(Community.id.in_(member_of))
    return paginate(db, stmt, Community.id, cursor=cursor, limit=limit)


def member_counts(db: Session, community_ids: Sequence[int]) -> dict[int, int]:
    if not community_ids:
        return {}
    rows = db.execute(
        select(CommunityMember.community_id, func.count(CommunityMember.id))
        .where(CommunityMember.community_id.in_(community_ids))
        .group_by(CommunityMember.community_id)
    ).all()
    return {community_id: count for community_id, count in rows}


def get_community(
    db: Session, principal_id: int, community_id: int
) -> tuple[Community, CommunityMember | None]:
    """Return the community and the principal's membership (if any)."""
    community = get_community_or_404(db, community_id)
    membership = get_membership(db, principal_id, community_id)
    authorize(
        principal_id, Operation.VIEW_COMMUNITY, CommunityAccess(community, membership)
    ).enforce()
    return community, membership


def update_community(
    db: Session,
    actor: User,
    community_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
    visibility: CommunityVisibility | None = None,
    image: str | None = None,
) -> Community:
    community = get_community_or_404(db, community_id)
    access = CommunityAccess(community, get_membership(db, actor.id, community_id))
    authorize(actor.id, Operation.UPDATE_COMMUNITY, access).enforce()

    if name is not None and name.strip() != community.name:
        name = name.strip()
        if not name:
            raise errors.ValidationError("Community name is required")
        taken = db.scalar(
            select(Community.id).where(Community.name == name, Community.id != community.id)
        )
        if taken is not None:
            raise errors.Conflict("Community name already exists")
        community.name = name
    if description is not None:
        community.description = description
    if visibility is not None:
        community.visibility = visibility.value
    if image is not None:
        community.image = image

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict("Community name already exists") from exc
    db.refresh(community)
    logger.info("User %s updated community %s", actor.id, community_id)
    return community


# -- membership --------------------------------------------------------------


@dataclass
class JoinOutcome:
    """Result of a join: a membership (PUBLIC) or a pending request (PRIVATE)."""

    status: str
    member: CommunityMember | None = None
    request: JoinRequest | None = None


def join_community(db: Session, user: User, community_id: int) -> JoinOutcome:
    """Join a PUBLIC community or ask to join a PRIVATE one.

    Raises:
        AlreadyMember: The user already belongs to the community.
        DuplicateRequest: A PENDING join request already exists.
    """
    community = get_community_or_404(db, community_id)
    if get_membership(db, user.id, community_id) is not None:
        raise errors.AlreadyMember()

    if community.visibility == CommunityVisibility.PUBLIC.value:
        member = _add_member(db, user.id, community_id)
        _announce_new_member(db, community, user)
        db.commit()
        logger.info("User %s joined community %s", user.id, community_id)
        return JoinOutcome(status="joined", member=member)

    request = db.scalar(
        select(JoinRequest)
        .where(JoinRequest.user_id == user.id, JoinRequest.community_id == community_id)
        .with_for_update()
    )
    if request is not None:
        if request.status == RequestStatus.PENDING.value:
            raise errors.DuplicateRequest("Join request already submitted")
        request.status = RequestStatus.PENDING.value
    else:
        request = JoinRequest(user_id=user.id, community_id=community_id)
        try:
            with db.begin_nested():
                db.add(request)
        except IntegrityError as exc:
            db.rollback()
            raise errors.DuplicateRequest("Join request already submitted") from exc

    db.commit()
    db.refresh(request)
    logger.info("User %s requested to join community %s", user.id, community_id)
    return JoinOutcome(status="requested", request=request)


def leave_community(db: Session, user: User, community_id: int) -> None:
    get_community_or_404(db, community_id)
    membership = get_membership(db, user.id, community_id)
    if membership is None:
        raise errors.NotFound("Not a member of this community")
    if (
        membership.role == CommunityRole.ADMIN.value
        and _locked_admin_count(db, community_id) <= 1
    ):
        raise errors.LastAdminViolation(
            "Cannot leave: You are the only admin. Please transfer ownership first."
        )
    db.delete(membership)
    db.commit()
    logger.info("User %s left community %s", user.id, community_id)


def list_members(
    db: Session,
    principal_id: int,
    community_id: int,
    *,
    role: CommunityRole | None = None,
    cursor: int | None,
    limit: int,
) -> Page[CommunityMember]:
    get_community(db, principal_id, community_id)
    stmt = (
        select(CommunityMember)
        .options(joinedload(CommunityMember.user))
        .where(CommunityMember.community_id == community_id)
    )
    if role is not None:
        stmt = stmt.where(CommunityMember.role == role.value)
    return paginate(db, stmt, CommunityMember.id, cursor=cursor, limit=limit)


def _member_in(db: Session, member_id: int, community_id: int) -> CommunityMember | None:
    member = db.scalar(
        select(CommunityMember)
        .options(joinedload(CommunityMember.user))
        .where(CommunityMember.id == member_id)
    )
    if member is None or member.community_id != community_id:
        return None
    return member


def update_member_role(
    db: Session, actor: User, community_id: int, member_id: int, new_role: str
) -> CommunityMember:
    """Change a member's role; only ADMINs may, and one ADMIN must remain.

    The ADMIN rows are locked while counting so two concurrent demotions
    cannot both see a second admin.
    """
    get_community_or_404(db, community_id)
    actor_membership = get_membership(db, actor.id, community_id)
    member = _member_in(db, member_id, community_id)
    admin_count = 0
    if member is not None and member.role == CommunityRole.ADMIN.value:
        admin_count = _locked_admin_count(db, community_id)

    change = RoleChange(
        actor=actor_membership, member=member, new_role=new_role, admin_count=admin_count
    )
    authorize(actor.id, Operation.CHANGE_ROLE, change).enforce()

    member.role = new_role
    db.commit()
    db.refresh(member)
    logger.info(
        "User %s set role of member %s in community %s to %s",
        actor.id, member_id, community_id, new_role,
    )
    return member


def remove_member(db: Session, actor: User, community_id: int, member_id: int) -> str:
    """Remove a member; returns the removed user's display name."""
    community = get_community_or_404(db, community_id)
    actor_membership = get_membership(db, actor.id, community_id)
    member = _member_in(db, member_id, community_id)
    admin_count = 0
    if member is not None and member.role == CommunityRole.ADMIN.value:
        admin_count = _locked_admin_count(db, community_id)

    removal = MemberRemoval(
        actor=actor_membership,
        member=member,
        creator_id=community.creator_id,
        admin_count=admin_count,
    )
    authorize(actor.id, Operation.REMOVE_MEMBER, removal).enforce()

    removed_name = member.user.name or member.user.username or f"user-{member.user_id}"
    db.delete(member)
    db.commit()
    logger.info(
        "User %s removed member %s from community %s", actor.id, member_id, community_id
    )
    return removed_name


# -- join requests -----------------------------------------------------------


def _require_staff(db: Session, actor: User, community: Community, operation: Operation) -> None:
    access = CommunityAccess(community, get_membership(db, actor.id, community.id))
    authorize(actor.id, operation, access).enforce()


def list_join_requests(
    db: Session,
    actor: User,
    community_id: int,
    *,
    status: RequestStatus = RequestStatus.PENDING,
    cursor: int | None,
    limit: int,
) -> Page[JoinRequest]:
    community = get_community_or_404(db, community_id)
    _require_staff(db, actor, community, Operation.MANAGE_JOIN_REQUESTS)
    stmt = (
        select(JoinRequest)
        .options(joinedload(JoinRequest.user))
        .where(JoinRequest.community_id == community_id, JoinRequest.status == status.value)
    )
    return paginate(db, stmt, JoinRequest.id, cursor=cursor, limit=limit)


def handle_join_request(
    db: Session, actor: User, community_id: int, request_id: int, action: str
) -> JoinRequest:
    """Accept or reject a PENDING join request.

    Accepting writes the USER membership in the same transaction; a
    membership that already exists is kept as is.
    """
    decision = _parse_decision(action)
    community = get_community_or_404(db, community_id)
    request = db.scalar(
        select(JoinRequest)
        .where(JoinRequest.id == request_id, JoinRequest.community_id == community_id)
        .with_for_update()
    )
    if request is None:
        raise errors.NotFound("Join request not found")
    _require_staff(db, actor, community, Operation.MANAGE_JOIN_REQUESTS)
    if request.status != RequestStatus.PENDING.value:
        raise errors.AlreadyProcessed()

    request.status = decision.value
    if decision is RequestStatus.ACCEPTED:
        _add_member(db, request.user_id, community_id, tolerate_existing=True)
        _announce_new_member(db, community, request.user)
    db.commit()
    db.refresh(request)
    logger.info(
        "User %s %sed join request %s for community %s",
        actor.id, action, request_id, community_id,
    )
    return request


def cancel_join_request(db: Session, user: User, community_id: int, request_id: int) -> None:
    """Withdraw the caller's own PENDING request."""
    request = db.scalar(
        select(JoinRequest).where(
            JoinRequest.id == request_id, JoinRequest.community_id == community_id
        )
    )
    if request is None:
        raise errors.NotFound("Join request not found")
    if request.user_id != user.id:
        raise errors.Forbidden("You can only cancel your own join request")
    if request.status != RequestStatus.PENDING.value:
        raise errors.NotFound("No pending join request found")
    db.delete(request)
    db.commit()
    logger.info("User %s cancelled join request %s", user.id, request_id)


# -- invitations -------------------------------------------------------------


# Upper bound on usernames accepted by one bulk invitation.
MAX_BULK_INVITES = 50
RECENT_INVITATIONS = 20


@dataclass
class BulkInviteResult:
    invitations: list[CommunityInvitation] = field(default_factory=list)
    already_members: list[str] = field(default_factory=list)
    already_invited: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)


@dataclass
class InvitationStats:
    pending: int
    accepted: int
    rejected: int
    recent: list[CommunityInvitation]

    @property
    def total(self) -> int:
        return self.pending + self.accepted + self.rejected


def _arm_invitation(
    db: Session,
    inviter: User,
    community: Community,
    invitee: User,
    note: str | None = None,
) -> CommunityInvitation:
    """Create the invitation row, or re-arm an answered one, and notify.

    Raises:
        DuplicateRequest: If a PENDING invitation already exists
    """
    invitation = db.scalar(
        select(CommunityInvitation)
        .where(
            CommunityInvitation.community_id == community.id,
            CommunityInvitation.invitee_id == invitee.id,
        )
        .with_for_update()
    )
    if invitation is not None:
        if invitation.status == RequestStatus.PENDING.value:
            raise errors.DuplicateRequest("Invitation already sent")
        invitation.inviter_id = inviter.id
        invitation.status = RequestStatus.PENDING.value
    else:
        invitation = CommunityInvitation(
            community_id=community.id, inviter_id=inviter.id, invitee_id=invitee.id
        )
        try:
            with db.begin_nested():
                db.add(invitation)
        except IntegrityError as exc:
            raise errors.DuplicateRequest("Invitation already sent") from exc

    data: dict[str, Any] = {"invitationId": invitation.id}
    if note:
        data["note"] = note
    notifications.notify(
        db,
        actor_id=inviter.id,
        recipient_id=invitee.id,
        kind=NotificationType.COMMUNITY_INVITATION,
        message=f"{inviter.display_name} invited you to join {community.name}",
        data=data,
        community_id=community.id,
    )
    return invitation


def invite_user(
    db: Session, inviter: User, community_id: int, username: str
) -> CommunityInvitation:
    """Invite a user by username; a previously answered invitation is re-armed."""
    community = get_community_or_404(db, community_id)
    _require_staff(db, inviter, community, Operation.INVITE_MEMBER)

    invitee = db.scalar(select(User).where(User.username == username.strip().lower()))
    if invitee is None:
        raise errors.NotFound("User not found")
    if get_membership(db, invitee.id, community_id) is not None:
        raise errors.AlreadyMember("User is already a member")

    try:
        invitation = _arm_invitation(db, inviter, community, invitee)
    except errors.DuplicateRequest:
        db.rollback()
        raise
    db.commit()
    db.refresh(invitation)
    logger.info(
        "User %s invited user %s to community %s", inviter.id, invitee.id, community_id
    )
    return invitation


def invite_users(
    db: Session,
    inviter: User,
    community_id: int,
    usernames: Sequence[str],
    *,
    note: str | None = None,
) -> BulkInviteResult:
    """Invite several users at once, sorting out those who cannot be invited.

    Unknown usernames, existing members and users with a PENDING
    invitation are reported back instead of failing the whole batch.
    """
    community = get_community_or_404(db, community_id)
    _require_staff(db, inviter, community, Operation.INVITE_MEMBER)

    wanted = list(dict.fromkeys(name.strip().lower() for name in usernames if name.strip()))
    if not wanted:
        raise errors.ValidationError("At least one username is required")
    if len(wanted) > MAX_BULK_INVITES:
        raise errors.ValidationError(
            f"Cannot invite more than {MAX_BULK_INVITES} users at once"
        )

    found = {
        user.username: user
        for user in db.scalars(select(User).where(User.username.in_(wanted)))
    }
    member_ids = set(
        db.scalars(
            select(CommunityMember.user_id).where(
                CommunityMember.community_id == community_id,
                CommunityMember.user_id.in_([user.id for user in found.values()]),
            )
        )
    )

    result = BulkInviteResult()
    for username in wanted:
        invitee = found.get(username)
        if invitee is None:
            result.not_found.append(username)
        elif invitee.id in member_ids:
            result.already_members.append(username)
        else:
            try:
                result.invitations.append(
                    _arm_invitation(db, inviter, community, invitee, note)
                )
            except errors.DuplicateRequest:
                result.already_invited.append(username)

    db.commit()
    for invitation in result.invitations:
        db.refresh(invitation)
    logger.info(
        "User %s invited %d users to community %s",
        inviter.id,
        len(result.invitations),
        community_id,
    )
    return result


def invitation_stats(db: Session, actor: User, community_id: int) -> InvitationStats:
    """Invitation counts per status and the most recent invitations (staff only)."""
    community = get_community_or_404(db, community_id)
    _require_staff(db, actor, community, Operation.INVITE_MEMBER)

    counts = dict(
        db.execute(
            select(CommunityInvitation.status, func.count(CommunityInvitation.id))
            .where(CommunityInvitation.community_id == community_id)
            .group_by(CommunityInvitation.status)
        ).all()
    )
    recent = db.scalars(
        select(CommunityInvitation)
        .options(
            joinedload(CommunityInvitation.community),
            joinedload(CommunityInvitation.inviter),
            joinedload(CommunityInvitation.invitee),
        )
        .where(CommunityInvitation.community_id == community_id)
        .order_by(CommunityInvitation.id.desc())
        .limit(RECENT_INVITATIONS)
    ).all()
    return InvitationStats(
        pending=counts.get(RequestStatus.PENDING.value, 0),
        accepted=counts.get(RequestStatus.ACCEPTED.value, 0),
        rejected=counts.get(RequestStatus.REJECTED.value, 0),
        recent=list(recent),
    )


def list_invitations(
    db: Session,
    user_id: int,
    *,
    status: RequestStatus = RequestStatus.PENDING,
    cursor: int | None,
    limit: int,
) -> Page[CommunityInvitation]:
    """Invitations addressed to ``user_id``, newest first."""
    stmt = (
        select(CommunityInvitation)
        .options(
            joinedload(CommunityInvitation.community),
            joinedload(CommunityInvitation.inviter),
        )
        .where(
            CommunityInvitation.invitee_id == user_id,
            CommunityInvitation.status == status.value,
        )
    )
    return paginate(db, stmt, CommunityInvitation.id, cursor=cursor, limit=limit)


def respond_invitation(
    db: Session, invitee: User, invitation_id: int, action: str
) -> CommunityInvitation:
    decision = _parse_decision(action)
    invitation = db.scalar(
        select(CommunityInvitation)
        .where(CommunityInvitation.id == invitation_id)
        .with_for_update()
    )
    if invitation is None:
        raise errors.NotFound("Invitation not found")
    if invitation.invitee_id != invitee.id:
        raise errors.Forbidden("Not authorized to handle this invitation")
    if invitation.status != RequestStatus.PENDING.value:
        raise errors.AlreadyProcessed()

    invitation.status = decision.value
    if decision is RequestStatus.ACCEPTED:
        _add_member(db, invitee.id, invitation.community_id, tolerate_existing=True)
        _announce_new_member(db, invitation.community, invitee)
    db.commit()
    db.refresh(invitation)
    logger.info("User %s %sed invitation %s", invitee.id, action, invitation_id)
    return invitation
