"""Access policy: who may do what to which entity.

Rules are pure functions over facts the caller has already loaded, so each
one can be exercised without a database. Services gather the facts, call
:func:`authorize`, and :meth:`Decision.enforce` the result before mutating
anything.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, or_, select

from threadline import errors
from threadline.models import (
    Community,
    CommunityMember,
    CommunityRole,
    CommunityVisibility,
    Connection,
    ConnectionStatus,
    Follow,
    Post,
    PostVisibility,
)

logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({CommunityRole.ADMIN.value, CommunityRole.MODERATOR.value})


class Operation(str, enum.Enum):
    CHANGE_ROLE = "change_role"
    REMOVE_MEMBER = "remove_member"
    VIEW_POST = "view_post"
    EDIT_POST = "edit_post"
    DELETE_POST = "delete_post"
    RESPOND_CONNECTION = "respond_connection"
    VIEW_COMMUNITY = "view_community"
    UPDATE_COMMUNITY = "update_community"
    POST_IN_COMMUNITY = "post_in_community"
    MANAGE_JOIN_REQUESTS = "manage_join_requests"
    INVITE_MEMBER = "invite_member"
    VIEW_EVENTS = "view_events"
    CREATE_EVENT = "create_event"
    MANAGE_EVENT = "manage_event"


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check: allow, or deny with a reason."""

    allowed: bool
    reason: str | None = None
    error: type[errors.ThreadlineError] = errors.Forbidden

    def enforce(self) -> None:
        """Raise the mapped domain error when the decision is a denial."""
        if not self.allowed:
            raise self.error(self.reason)


ALLOW = Decision(True)


def deny(reason: str, error: type[errors.ThreadlineError] = errors.Forbidden) -> Decision:
    return Decision(False, reason, error)


@dataclass(frozen=True)
class RoleChange:
    """Facts for a role change; ``member`` is ``None`` when not found."""

    actor: CommunityMember | None
    member: CommunityMember | None
    new_role: str
    admin_count: int


@dataclass(frozen=True)
class MemberRemoval:
    actor: CommunityMember | None
    member: CommunityMember | None
    creator_id: int
    admin_count: int


@dataclass(frozen=True)
class PostAccess:
    """A post plus the relationship facts needed to decide visibility."""

    post: Post
    follows_author: bool = False
    community: Community | None = None
    membership: CommunityMember | None = None


@dataclass(frozen=True)
class CommunityAccess:
    community: Community
    membership: CommunityMember | None


@dataclass(frozen=True)
class EventAccess:
    """An event's creator plus the principal's membership in its community."""

    creator_id: int
    membership: CommunityMember | None


def _change_role(principal_id: int, target: RoleChange) -> Decision:
    if target.actor is None or target.actor.role != CommunityRole.ADMIN.value:
        return deny("Not authorized to change member roles")
    if target.member is None:
        return deny("Member not found", errors.NotFound)
    if target.new_role not in {role.value for role in CommunityRole}:
        return deny(
            "Invalid role. Must be USER, MODERATOR, or ADMIN", errors.ValidationError
        )
    demoting_admin = (
        target.member.role == CommunityRole.ADMIN.value
        and target.new_role != CommunityRole.ADMIN.value
    )
    if demoting_admin and target.admin_count <= 1:
        return deny(
            "Cannot change role: At least one admin is required",
            errors.LastAdminViolation,
        )
    return ALLOW


def _remove_member(principal_id: int, target: MemberRemoval) -> Decision:
    if target.actor is None or target.actor.role not in STAFF_ROLES:
        return deny("Not authorized to remove members")
    if target.member is None:
        return deny("Member not found", errors.NotFound)
    # Creator protection wins over every role rule, ADMIN actors included.
    if target.member.user_id == target.creator_id:
        return deny("Cannot remove community creator", errors.CreatorProtected)
    if (
        target.actor.role == CommunityRole.MODERATOR.value
        and target.member.role in STAFF_ROLES
    ):
        return deny(
            "Moderators cannot remove admins or other moderators",
            errors.InsufficientRole,
        )
    if target.member.role == CommunityRole.ADMIN.value and target.admin_count <= 1:
        return deny("Cannot remove the only admin", errors.LastAdminViolation)
    return ALLOW


def _community_visible(
    principal_id: int, community: Community, membership: CommunityMember | None
) -> bool:
    if community.visibility != CommunityVisibility.PRIVATE.value:
        return True
    return membership is not None or community.creator_id == principal_id


def _view_post(principal_id: int, target: PostAccess) -> Decision:
    post = target.post
    # A community post's audience is the community, not the author's followers.
    if target.community is not None:
        if _community_visible(principal_id, target.community, target.membership):
            return ALLOW
        return deny("Access denied to private community post")
    if (
        post.author_id == principal_id
        or target.follows_author
        or post.visibility == PostVisibility.PUBLIC.value
    ):
        return ALLOW
    return deny("This post is only visible to the author's followers")


def _author_only(action: str) -> Callable[[int, Post], Decision]:
    def rule(principal_id: int, post: Post) -> Decision:
        if post.author_id != principal_id:
            return deny(f"You can only {action} your own posts")
        return ALLOW

    return rule


def _respond_connection(principal_id: int, connection: Connection) -> Decision:
    if principal_id not in (connection.requester_id, connection.target_id):
        return deny("Connection not found", errors.NotFound)
    if connection.status != ConnectionStatus.PENDING.value:
        return deny("No pending connection request found", errors.AlreadyProcessed)
    if connection.target_id != principal_id:
        return deny("You can only respond to requests sent to you")
    return ALLOW


def _view_community(principal_id: int, target: CommunityAccess) -> Decision:
    if _community_visible(principal_id, target.community, target.membership):
        return ALLOW
    return deny("Access denied")


def _update_community(principal_id: int, target: CommunityAccess) -> Decision:
    if target.membership is None or target.membership.role != CommunityRole.ADMIN.value:
        return deny("Not authorized to update this community")
    return ALLOW


def _post_in_community(principal_id: int, target: CommunityAccess) -> Decision:
    if target.membership is None:
        return deny("Only members can post in this community")
    return ALLOW


def _staff_only(action: str) -> Callable[[int, CommunityAccess], Decision]:
    def rule(principal_id: int, target: CommunityAccess) -> Decision:
        if target.membership is None or target.membership.role not in STAFF_ROLES:
            return deny(f"Not authorized to {action}")
        return ALLOW

    return rule


def _view_events(principal_id: int, target: CommunityAccess) -> Decision:
    if target.membership is None:
        return deny("Not a member of this community")
    return ALLOW


def _manage_event(principal_id: int, target: EventAccess) -> Decision:
    if target.creator_id == principal_id:
        return ALLOW
    if target.membership is None or target.membership.role not in STAFF_ROLES:
        return deny("Insufficient permissions to manage this event")
    return ALLOW


_RULES: dict[Operation, Callable[[int, Any], Decision]] = {
    Operation.CHANGE_ROLE: _change_role,
    Operation.REMOVE_MEMBER: _remove_member,
    Operation.VIEW_POST: _view_post,
    Operation.EDIT_POST: _author_only("edit"),
    Operation.DELETE_POST: _author_only("delete"),
    Operation.RESPOND_CONNECTION: _respond_connection,
    Operation.VIEW_COMMUNITY: _view_community,
    Operation.UPDATE_COMMUNITY: _update_community,
    Operation.POST_IN_COMMUNITY: _post_in_community,
    Operation.MANAGE_JOIN_REQUESTS: _staff_only("handle join requests"),
    Operation.INVITE_MEMBER: _staff_only("invite users"),
    Operation.VIEW_EVENTS: _view_events,
    Operation.CREATE_EVENT: _staff_only("create events"),
    Operation.MANAGE_EVENT: _manage_event,
}


def authorize(principal_id: int, operation: Operation, target: Any) -> Decision:
    """Evaluate ``operation`` by ``principal_id`` against ``target``.

    Args:
        principal_id: Authenticated user id.
        operation: The operation being attempted.
        target: Operation-specific facts (see the dataclasses above, or the
            bare ``Post``/``Connection`` for the author and response rules).

    Returns:
        A :class:`Decision`; callers normally chain ``.enforce()``.
    """
    decision = _RULES[operation](principal_id, target)
    if not decision.allowed:
        logger.info(
            "Denied %s for user %s: %s", operation.value, principal_id, decision.reason
        )
    return decision


def feed_visibility_clause(principal_id: int) -> ColumnElement[bool]:
    """SQL predicate: posts ``principal_id`` may see in a feed.

    Author is the principal, OR the principal follows the author, OR the
    post is public. Evaluated once inside the feed query.
    """
    followed = select(Follow.following_id).where(Follow.follower_id == principal_id)
    return or_(
        Post.author_id == principal_id,
        Post.author_id.in_(followed),
        Post.visibility == PostVisibility.PUBLIC.value,
    )


def readable_community_clause(principal_id: int) -> ColumnElement[bool]:
    """SQL predicate keeping private-community posts away from outsiders."""
    open_or_created = select(Community.id).where(
        or_(
            Community.visibility != CommunityVisibility.PRIVATE.value,
            Community.creator_id == principal_id,
        )
    )
    member_of = select(CommunityMember.community_id).where(
        CommunityMember.user_id == principal_id
    )
    return or_(
        Post.community_id.is_(None),
        Post.community_id.in_(open_or_created),
        Post.community_id.in_(member_of),
    )
