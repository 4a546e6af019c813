"""Unit tests for the access policy rules (no database involved)."""

import logging

import pytest

from threadline import errors
from threadline.models import (
    Community,
    CommunityMember,
    Connection,
    ConnectionStatus,
    Post,
)
from threadline.services.policy import (
    CommunityAccess,
    MemberRemoval,
    Operation,
    PostAccess,
    RoleChange,
    authorize,
)


def _member(user_id: int, role: str) -> CommunityMember:
    return CommunityMember(id=user_id * 10, user_id=user_id, community_id=1, role=role)


def _post(author_id: int = 1, visibility: str = "followers", community_id=None) -> Post:
    return Post(id=5, author_id=author_id, visibility=visibility, community_id=community_id)


def test_admin_may_promote_member() -> None:
    change = RoleChange(
        actor=_member(1, "ADMIN"), member=_member(2, "USER"), new_role="MODERATOR", admin_count=1
    )
    assert authorize(1, Operation.CHANGE_ROLE, change).allowed


def test_moderator_cannot_change_roles() -> None:
    change = RoleChange(
        actor=_member(1, "MODERATOR"), member=_member(2, "USER"), new_role="ADMIN", admin_count=1
    )
    decision = authorize(1, Operation.CHANGE_ROLE, change)
    assert not decision.allowed
    assert decision.error is errors.Forbidden


def test_role_change_checks_membership_before_role_value() -> None:
    change = RoleChange(actor=_member(1, "ADMIN"), member=None, new_role="OWNER", admin_count=1)
    assert authorize(1, Operation.CHANGE_ROLE, change).error is errors.NotFound


def test_invalid_role_is_a_validation_error() -> None:
    change = RoleChange(
        actor=_member(1, "ADMIN"), member=_member(2, "USER"), new_role="OWNER", admin_count=1
    )
    with pytest.raises(errors.ValidationError, match="Invalid role"):
        authorize(1, Operation.CHANGE_ROLE, change).enforce()


def test_demoting_last_admin_is_rejected() -> None:
    admin = _member(1, "ADMIN")
    change = RoleChange(actor=admin, member=admin, new_role="USER", admin_count=1)
    with pytest.raises(errors.LastAdminViolation):
        authorize(1, Operation.CHANGE_ROLE, change).enforce()


def test_demoting_one_of_two_admins_is_allowed() -> None:
    change = RoleChange(
        actor=_member(1, "ADMIN"), member=_member(2, "ADMIN"), new_role="USER", admin_count=2
    )
    assert authorize(1, Operation.CHANGE_ROLE, change).allowed


def test_creator_is_protected_even_from_admins() -> None:
    removal = MemberRemoval(
        actor=_member(2, "ADMIN"), member=_member(1, "ADMIN"), creator_id=1, admin_count=2
    )
    decision = authorize(2, Operation.REMOVE_MEMBER, removal)
    assert decision.error is errors.CreatorProtected
    assert decision.reason == "Cannot remove community creator"


def test_moderator_cannot_remove_admin() -> None:
    removal = MemberRemoval(
        actor=_member(3, "MODERATOR"), member=_member(2, "ADMIN"), creator_id=1, admin_count=2
    )
    with pytest.raises(errors.InsufficientRole):
        authorize(3, Operation.REMOVE_MEMBER, removal).enforce()


def test_moderator_cannot_remove_moderator() -> None:
    removal = MemberRemoval(
        actor=_member(3, "MODERATOR"), member=_member(4, "MODERATOR"), creator_id=1, admin_count=1
    )
    assert authorize(3, Operation.REMOVE_MEMBER, removal).error is errors.InsufficientRole


def test_moderator_may_remove_plain_member() -> None:
    removal = MemberRemoval(
        actor=_member(3, "MODERATOR"), member=_member(4, "USER"), creator_id=1, admin_count=1
    )
    assert authorize(3, Operation.REMOVE_MEMBER, removal).allowed


def test_plain_member_cannot_remove_anyone() -> None:
    removal = MemberRemoval(
        actor=_member(4, "USER"), member=_member(5, "USER"), creator_id=1, admin_count=1
    )
    assert authorize(4, Operation.REMOVE_MEMBER, removal).error is errors.Forbidden


def test_followers_post_hidden_from_stranger() -> None:
    access = PostAccess(post=_post(author_id=1))
    assert authorize(2, Operation.VIEW_POST, access).error is errors.Forbidden


def test_followers_post_visible_to_follower_and_author() -> None:
    post = _post(author_id=1)
    assert authorize(2, Operation.VIEW_POST, PostAccess(post=post, follows_author=True)).allowed
    assert authorize(1, Operation.VIEW_POST, PostAccess(post=post)).allowed


def test_public_post_visible_to_anyone() -> None:
    access = PostAccess(post=_post(author_id=1, visibility="public"))
    assert authorize(99, Operation.VIEW_POST, access).allowed


def test_private_community_post_needs_membership() -> None:
    community = Community(id=7, visibility="PRIVATE", creator_id=1)
    post = _post(author_id=1, visibility="public", community_id=7)
    outsider = PostAccess(post=post, community=community)
    member = PostAccess(post=post, community=community, membership=_member(2, "USER"))
    assert not authorize(3, Operation.VIEW_POST, outsider).allowed
    assert authorize(2, Operation.VIEW_POST, member).allowed


def test_only_author_may_edit_or_delete() -> None:
    post = _post(author_id=1)
    assert authorize(1, Operation.EDIT_POST, post).allowed
    assert not authorize(2, Operation.EDIT_POST, post).allowed
    assert not authorize(2, Operation.DELETE_POST, post).allowed


def test_connection_response_rules() -> None:
    pending = Connection.between(1, 2)
    assert authorize(2, Operation.RESPOND_CONNECTION, pending).allowed
    assert authorize(1, Operation.RESPOND_CONNECTION, pending).error is errors.Forbidden
    assert authorize(3, Operation.RESPOND_CONNECTION, pending).error is errors.NotFound

    pending.status = ConnectionStatus.ACCEPTED.value
    assert authorize(2, Operation.RESPOND_CONNECTION, pending).error is errors.AlreadyProcessed


def test_private_community_visibility() -> None:
    community = Community(id=7, visibility="PRIVATE", creator_id=1)
    assert not authorize(2, Operation.VIEW_COMMUNITY, CommunityAccess(community, None)).allowed
    assert authorize(1, Operation.VIEW_COMMUNITY, CommunityAccess(community, None)).allowed
    assert authorize(
        2, Operation.VIEW_COMMUNITY, CommunityAccess(community, _member(2, "USER"))
    ).allowed


def test_staff_only_operations() -> None:
    community = Community(id=7, visibility="PUBLIC", creator_id=1)
    for role, allowed in (("ADMIN", True), ("MODERATOR", True), ("USER", False)):
        access = CommunityAccess(community, _member(2, role))
        assert authorize(2, Operation.INVITE_MEMBER, access).allowed is allowed
        assert authorize(2, Operation.MANAGE_JOIN_REQUESTS, access).allowed is allowed
    assert not authorize(
        2, Operation.UPDATE_COMMUNITY, CommunityAccess(community, _member(2, "MODERATOR"))
    ).allowed


def test_denials_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="threadline.services.policy")
    authorize(2, Operation.EDIT_POST, _post(author_id=1))
    assert "Denied edit_post for user 2" in caplog.text
