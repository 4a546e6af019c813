"""Follow edges and the connection state machine."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Select, case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from threadline import errors
from threadline.models import (
    Connection,
    ConnectionStatus,
    Follow,
    NotificationType,
    User,
)
from threadline.services import notifications
from threadline.services.pagination import Page, paginate
from threadline.services.policy import Operation, authorize

logger = logging.getLogger(__name__)

RESPONSES = {
    "accept": ConnectionStatus.ACCEPTED,
    "reject": ConnectionStatus.REJECTED,
    "block": ConnectionStatus.BLOCKED,
}


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise errors.NotFound("User not found")
    return user


# -- follows -----------------------------------------------------------------


def toggle_follow(db: Session, follower: User, target_user_id: int, action: str) -> str:
    """Create or delete the follower -> target edge.

    ``follow`` on an existing edge raises ``AlreadyFollowing`` (the unique
    constraint decides); ``unfollow`` of a missing edge is a no-op.
    """
    if action not in ("follow", "unfollow"):
        raise errors.ValidationError("Invalid action")
    if target_user_id == follower.id:
        raise errors.ValidationError("Cannot follow yourself")
    get_user_or_404(db, target_user_id)

    if action == "follow":
        try:
            with db.begin_nested():
                db.add(Follow(follower_id=follower.id, following_id=target_user_id))
        except IntegrityError as exc:
            db.rollback()
            raise errors.AlreadyFollowing() from exc
    else:
        db.execute(
            delete(Follow).where(
                Follow.follower_id == follower.id, Follow.following_id == target_user_id
            )
        )

    db.commit()
    logger.info("User %s %sed user %s", follower.id, action, target_user_id)
    return action


def is_following(db: Session, follower_id: int, following_id: int) -> bool:
    stmt = select(Follow.id).where(
        Follow.follower_id == follower_id, Follow.following_id == following_id
    )
    return db.scalar(stmt) is not None


def follow_counts(db: Session, user_id: int) -> tuple[int, int]:
    """Return ``(followers, following)`` for ``user_id``."""
    followers = db.scalar(select(func.count(Follow.id)).where(Follow.following_id == user_id))
    following = db.scalar(select(func.count(Follow.id)).where(Follow.follower_id == user_id))
    return followers or 0, following or 0


def list_followers(db: Session, user_id: int, *, cursor: int | None, limit: int) -> Page[Follow]:
    get_user_or_404(db, user_id)
    stmt = (
        select(Follow)
        .options(joinedload(Follow.follower))
        .where(Follow.following_id == user_id)
    )
    return paginate(db, stmt, Follow.id, cursor=cursor, limit=limit)


def list_following(db: Session, user_id: int, *, cursor: int | None, limit: int) -> Page[Follow]:
    get_user_or_404(db, user_id)
    stmt = (
        select(Follow)
        .options(joinedload(Follow.following))
        .where(Follow.follower_id == user_id)
    )
    return paginate(db, stmt, Follow.id, cursor=cursor, limit=limit)


# -- connections -------------------------------------------------------------


def _pair_stmt(user_a: int, user_b: int) -> Select[tuple[Connection]]:
    low, high = sorted((user_a, user_b))
    return select(Connection).where(
        Connection.low_user_id == low, Connection.high_user_id == high
    )


def _with_parties(stmt: Select[tuple[Connection]]) -> Select[tuple[Connection]]:
    return stmt.options(joinedload(Connection.requester), joinedload(Connection.target))


def request_connection(db: Session, requester: User, target_user_id: int) -> Connection:
    """Open a PENDING connection from ``requester`` to ``target_user_id``.

    Raises:
        SelfConnection: Requester and target are the same user.
        NotFound: The target does not exist.
        DuplicateConnection: Any row already exists for the unordered pair,
            including one inserted concurrently.
    """
    if target_user_id == requester.id:
        raise errors.SelfConnection()
    get_user_or_404(db, target_user_id)

    if db.scalar(_pair_stmt(requester.id, target_user_id)) is not None:
        raise errors.DuplicateConnection()

    connection = Connection.between(requester.id, target_user_id)
    try:
        with db.begin_nested():
            db.add(connection)
    except IntegrityError as exc:
        db.rollback()
        raise errors.DuplicateConnection() from exc

    notifications.notify(
        db,
        actor_id=requester.id,
        recipient_id=target_user_id,
        kind=NotificationType.CONNECTION_REQUEST,
        message=f"{requester.display_name} sent you a connection request",
        data={"connectionId": connection.id},
    )
    db.commit()
    db.refresh(connection)
    logger.info(
        "User %s requested connection %s with user %s",
        requester.id, connection.id, target_user_id,
    )
    return connection


def respond_connection(
    db: Session, responder: User, connection_id: int, action: str
) -> Connection:
    """Move a PENDING connection to ACCEPTED, REJECTED or BLOCKED.

    Only the target of the request may respond; the row is locked for the
    duration so two responses cannot both apply.
    """
    new_status = RESPONSES.get(action)
    if new_status is None:
        raise errors.ValidationError("Invalid action")

    connection = db.scalar(
        select(Connection).where(Connection.id == connection_id).with_for_update()
    )
    if connection is None:
        raise errors.NotFound("Connection not found")
    authorize(responder.id, Operation.RESPOND_CONNECTION, connection).enforce()

    connection.status = new_status.value
    if new_status is not ConnectionStatus.BLOCKED:
        accepted = new_status is ConnectionStatus.ACCEPTED
        notifications.notify(
            db,
            actor_id=responder.id,
            recipient_id=connection.requester_id,
            kind=(
                NotificationType.CONNECTION_ACCEPTED
                if accepted
                else NotificationType.CONNECTION_REJECTED
            ),
            message=(
                f"{responder.display_name} "
                f"{'accepted' if accepted else 'declined'} your connection request"
            ),
            data={"connectionId": connection.id},
        )
    db.commit()
    db.refresh(connection)
    logger.info("User %s %sed connection %s", responder.id, action, connection.id)
    return connection


def remove_connection(db: Session, user: User, other_user_id: int) -> None:
    """Delete an ACCEPTED connection from either side."""
    connection = db.scalar(
        _pair_stmt(user.id, other_user_id).where(
            Connection.status == ConnectionStatus.ACCEPTED.value
        )
    )
    if connection is None:
        raise errors.NotFound("Connection not found")
    db.delete(connection)
    db.commit()
    logger.info("User %s removed connection with user %s", user.id, other_user_id)


def connection_action(
    db: Session, user: User, target_user_id: int, action: str
) -> Connection | None:
    """Dispatch the by-user connection actions.

    ``accept``/``reject``/``block`` apply to the PENDING request the other
    user sent to ``user``. Returns ``None`` for ``remove``.
    """
    if action == "send_request":
        return request_connection(db, user, target_user_id)
    if action == "remove":
        remove_connection(db, user, target_user_id)
        return None
    if action not in RESPONSES:
        raise errors.ValidationError("Invalid action")

    pending = db.scalar(
        select(Connection).where(
            Connection.requester_id == target_user_id,
            Connection.target_id == user.id,
            Connection.status == ConnectionStatus.PENDING.value,
        )
    )
    if pending is None:
        raise errors.NotFound("No pending connection request found")
    return respond_connection(db, user, pending.id, action)


def list_connections(
    db: Session,
    user_id: int,
    *,
    status: ConnectionStatus = ConnectionStatus.ACCEPTED,
    cursor: int | None,
    limit: int,
) -> Page[Connection]:
    stmt = _with_parties(
        select(Connection).where(
            or_(Connection.requester_id == user_id, Connection.target_id == user_id),
            Connection.status == status.value,
        )
    )
    return paginate(db, stmt, Connection.id, cursor=cursor, limit=limit)


def list_requests(
    db: Session, user_id: int, *, direction: str, cursor: int | None, limit: int
) -> Page[Connection]:
    """PENDING requests ``received`` by or ``sent`` from ``user_id``."""
    if direction == "received":
        side = Connection.target_id == user_id
    elif direction == "sent":
        side = Connection.requester_id == user_id
    else:
        raise errors.ValidationError("Invalid request type")
    stmt = _with_parties(
        select(Connection).where(side, Connection.status == ConnectionStatus.PENDING.value)
    )
    return paginate(db, stmt, Connection.id, cursor=cursor, limit=limit)


@dataclass
class ConnectionState:
    status: str
    can_connect: bool
    connection_id: int | None = None
    is_requester: bool | None = None
    created_at: datetime | None = None


def connection_status(db: Session, viewer_id: int, other_user_id: int) -> ConnectionState:
    """Describe the connection between the viewer and another user."""
    if viewer_id == other_user_id:
        return ConnectionState(status="self", can_connect=False)
    get_user_or_404(db, other_user_id)

    connection = db.scalar(_pair_stmt(viewer_id, other_user_id))
    if connection is None:
        return ConnectionState(status="not_connected", can_connect=True)

    is_requester = connection.requester_id == viewer_id
    if connection.status == ConnectionStatus.PENDING.value:
        status = "request_sent" if is_requester else "request_received"
    else:
        status = {
            ConnectionStatus.ACCEPTED.value: "connected",
            ConnectionStatus.REJECTED.value: "rejected",
            ConnectionStatus.BLOCKED.value: "blocked",
        }.get(connection.status, "unknown")
    return ConnectionState(
        status=status,
        can_connect=status == "request_received",
        connection_id=connection.id,
        is_requester=is_requester,
        created_at=connection.created_at,
    )


def _partner_ids(user_id: int) -> Select[tuple[int]]:
    partner = case(
        (Connection.requester_id == user_id, Connection.target_id),
        else_=Connection.requester_id,
    )
    return select(partner).where(
        or_(Connection.requester_id == user_id, Connection.target_id == user_id)
    )


def accepted_partner_ids(user_id: int) -> Select[tuple[int]]:
    """Ids of users with an ACCEPTED connection to ``user_id``."""
    return _partner_ids(user_id).where(Connection.status == ConnectionStatus.ACCEPTED.value)


def linked_user_ids(user_id: int) -> Select[tuple[int]]:
    """Ids of users sharing a connection row with ``user_id`` in any status."""
    return _partner_ids(user_id)


def mutual_connections(db: Session, user_id: int, other_user_id: int, *, limit: int) -> list[User]:
    """Users connected to both ``user_id`` and ``other_user_id``."""
    get_user_or_404(db, other_user_id)
    stmt = (
        select(User)
        .where(
            User.id.in_(accepted_partner_ids(user_id)),
            User.id.in_(accepted_partner_ids(other_user_id)),
        )
        .order_by(User.id)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())
