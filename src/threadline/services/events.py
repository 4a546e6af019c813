"""Community events: scheduling by staff and RSVPs by members."""
from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from threadline import errors
from threadline.db.time import as_utc, utcnow
from threadline.models import (
    CommunityEvent,
    EventAttendee,
    NotificationType,
    RsvpStatus,
    User,
)
from threadline.services import notifications
from threadline.services.communities import get_community_or_404, get_membership
from threadline.services.pagination import Page
from threadline.services.policy import CommunityAccess, EventAccess, Operation, authorize

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "start_time",
        "end_time",
        "location",
        "is_virtual",
        "virtual_link",
        "max_attendees",
        "rsvp_deadline",
        "tags",
    }
)
_TIME_FIELDS = ("start_time", "end_time", "rsvp_deadline")
# Columns that cannot be cleared; a null in an update leaves them unchanged.
_NOT_NULL_FIELDS = frozenset({"title", "start_time", "end_time", "is_virtual", "tags"})


class EventWindow(str, enum.Enum):
    UPCOMING = "upcoming"
    PAST = "past"


@dataclass
class Attendance:
    """ATTENDING totals per event and the viewer's own RSVP status."""

    attending: dict[int, int]
    mine: dict[int, str]


def _require_member(db: Session, user: User, community_id: int) -> None:
    community = get_community_or_404(db, community_id)
    access = CommunityAccess(community, get_membership(db, user.id, community_id))
    authorize(user.id, Operation.VIEW_EVENTS, access).enforce()


def _event_or_404(
    db: Session, community_id: int, event_id: int, *, lock: bool = False
) -> CommunityEvent:
    stmt = select(CommunityEvent).where(
        CommunityEvent.id == event_id, CommunityEvent.community_id == community_id
    )
    if lock:
        stmt = stmt.with_for_update()
    event = db.scalar(stmt)
    if event is None:
        raise errors.NotFound("Event not found")
    return event


def _check_times(start: datetime, end: datetime, deadline: datetime | None) -> None:
    if end <= start:
        raise errors.ValidationError("End time must be after start time")
    if deadline is not None and deadline > start:
        raise errors.ValidationError("RSVP deadline must be before event start time")


def _attendee_ids(db: Session, event_id: int) -> list[int]:
    stmt = select(EventAttendee.user_id).where(EventAttendee.event_id == event_id)
    return list(db.scalars(stmt))


def attendance(db: Session, viewer_id: int, event_ids: Sequence[int]) -> Attendance:
    if not event_ids:
        return Attendance({}, {})
    attending = db.execute(
        select(EventAttendee.event_id, func.count(EventAttendee.id))
        .where(
            EventAttendee.event_id.in_(event_ids),
            EventAttendee.status == RsvpStatus.ATTENDING.value,
        )
        .group_by(EventAttendee.event_id)
    ).all()
    mine = db.execute(
        select(EventAttendee.event_id, EventAttendee.status).where(
            EventAttendee.event_id.in_(event_ids), EventAttendee.user_id == viewer_id
        )
    ).all()
    return Attendance(
        attending={event_id: count for event_id, count in attending},
        mine={event_id: status for event_id, status in mine},
    )


def _page_by_start(
    db: Session,
    stmt: Select[tuple[CommunityEvent]],
    *,
    cursor: int | None,
    limit: int,
    ascending: bool,
) -> Page[CommunityEvent]:
    """Keyset page ordered by ``(start_time, id)``; the cursor is still an event id."""
    if cursor is not None:
        anchor = db.get(CommunityEvent, cursor)
        if anchor is not None:
            start, event_id = anchor.start_time, anchor.id
            if ascending:
                stmt = stmt.where(
                    or_(
                        CommunityEvent.start_time > start,
                        and_(CommunityEvent.start_time == start, CommunityEvent.id > event_id),
                    )
                )
            else:
                stmt = stmt.where(
                    or_(
                        CommunityEvent.start_time < start,
                        and_(CommunityEvent.start_time == start, CommunityEvent.id < event_id),
                    )
                )
    if ascending:
        stmt = stmt.order_by(CommunityEvent.start_time.asc(), CommunityEvent.id.asc())
    else:
        stmt = stmt.order_by(CommunityEvent.start_time.desc(), CommunityEvent.id.desc())
    rows = list(db.scalars(stmt.limit(limit + 1)).unique())
    has_next_page = len(rows) > limit
    rows = rows[:limit]
    next_cursor = rows[-1].id if has_next_page and rows else None
    return Page(items=rows, next_cursor=next_cursor, has_next_page=has_next_page)


def list_events(
    db: Session,
    user: User,
    community_id: int,
    *,
    window: EventWindow | None = None,
    cursor: int | None,
    limit: int,
) -> Page[CommunityEvent]:
    """Events of a community, members only.

    Upcoming events (and the unfiltered listing) run soonest first; past
    events run most recent first.
    """
    _require_member(db, user, community_id)
    stmt = (
        select(CommunityEvent)
        .options(joinedload(CommunityEvent.creator))
        .where(CommunityEvent.community_id == community_id)
    )
    now = utcnow()
    if window is EventWindow.UPCOMING:
        stmt = stmt.where(CommunityEvent.start_time >= now)
    elif window is EventWindow.PAST:
        stmt = stmt.where(CommunityEvent.end_time < now)
    return _page_by_start(
        db, stmt, cursor=cursor, limit=limit, ascending=window is not EventWindow.PAST
    )


def get_event(
    db: Session, user: User, community_id: int, event_id: int
) -> tuple[CommunityEvent, list[EventAttendee]]:
    """One event with its RSVPs, oldest first."""
    _require_member(db, user, community_id)
    event = _event_or_404(db, community_id, event_id)
    attendees = db.scalars(
        select(EventAttendee)
        .options(joinedload(EventAttendee.user))
        .where(EventAttendee.event_id == event.id)
        .order_by(EventAttendee.id)
    ).all()
    return event, list(attendees)


def create_event(
    db: Session,
    user: User,
    community_id: int,
    *,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str | None = None,
    location: str | None = None,
    is_virtual: bool = False,
    virtual_link: str | None = None,
    max_attendees: int | None = None,
    rsvp_deadline: datetime | None = None,
    tags: Sequence[str] = (),
) -> CommunityEvent:
    """Schedule an event (ADMIN or MODERATOR only).

    Raises:
        Forbidden: If the caller is not staff of the community
        ValidationError: If the end is not after the start, or the RSVP
            deadline falls after the start
    """
    community = get_community_or_404(db, community_id)
    access = CommunityAccess(community, get_membership(db, user.id, community_id))
    authorize(user.id, Operation.CREATE_EVENT, access).enforce()

    start, end = as_utc(start_time), as_utc(end_time)
    deadline = as_utc(rsvp_deadline) if rsvp_deadline is not None else None
    _check_times(start, end, deadline)

    event = CommunityEvent(
        community_id=community_id,
        creator_id=user.id,
        title=title.strip(),
        description=description,
        start_time=start,
        end_time=end,
        location=location,
        is_virtual=is_virtual,
        virtual_link=virtual_link,
        max_attendees=max_attendees,
        rsvp_deadline=deadline,
        tags=list(tags),
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("User %s created event %s in community %s", user.id, event.id, community_id)
    return event


def update_event(
    db: Session, user: User, community_id: int, event_id: int, changes: dict[str, Any]
) -> CommunityEvent:
    """Edit an event (its creator or community staff) and tell the attendees."""
    get_community_or_404(db, community_id)
    event = _event_or_404(db, community_id, event_id, lock=True)
    access = EventAccess(event.creator_id, get_membership(db, user.id, community_id))
    authorize(user.id, Operation.MANAGE_EVENT, access).enforce()

    updates = {
        key: value
        for key, value in changes.items()
        if key in EDITABLE_FIELDS and not (value is None and key in _NOT_NULL_FIELDS)
    }
    for key in _TIME_FIELDS:
        if updates.get(key) is not None:
            updates[key] = as_utc(updates[key])
    if "title" in updates:
        updates["title"] = updates["title"].strip()

    start = updates.get("start_time") or as_utc(event.start_time)
    end = updates.get("end_time") or as_utc(event.end_time)
    deadline = updates["rsvp_deadline"] if "rsvp_deadline" in updates else event.rsvp_deadline
    _check_times(start, end, as_utc(deadline) if deadline is not None else None)

    for key, value in updates.items():
        setattr(event, key, value)
    for attendee_id in _attendee_ids(db, event.id):
        notifications.notify(
            db,
            actor_id=user.id,
            recipient_id=attendee_id,
            kind=NotificationType.COMMUNITY_EVENT_UPDATED,
            message=f'The event "{event.title}" has been updated',
            data={"eventId": event.id, "eventTitle": event.title},
            community_id=community_id,
        )
    db.commit()
    db.refresh(event)
    logger.info("User %s updated event %s", user.id, event.id)
    return event


def delete_event(db: Session, user: User, community_id: int, event_id: int) -> None:
    """Cancel an event; attendees are notified before the row goes."""
    get_community_or_404(db, community_id)
    event = _event_or_404(db, community_id, event_id, lock=True)
    access = EventAccess(event.creator_id, get_membership(db, user.id, community_id))
    authorize(user.id, Operation.MANAGE_EVENT, access).enforce()

    scheduled_for = as_utc(event.start_time).isoformat()
    for attendee_id in _attendee_ids(db, event.id):
        notifications.notify(
            db,
            actor_id=user.id,
            recipient_id=attendee_id,
            kind=NotificationType.COMMUNITY_EVENT_CANCELLED,
            message=f'The event "{event.title}" has been cancelled',
            data={"eventTitle": event.title, "scheduledFor": scheduled_for},
            community_id=community_id,
        )
    db.execute(delete(EventAttendee).where(EventAttendee.event_id == event.id))
    db.delete(event)
    db.commit()
    logger.info("User %s cancelled event %s", user.id, event_id)


def rsvp(
    db: Session, user: User, community_id: int, event_id: int, status: RsvpStatus
) -> EventAttendee:
    """Record or change the caller's RSVP.

    Raises:
        Forbidden: If the caller is not a member of the community
        NotFound: If the event does not belong to the community
        RsvpClosed: If the RSVP deadline has passed
        EventFull: If ATTENDING would exceed ``max_attendees``
    """
    _require_member(db, user, community_id)
    # The event row lock serializes capacity checks for the same event.
    event = _event_or_404(db, community_id, event_id, lock=True)
    if event.rsvp_deadline is not None and utcnow() > as_utc(event.rsvp_deadline):
        raise errors.RsvpClosed()

    if status is RsvpStatus.ATTENDING and event.max_attendees is not None:
        taken = db.scalar(
            select(func.count(EventAttendee.id)).where(
                EventAttendee.event_id == event.id,
                EventAttendee.status == RsvpStatus.ATTENDING.value,
                EventAttendee.user_id != user.id,
            )
        )
        if (taken or 0) >= event.max_attendees:
            raise errors.EventFull()

    attendee = db.scalar(
        select(EventAttendee)
        .where(EventAttendee.event_id == event.id, EventAttendee.user_id == user.id)
        .with_for_update()
    )
    if attendee is not None:
        attendee.status = status.value
    else:
        attendee = EventAttendee(event_id=event.id, user_id=user.id, status=status.value)
        try:
            with db.begin_nested():
                db.add(attendee)
        except IntegrityError as exc:
            db.rollback()
            raise errors.Conflict("RSVP was changed concurrently") from exc

    if status is RsvpStatus.ATTENDING:
        notifications.notify(
            db,
            actor_id=user.id,
            recipient_id=event.creator_id,
            kind=NotificationType.COMMUNITY_EVENT_RSVP,
            message=f'{user.display_name} is attending your event "{event.title}"',
            data={"eventId": event.id, "eventTitle": event.title, "rsvpStatus": status.value},
            community_id=community_id,
        )
    db.commit()
    db.refresh(attendee)
    return attendee


def cancel_rsvp(db: Session, user: User, community_id: int, event_id: int) -> bool:
    """Drop the caller's RSVP; returns whether one existed."""
    _require_member(db, user, community_id)
    _event_or_404(db, community_id, event_id)
    result = db.execute(
        delete(EventAttendee).where(
            EventAttendee.event_id == event_id, EventAttendee.user_id == user.id
        )
    )
    db.commit()
    return bool(result.rowcount)
