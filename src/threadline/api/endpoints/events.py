"""Community event and RSVP endpoints."""

from __future__ import annotations

from collections.abc import Sequence

from fastapi import APIRouter, status
from sqlalchemy.orm import Session

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.models import CommunityEvent, RsvpStatus
from threadline.schemas.common import Message
from threadline.schemas.event import (
    AttendeeResponse,
    EventCreate,
    EventDetailResponse,
    EventPage,
    EventResponse,
    EventUpdate,
    RsvpRequest,
    RsvpResponse,
)
from threadline.services import events as event_service
from threadline.services.events import EventWindow

router = APIRouter(prefix="/communities/{community_id}/events", tags=["events"])

_RSVP_MESSAGES = {
    RsvpStatus.ATTENDING: "Successfully joined the event",
    RsvpStatus.MAYBE: "Successfully marked as maybe for the event",
    RsvpStatus.NOT_ATTENDING: "Successfully declined the event",
}


def _serialize(
    db: Session, viewer_id: int, events: Sequence[CommunityEvent]
) -> list[EventResponse]:
    attendance = event_service.attendance(db, viewer_id, [event.id for event in events])
    responses = []
    for event in events:
        response = EventResponse.model_validate(event)
        response.attendee_count = attendance.attending.get(event.id, 0)
        response.user_rsvp_status = attendance.mine.get(
            event.id, RsvpStatus.NOT_ATTENDING.value
        )
        responses.append(response)
    return responses


@router.get("", response_model=EventPage)
async def list_events(
    community_id: int,
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    window: EventWindow | None = None,
) -> EventPage:
    """Events of the community, members only.

    ``window=upcoming`` and the unfiltered listing run soonest first;
    ``window=past`` runs most recent first.
    """
    cursor, limit = page
    result = event_service.list_events(
        db, current_user, community_id, window=window, cursor=cursor, limit=limit
    )
    return EventPage(
        events=_serialize(db, current_user.id, result.items),
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    community_id: int, payload: EventCreate, db: SessionDep, current_user: CurrentUserDep
) -> EventResponse:
    """Schedule an event (ADMIN or MODERATOR only).

    Raises:
        Forbidden: If the caller is not staff of the community
        ValidationError: If the times are out of order
    """
    event = event_service.create_event(
        db, current_user, community_id, **payload.model_dump()
    )
    return _serialize(db, current_user.id, [event])[0]


@router.get("/{event_id}", response_model=EventDetailResponse)
async def get_event(
    community_id: int, event_id: int, db: SessionDep, current_user: CurrentUserDep
) -> EventDetailResponse:
    event, attendees = event_service.get_event(db, current_user, community_id, event_id)
    return EventDetailResponse(
        event=_serialize(db, current_user.id, [event])[0],
        attendees=[AttendeeResponse.model_validate(row) for row in attendees],
    )


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    community_id: int,
    event_id: int,
    payload: EventUpdate,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> EventResponse:
    """Edit an event; only the fields sent are changed."""
    event = event_service.update_event(
        db, current_user, community_id, event_id, payload.model_dump(exclude_unset=True)
    )
    return _serialize(db, current_user.id, [event])[0]


@router.delete("/{event_id}", response_model=Message)
async def delete_event(
    community_id: int, event_id: int, db: SessionDep, current_user: CurrentUserDep
) -> Message:
    event_service.delete_event(db, current_user, community_id, event_id)
    return Message(message="Event cancelled")


@router.post("/{event_id}/rsvp", response_model=RsvpResponse)
async def rsvp(
    community_id: int,
    event_id: int,
    payload: RsvpRequest,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> RsvpResponse:
    """Record the caller's RSVP.

    Raises:
        RsvpClosed: If the RSVP deadline has passed
        EventFull: If the event has no ATTENDING places left
    """
    attendee = event_service.rsvp(db, current_user, community_id, event_id, payload.status)
    return RsvpResponse(
        rsvp=AttendeeResponse.model_validate(attendee),
        message=_RSVP_MESSAGES[payload.status],
    )


@router.delete("/{event_id}/rsvp", response_model=Message)
async def cancel_rsvp(
    community_id: int, event_id: int, db: SessionDep, current_user: CurrentUserDep
) -> Message:
    event_service.cancel_rsvp(db, current_user, community_id, event_id)
    return Message(message="RSVP removed successfully")
