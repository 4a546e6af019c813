"""Community event and RSVP schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field

from threadline.models import RsvpStatus

from .common import APIModel, PageMeta, UserSummary


class EventCreate(APIModel):
    """Schema for scheduling a community event."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    start_time: datetime
    end_time: datetime
    location: str | None = Field(None, max_length=255)
    is_virtual: bool = False
    virtual_link: str | None = Field(None, max_length=2048)
    max_attendees: int | None = Field(None, ge=1)
    rsvp_deadline: datetime | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)


class EventUpdate(APIModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: str | None = Field(None, max_length=255)
    is_virtual: bool | None = None
    virtual_link: str | None = Field(None, max_length=2048)
    max_attendees: int | None = Field(None, ge=1)
    rsvp_deadline: datetime | None = None
    tags: list[str] | None = Field(None, max_length=20)


class EventResponse(APIModel):
    id: int
    community_id: int
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime
    location: str | None
    is_virtual: bool
    virtual_link: str | None
    max_attendees: int | None
    rsvp_deadline: datetime | None
    tags: list[str]
    created_at: datetime
    creator: UserSummary
    attendee_count: int = 0
    user_rsvp_status: str = RsvpStatus.NOT_ATTENDING.value


class EventPage(PageMeta):
    events: list[EventResponse]


class RsvpRequest(APIModel):
    status: RsvpStatus


class AttendeeResponse(APIModel):
    id: int
    status: str
    created_at: datetime
    user: UserSummary


class EventDetailResponse(APIModel):
    event: EventResponse
    attendees: list[AttendeeResponse]


class RsvpResponse(APIModel):
    rsvp: AttendeeResponse
    message: str
