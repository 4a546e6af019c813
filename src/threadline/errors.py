"""Domain error taxonomy.

Every failure a domain operation can surface is a :class:`ThreadlineError`
subclass carrying the HTTP status it maps to. The API layer renders all of
them as ``{"error": message}``; nothing here is retried server-side.
"""

from __future__ import annotations


class ThreadlineError(Exception):
    """Base class for errors raised by domain operations."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ThreadlineError):
    """Malformed or semantically invalid input."""

    status_code = 400
    default_message = "Invalid request data"


class SelfConnection(ValidationError):
    default_message = "Cannot connect to yourself"


class InvalidUsername(ValidationError):
    default_message = "Invalid username"


class RsvpClosed(ValidationError):
    default_message = "RSVP deadline has passed"


class EventFull(ValidationError):
    default_message = "Event is at maximum capacity"


class Unauthenticated(ThreadlineError):
    """No (valid) principal attached to the request."""

    status_code = 401
    default_message = "Not authenticated"


class Forbidden(ThreadlineError):
    """The access policy denied the operation."""

    status_code = 403
    default_message = "Not authorized"


class InsufficientRole(Forbidden):
    default_message = "Insufficient community role"


class CreatorProtected(Forbidden):
    default_message = "Cannot remove community creator"


class NotFound(ThreadlineError):
    status_code = 404
    default_message = "Not found"


class ParentNotFound(NotFound):
    default_message = "Parent post not found"


class Conflict(ThreadlineError):
    """The operation would violate a state invariant."""

    status_code = 409
    default_message = "Conflict"


class AlreadyFollowing(Conflict):
    default_message = "Already following this user"


class DuplicateConnection(Conflict):
    default_message = "Connection already exists or request already sent"


class DuplicateRequest(Conflict):
    default_message = "Request already pending"


class LastAdminViolation(Conflict):
    default_message = "Cannot change role: At least one admin is required"


class AlreadyMember(Conflict):
    default_message = "Already a member of this community"


class AlreadyProcessed(Conflict):
    default_message = "Request has already been processed"


class UsernameTaken(Conflict):
    default_message = "Username is already taken"


class Internal(ThreadlineError):
    """Unexpected failure; logged, never surfaced in detail."""


__all__ = [
    "ThreadlineError",
    "ValidationError",
    "SelfConnection",
    "InvalidUsername",
    "Unauthenticated",
    "Forbidden",
    "InsufficientRole",
    "CreatorProtected",
    "NotFound",
    "ParentNotFound",
    "Conflict",
    "AlreadyFollowing",
    "DuplicateConnection",
    "DuplicateRequest",
    "LastAdminViolation",
    "AlreadyMember",
    "AlreadyProcessed",
    "UsernameTaken",
    "Internal",
]
