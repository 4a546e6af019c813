"""Shared API dependencies for authentication and pagination."""

from typing import Annotated

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from threadline.core.security import decode_access_token
from threadline.core.settings import settings
from threadline.db.session import get_db
from threadline.errors import Unauthenticated
from threadline.models import User
from threadline.services.pagination import clamp_limit

# HTTP Bearer scheme for JWT authentication; missing headers are reported by us.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        Unauthenticated: If the token is missing or invalid, or the user is gone
    """
    if credentials is None:
        raise Unauthenticated()
    try:
        subject = decode_access_token(credentials.credentials)
    except JWTError as err:
        raise Unauthenticated("Could not validate credentials") from err
    if subject is None or not subject.isdigit():
        raise Unauthenticated("Could not validate credentials")

    user = db.get(User, int(subject))
    if user is None:
        raise Unauthenticated("User not found")
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


class CursorParams:
    """``cursor``/``limit`` query parameters with the configured bounds."""

    def __init__(self, cap: int) -> None:
        self.cap = cap

    def __call__(
        self,
        cursor: Annotated[int | None, Query(description="Last id seen")] = None,
        limit: Annotated[int | None, Query(ge=1, description="Page size")] = None,
    ) -> tuple[int | None, int]:
        return cursor, clamp_limit(limit, default=settings.default_page_size, cap=self.cap)


PageDep = Annotated[tuple[int | None, int], Depends(CursorParams(settings.max_page_size))]
FeedPageDep = Annotated[
    tuple[int | None, int], Depends(CursorParams(settings.max_feed_page_size))
]
