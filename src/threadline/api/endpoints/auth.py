"""Authentication endpoints for the Threadline API."""

from __future__ import annotations

from fastapi import APIRouter, status

from threadline.api.dependencies import SessionDep
from threadline.core.security import create_access_token
from threadline.schemas.user import (
    SignupRequest,
    SignupResponse,
    TokenRequest,
    TokenResponse,
    UserResponse,
)
from threadline.services import users as user_service

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(payload: SignupRequest, db: SessionDep) -> SignupResponse:
    """Register a local account and return an access token for it.

    Raises:
        InvalidUsername: If the username fails validation
        UsernameTaken: If the username already belongs to someone
        Conflict: If the email is already registered
    """
    user = user_service.signup(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        name=payload.name,
    )
    return SignupResponse(
        user=UserResponse.model_validate(user),
        access_token=create_access_token(user.id),
    )


@router.post("/token", response_model=TokenResponse)
async def issue_token(payload: TokenRequest, db: SessionDep) -> TokenResponse:
    """Exchange a username/email and password for a bearer token."""
    user = user_service.authenticate(db, payload.login, payload.password)
    return TokenResponse(access_token=create_access_token(user.id))
