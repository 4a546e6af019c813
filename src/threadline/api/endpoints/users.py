"""User, follow, onboarding, profile and preference endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status
from sqlalchemy.orm import Session

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.models import User
from threadline.schemas.common import UserSummary
from threadline.schemas.social import FollowRequest, FollowResponse, UserPage
from threadline.schemas.user import (
    ConnectionStatusResponse,
    OnboardingRequest,
    PreferencesResponse,
    PreferencesUpdate,
    ProfileResponse,
    ProfileSummaryResponse,
    ProfileUpdate,
    ThemeUpdate,
    UserResponse,
    UsernameCheckResponse,
)
from threadline.services import social as social_service
from threadline.services import users as user_service

router = APIRouter(prefix="/user", tags=["users"])


def _summary_response(db: Session, viewer: User, user: User) -> ProfileSummaryResponse:
    summary = user_service.profile_summary(db, viewer.id, user)
    return ProfileSummaryResponse(
        user=UserSummary.model_validate(user),
        profile=ProfileResponse.model_validate(user.profile) if user.profile else None,
        followers_count=summary.followers,
        following_count=summary.following,
        posts_count=summary.posts,
        is_following=summary.is_following,
        connection=ConnectionStatusResponse.model_validate(summary.connection),
    )


@router.post("/follow", response_model=FollowResponse)
async def follow_user(
    payload: FollowRequest, db: SessionDep, current_user: CurrentUserDep
) -> FollowResponse:
    """Follow or unfollow another user.

    Raises:
        ValidationError: If the caller targets themselves
        NotFound: If the target user does not exist
        AlreadyFollowing: If ``follow`` is sent for an existing edge
    """
    action = social_service.toggle_follow(
        db, current_user, payload.target_user_id, payload.action
    )
    return FollowResponse(action=action)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUserDep) -> User:
    return current_user


@router.get("/{user_id:int}/followers", response_model=UserPage)
async def list_followers(user_id: int, db: SessionDep, _: CurrentUserDep, page: PageDep) -> UserPage:
    cursor, limit = page
    result = social_service.list_followers(db, user_id, cursor=cursor, limit=limit)
    return UserPage(
        users=[UserSummary.model_validate(edge.follower) for edge in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/{user_id:int}/following", response_model=UserPage)
async def list_following(user_id: int, db: SessionDep, _: CurrentUserDep, page: PageDep) -> UserPage:
    cursor, limit = page
    result = social_service.list_following(db, user_id, cursor=cursor, limit=limit)
    return UserPage(
        users=[UserSummary.model_validate(edge.following) for edge in result.items],
        next_cursor=result.next_cursor,
        has_next_page=result.has_next_page,
    )


@router.get("/check-username", response_model=UsernameCheckResponse)
async def check_username(
    db: SessionDep,
    current_user: CurrentUserDep,
    username: Annotated[str, Query(min_length=1)],
) -> UsernameCheckResponse:
    """Report whether a username is valid and free.

    Raises:
        InvalidUsername: 400 with the first failing rule
        UsernameTaken: 409 when another account holds it
    """
    normalized = user_service.check_username(db, username, current_user_id=current_user.id)
    return UsernameCheckResponse(
        available=True, username=normalized, message="Username is available"
    )


@router.post("/onboarding", response_model=ProfileSummaryResponse)
async def complete_onboarding(
    payload: OnboardingRequest, db: SessionDep, current_user: CurrentUserDep
) -> ProfileSummaryResponse:
    user = user_service.complete_onboarding(
        db,
        current_user,
        username=payload.username,
        birth_date=payload.birth_date,
        bio=payload.bio,
        location=payload.location,
        website=payload.website,
    )
    return _summary_response(db, current_user, user)


@router.get("/profile", response_model=ProfileSummaryResponse)
async def get_own_profile(db: SessionDep, current_user: CurrentUserDep) -> ProfileSummaryResponse:
    return _summary_response(db, current_user, current_user)


@router.put("/profile", response_model=ProfileSummaryResponse)
async def update_profile(
    payload: ProfileUpdate, db: SessionDep, current_user: CurrentUserDep
) -> ProfileSummaryResponse:
    """Apply only the fields present in the request body."""
    user = user_service.update_profile(db, current_user, payload.model_dump(exclude_unset=True))
    return _summary_response(db, current_user, user)


@router.get("/profile/{username}", response_model=ProfileSummaryResponse)
async def get_profile(
    username: str, db: SessionDep, current_user: CurrentUserDep
) -> ProfileSummaryResponse:
    user = user_service.get_user_by_username(db, username)
    return _summary_response(db, current_user, user)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(current_user: CurrentUserDep) -> PreferencesResponse:
    preferences, version = user_service.get_preferences(current_user)
    return PreferencesResponse(preferences=preferences, version=version)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    payload: PreferencesUpdate, db: SessionDep, current_user: CurrentUserDep
) -> PreferencesResponse:
    """Shallow-merge keys into the stored preferences."""
    user = user_service.merge_preferences(db, current_user, payload.preferences)
    preferences, version = user_service.get_preferences(user)
    return PreferencesResponse(preferences=preferences, version=version)


@router.patch(
    "/preferences",
    response_model=PreferencesResponse,
    status_code=status.HTTP_200_OK,
)
async def update_theme(
    payload: ThemeUpdate, db: SessionDep, current_user: CurrentUserDep
) -> PreferencesResponse:
    user = user_service.set_theme(db, current_user, payload.theme)
    preferences, version = user_service.get_preferences(user)
    return PreferencesResponse(preferences=preferences, version=version, theme=payload.theme)
