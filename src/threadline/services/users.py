"""Accounts, usernames, onboarding, profiles and preferences."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from threadline import errors
from threadline.core import security
from threadline.core.settings import settings
from threadline.db.time import age_on, utc_today
from threadline.models import Post, Profile, User
from threadline.services import social

logger = logging.getLogger(__name__)

__all__ = [
    "RESERVED_USERNAMES",
    "THEMES",
    "normalize_username",
    "validate_username",
    "check_username",
    "signup",
    "authenticate",
    "complete_onboarding",
    "update_profile",
    "profile_summary",
    "get_preferences",
    "merge_preferences",
    "set_theme",
]

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
_USERNAME_CHARS = re.compile(r"^[a-z0-9_]+$")

RESERVED_USERNAMES = frozenset(
    {
        "api", "home", "login", "signup", "signin", "signout", "register",
        "admin", "root", "www", "mail", "ftp", "localhost", "blog", "auth",
        "profile", "settings", "help", "support", "about", "contact", "terms",
        "privacy", "dashboard", "feed", "explore", "notifications", "messages",
        "search", "trending", "thread", "post", "posts", "user", "users",
        "onboarding", "error", "media", "upload", "download", "static",
        "assets", "public",
    }
)

THEMES = ("light", "dark", "system")


def normalize_username(raw: str) -> str:
    return raw.strip().lower()


def _username_problem(username: str) -> str | None:
    if len(username) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username must be at most {USERNAME_MAX_LENGTH} characters"
    if not _USERNAME_CHARS.match(username):
        return "Username can only contain lowercase letters, numbers, and underscores"
    if username.startswith("_") or username.endswith("_"):
        return "Username cannot start or end with an underscore"
    if "__" in username:
        return "Username cannot contain consecutive underscores"
    if username in RESERVED_USERNAMES:
        return "This username is reserved"
    return None


def validate_username(raw: str) -> str:
    """Return the normalized username or raise ``InvalidUsername``.

    Normalization (trim, lower-case) happens first, so reserved words are
    rejected whatever their case.
    """
    username = normalize_username(raw)
    problem = _username_problem(username)
    if problem is not None:
        raise errors.InvalidUsername(problem)
    return username


def _username_taken(db: Session, username: str, *, exclude_user_id: int | None = None) -> bool:
    stmt = select(User.id).where(User.username == username)
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.scalar(stmt) is not None


def check_username(db: Session, raw: str, *, current_user_id: int | None = None) -> str:
    """Validate and confirm availability; returns the normalized username."""
    username = validate_username(raw)
    if _username_taken(db, username, exclude_user_id=current_user_id):
        raise errors.UsernameTaken()
    return username


# -- accounts ----------------------------------------------------------------


def signup(
    db: Session, *, username: str, email: str, password: str, name: str | None = None
) -> User:
    username = check_username(db, username)
    email = email.strip().lower()
    if db.scalar(select(User.id).where(User.email == email)) is not None:
        raise errors.Conflict("Email is already registered")

    user = User(
        username=username,
        email=email,
        name=name,
        password_hash=security.hash_password(password),
    )
    try:
        with db.begin_nested():
            db.add(user)
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict("Username or email is already registered") from exc
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, login: str, password: str) -> User:
    """Resolve ``login`` (username or email) and check the password."""
    login = login.strip().lower()
    user = db.scalar(select(User).where(or_(User.username == login, User.email == login)))
    if user is None or not security.verify_password(password, user.password_hash):
        raise errors.Unauthenticated("Invalid credentials")
    return user


# -- onboarding and profile --------------------------------------------------


def _validate_birth_date(birth_date: date) -> None:
    today = utc_today()
    if birth_date >= today:
        raise errors.ValidationError("Birth date must be in the past")
    if age_on(birth_date, today) < settings.min_signup_age:
        raise errors.ValidationError(
            f"You must be at least {settings.min_signup_age} years old"
        )


def complete_onboarding(
    db: Session,
    user: User,
    *,
    username: str,
    birth_date: date,
    bio: str | None = None,
    location: str | None = None,
    website: str | None = None,
) -> User:
    """Claim a username and create the user's profile (once)."""
    if user.profile is not None:
        raise errors.AlreadyProcessed("Onboarding already completed")
    username = check_username(db, username, current_user_id=user.id)
    _validate_birth_date(birth_date)

    user.username = username
    user.profile = Profile(
        bio=bio, location=location, website=website, birth_date=birth_date
    )
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.UsernameTaken() from exc
    db.refresh(user)
    logger.info("User %s completed onboarding as %s", user.id, username)
    return user


_PROFILE_FIELDS = ("bio", "location", "website")


def update_profile(db: Session, user: User, changes: dict[str, Any]) -> User:
    """Apply a partial profile update; keys absent from ``changes`` are kept."""
    if changes.get("username") is not None:
        user.username = check_username(db, changes["username"], current_user_id=user.id)
    if changes.get("email") is not None:
        email = changes["email"].strip().lower()
        taken = db.scalar(select(User.id).where(User.email == email, User.id != user.id))
        if taken is not None:
            raise errors.Conflict("Email is already registered")
        user.email = email
    for key in ("name", "image"):
        if key in changes:
            setattr(user, key, changes[key])

    profile_changes = {key: changes[key] for key in _PROFILE_FIELDS if key in changes}
    if profile_changes:
        if user.profile is None:
            user.profile = Profile()
        for key, value in profile_changes.items():
            setattr(user.profile, key, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict("Username or email is already registered") from exc
    db.refresh(user)
    logger.info("User %s updated profile fields %s", user.id, sorted(changes))
    return user


@dataclass
class ProfileSummary:
    user: User
    followers: int
    following: int
    posts: int
    is_following: bool
    connection: social.ConnectionState


def get_user_by_username(db: Session, username: str) -> User:
    user = db.scalar(select(User).where(User.username == normalize_username(username)))
    if user is None:
        raise errors.NotFound("User not found")
    return user


def profile_summary(db: Session, viewer_id: int, user: User) -> ProfileSummary:
    followers, following = social.follow_counts(db, user.id)
    posts = db.scalar(
        select(func.count(Post.id)).where(
            Post.author_id == user.id, Post.parent_id.is_(None), Post.deleted.is_(False)
        )
    )
    return ProfileSummary(
        user=user,
        followers=followers,
        following=following,
        posts=posts or 0,
        is_following=viewer_id != user.id and social.is_following(db, viewer_id, user.id),
        connection=social.connection_status(db, viewer_id, user.id),
    )


# -- preferences -------------------------------------------------------------


def _validate_theme(value: Any) -> None:
    if value not in THEMES:
        raise errors.ValidationError("Invalid theme. Must be light, dark, or system")


def get_preferences(user: User) -> tuple[dict[str, Any], int]:
    return dict(user.preferences or {}), user.preferences_version


def _store_preferences(db: Session, user: User, preferences: dict[str, Any]) -> None:
    # Assign a new dict so the JSON column is seen as changed.
    user.preferences = preferences
    user.preferences_version = (user.preferences_version or 0) + 1
    db.commit()
    db.refresh(user)
    logger.info("User %s preferences now at version %s", user.id, user.preferences_version)


def merge_preferences(db: Session, user: User, updates: dict[str, Any]) -> User:
    """Shallow-merge ``updates`` into the stored bag.

    ``theme`` is validated; unknown keys pass through untouched.
    """
    if "theme" in updates:
        _validate_theme(updates["theme"])
    merged = {**(user.preferences or {}), **updates}
    _store_preferences(db, user, merged)
    return user


def set_theme(db: Session, user: User, theme: str) -> User:
    _validate_theme(theme)
    _store_preferences(db, user, {**(user.preferences or {}), "theme": theme})
    return user
