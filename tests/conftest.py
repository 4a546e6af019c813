# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from threadline.core.security import create_access_token
from threadline.db.session import Base, enable_sqlite_savepoints
from threadline.db.session import get_db as app_get_session
from threadline.main import app as fastapi_app
from threadline.models import Community, CommunityVisibility, Post, PostVisibility, User
from threadline.services import communities as community_service
from threadline.services import posts as post_service
from threadline.services import users as user_service

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

        # Services commit for real; wipe every table so each test starts empty.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory creating persisted users with unique names."""

    def _make(username: str | None = None, name: str | None = None) -> User:
        number = next(_USER_COUNTER)
        username = username or f"member{number}"
        return user_service.signup(
            db_session,
            username=username,
            email=f"{username}@example.com",
            password="correct-horse",
            name=name,
        )

    return _make


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    """Expose :func:`auth_headers` to tests as a fixture."""
    return auth_headers


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    """Create the primary test user."""
    return make_user("alice", name="Alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    """Create the secondary test user."""
    return make_user("bob", name="Bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol", name="Carol")


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    return auth_headers(alice)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    return auth_headers(bob)


@pytest.fixture()
def community(db_session: Session, alice: User) -> Community:
    """A PUBLIC community created (and administered) by alice."""
    return community_service.create_community(db_session, alice, name="Gardeners")


@pytest.fixture()
def private_community(db_session: Session, alice: User) -> Community:
    return community_service.create_community(
        db_session, alice, name="Inner Circle", visibility=CommunityVisibility.PRIVATE
    )


@pytest.fixture()
def public_post(db_session: Session, alice: User) -> Post:
    """A public top-level post written by alice."""
    return post_service.create_post(
        db_session, alice, content="Hello world", visibility=PostVisibility.PUBLIC
    )
