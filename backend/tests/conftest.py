# backend/tests/conftest.py
"""
Shared fixtures.

Every test gets its own file-backed SQLite database under ``tmp_path``. A
file (rather than ``:memory:``) lets the realtime store open independent
sessions from worker threads against the same data.
"""

from typing import Callable, Dict, Iterator, Optional

from fastapi import FastAPI
from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from sparfinder.auth import create_access_token
from sparfinder.database import build_engine, build_session_factory, init_db
from sparfinder.main import build_app
from sparfinder.models.user import User
from sparfinder.repositories.user_repository import UserRepository


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    """
    Session for arranging and asserting test data.

    Tests commit what they arrange so the application's own sessions see it.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Factory creating a committed user with a profile."""
    counter = {"n": 0}

    def _make_user(
        first_name: str = "Test",
        last_name: str = "User",
        *,
        email: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> User:
        counter["n"] += 1
        user = UserRepository(db).create_with_profile(
            email or f"user{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name,
            photo_url=photo_url,
        )
        db.commit()
        return user

    return _make_user


@pytest.fixture
def alice(make_user) -> User:
    return make_user("Alice", "Anders", photo_url="https://cdn.example.com/alice.png")


@pytest.fixture
def bob(make_user) -> User:
    return make_user("Bob", "Brown")


@pytest.fixture
def carol(make_user) -> User:
    return make_user("Carol", "Chen")


@pytest.fixture
def app(session_factory) -> FastAPI:
    return build_app(session_factory)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client; leaving the block runs shutdown, which drains background work."""
    with TestClient(app) as test_client:
        yield test_client


def _headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def headers_for() -> Callable[[User], Dict[str, str]]:
    """Bearer auth headers for any user."""
    return _headers


@pytest.fixture
def auth_headers(alice: User) -> Dict[str, str]:
    """Auth headers for Alice."""
    return _headers(alice)
