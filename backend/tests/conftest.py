"""
Test configuration and fixtures for the Articles API tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (stored bearer tokens)
- Common fixtures for users and tasks
"""

import os
import sys
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Dict

# Keep the application engine off disk before database.py is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from main import app
import models
from auth.security import hash_password, generate_token

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

# Satisfies the registration password rules
STRONG_PASSWORD = "Secret#123"


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    logger.debug("Creating test database")

    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def client(test_db: Session) -> Generator[TestClient, None, None]:
    """
    Create FastAPI test client with database dependency override.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def create_user(db: Session, username: str, email: str, password: str = STRONG_PASSWORD) -> models.User:
    """Insert a user directly, bypassing the register endpoint."""
    user = models.User(
        username=username,
        email=email,
        password_hash=hash_password(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {username} with ID: {user.id}")
    return user


def issue_token(db: Session, user: models.User) -> str:
    """
    Give a user an active bearer token without going through /auth/login.

    Unlike login this does not clear other users' tokens, so several
    fixture users can be authenticated in the same test.
    """
    user.token = generate_token()
    db.commit()
    return user.token


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def owner_user(test_db: Session) -> models.User:
    """
    User who owns the tasks created by the task fixtures.
    """
    return create_user(test_db, "owner", "owner@test.com")


@pytest.fixture(scope="function")
def other_user(test_db: Session) -> models.User:
    """
    Second user for ownership checks.
    """
    return create_user(test_db, "other", "other@test.com")


@pytest.fixture(scope="function")
def owner_headers(test_db: Session, owner_user: models.User) -> Dict[str, str]:
    """
    Authorization headers for the owner.
    """
    return bearer(issue_token(test_db, owner_user))


@pytest.fixture(scope="function")
def other_headers(test_db: Session, other_user: models.User) -> Dict[str, str]:
    """
    Authorization headers for the second user.
    """
    return bearer(issue_token(test_db, other_user))


@pytest.fixture(scope="function")
def make_task(test_db: Session, owner_user: models.User) -> Callable[..., models.Task]:
    """
    Factory inserting tasks directly; defaults to the owner and sensible field values.

    ``age_minutes`` backdates created_at so ordering is deterministic.
    """
    base_time = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def _make_task(
        title: str = "Write report",
        description: str = "Quarterly numbers",
        priority: str = "medium",
        status: str = "pending",
        labels=None,
        completed: bool = False,
        owner: models.User = None,
        age_minutes: int = 0,
    ) -> models.Task:
        created = base_time - timedelta(minutes=age_minutes)
        task = models.Task(
            title=title,
            description=description,
            priority=priority,
            status=status,
            labels=labels if labels is not None else ["work"],
            completed=completed,
            owner_id=(owner or owner_user).id,
            liked_by=[],
            created_at=created,
            updated_at=created,
        )
        test_db.add(task)
        test_db.commit()
        test_db.refresh(task)
        return task

    return _make_task


@pytest.fixture(scope="function")
def task(make_task) -> models.Task:
    """
    A single task owned by owner_user.
    """
    return make_task()


@pytest.fixture(scope="function")
def comment(test_db: Session, task: models.Task, owner_user: models.User) -> models.Comment:
    """
    A comment on ``task`` written by its owner.
    """
    db_comment = models.Comment(
        task_id=task.id,
        author_id=owner_user.id,
        author_username=owner_user.username,
        text="First thoughts",
        liked_by=[],
    )
    test_db.add(db_comment)
    test_db.commit()
    test_db.refresh(db_comment)
    return db_comment


@pytest.fixture(scope="function")
def reply(test_db: Session, comment: models.Comment, owner_user: models.User) -> models.Reply:
    """
    A reply to ``comment``.
    """
    db_reply = models.Reply(
        comment_id=comment.id,
        author_id=owner_user.id,
        author_username=owner_user.username,
        text="Agreed",
        liked_by=[],
    )
    test_db.add(db_reply)
    test_db.commit()
    test_db.refresh(db_reply)
    return db_reply


@pytest.fixture(scope="function")
def user_factory(test_db: Session) -> Callable[..., models.User]:
    """
    Factory for extra users: user_factory("carol") -> carol@test.com.
    """
    def _user_factory(username: str, password: str = STRONG_PASSWORD) -> models.User:
        return create_user(test_db, username, f"{username}@test.com", password)

    return _user_factory


@pytest.fixture(scope="function")
def headers_for(test_db: Session) -> Callable[[models.User], Dict[str, str]]:
    """
    Factory returning Authorization headers with a fresh token for a user.
    """
    def _headers_for(user: models.User) -> Dict[str, str]:
        return bearer(issue_token(test_db, user))

    return _headers_for
