"""
Pytest configuration and fixtures for BranchChat tests.

This module provides shared fixtures for testing database models,
repositories, services, the chat client and the API.
"""

import os

# Keep imports of branchchat.db.connection off PostgreSQL and the log files
# out of the home directory.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE_ENABLED", "false")

import uuid  # noqa: E402
from contextlib import contextmanager  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from branchchat.auth import DatabaseAuthProvider, hash_password  # noqa: E402
from branchchat.models.db import (  # noqa: E402
    Base,
    Branch,
    Conversation,
    Message,
    MessageRole,
    User,
)
from fakes import FakeResponder  # noqa: E402

TEST_PASSWORD = "correct-horse"


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},  # TestClient runs in threads
        poolclass=StaticPool,
    )

    # pysqlite needs these for SAVEPOINT support
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    The session is joined to an outer transaction, so code under test may
    commit and roll back freely; everything is discarded after the test.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def fake_responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture
def api_client(db_session: Session, fake_responder: FakeResponder):
    """Create a test client for FastAPI with database and responder overrides."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from branchchat.api.app import app
    from branchchat.api.dependencies import get_responder
    from branchchat.db.connection import get_db

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_responder] = lambda: fake_responder

    # Disable lifespan startup checks for testing
    with patch("branchchat.api.app.run_all_startup_checks"):
        client = TestClient(app)
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def patched_db_session(db_session: Session):
    """Context manager factory yielding the test session, for code using db_session()."""

    @contextmanager
    def _session():
        yield db_session

    return _session


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create a sample user for testing."""
    user = User(
        id=uuid.uuid4(),
        email="ada@example.com",
        password_hash=hash_password(TEST_PASSWORD, iterations=1000),
        full_name="Ada Lovelace",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session: Session) -> User:
    """Create a second user for isolation tests."""
    user = User(
        id=uuid.uuid4(),
        email="grace@example.com",
        password_hash=hash_password(TEST_PASSWORD, iterations=1000),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_conversation(db_session: Session, sample_user: User) -> Conversation:
    """Create a sample conversation (without branches) for testing."""
    conversation = Conversation(
        id=uuid.uuid4(),
        owner_id=sample_user.id,
        title="New Chat",
    )
    db_session.add(conversation)
    db_session.commit()
    db_session.refresh(conversation)
    return conversation


@pytest.fixture
def sample_root_branch(
    db_session: Session, sample_conversation: Conversation
) -> Branch:
    """Create the main branch of the sample conversation."""
    branch = Branch(
        id=uuid.uuid4(),
        conversation_id=sample_conversation.id,
        parent_branch_id=None,
        title=sample_conversation.title,
    )
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def sample_messages(
    db_session: Session, sample_conversation: Conversation, sample_root_branch: Branch
) -> list[Message]:
    """Create a user/assistant exchange on the main branch."""
    user_message = Message(
        id=uuid.uuid4(),
        conversation_id=sample_conversation.id,
        branch_id=sample_root_branch.id,
        parent_id=None,
        role=MessageRole.USER,
        content="Explain recursion",
    )
    db_session.add(user_message)
    db_session.flush()
    assistant_message = Message(
        id=uuid.uuid4(),
        conversation_id=sample_conversation.id,
        branch_id=sample_root_branch.id,
        parent_id=user_message.id,
        role=MessageRole.ASSISTANT,
        content="Recursion is when a function calls itself.",
    )
    db_session.add(assistant_message)
    db_session.commit()
    return [user_message, assistant_message]


@pytest.fixture
def auth_provider(db_session: Session, sample_user: User) -> DatabaseAuthProvider:
    """Auth provider with the sample user signed in."""
    provider = DatabaseAuthProvider(db_session)
    provider.sign_in(sample_user.email, TEST_PASSWORD)
    return provider


def sign_in_headers(session: Session, user: User) -> dict[str, str]:
    """Sign a user in and return the headers the API expects."""
    auth_session = DatabaseAuthProvider(session).sign_in(user.email, TEST_PASSWORD)
    return {
        "X-User-Id": str(user.id),
        "Authorization": f"Bearer {auth_session.token}",
    }


@pytest.fixture
def auth_headers(db_session: Session, sample_user: User) -> dict[str, str]:
    return sign_in_headers(db_session, sample_user)


@pytest.fixture
def other_headers(db_session: Session, other_user: User) -> dict[str, str]:
    return sign_in_headers(db_session, other_user)
