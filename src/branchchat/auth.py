"""
Authentication for BranchChat.

AuthProvider is the seam a client uses to find out who is signed in.
DatabaseAuthProvider keeps accounts in the ``users`` table with salted
PBKDF2-SHA256 password hashes.
"""

import hashlib
import hmac
import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from branchchat.db.repositories import UserRepository
from branchchat.exceptions import AuthError, PersistenceError, ValidationError
from branchchat.models.db import User, utc_now

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 260_000
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, iterations: int = HASH_ITERATIONS) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<hash>``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a hash produced by hash_password."""
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


def hash_token(token: str) -> str:
    """Hash a session token for storage using SHA-256."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verify_token(token: str, stored_hash: str) -> bool:
    """Verify a session token against its stored hash."""
    return hmac.compare_digest(hash_token(token), stored_hash)


@dataclass
class AuthSession:
    """A signed-in user."""

    user_id: uuid.UUID
    email: str
    token: str = field(default_factory=lambda: secrets.token_urlsafe(32))
    created_at: datetime = field(default_factory=utc_now)


class AuthProvider(ABC):
    """Identity source for a chat client."""

    @abstractmethod
    def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        ...

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    def sign_out(self) -> None:
        ...

    @abstractmethod
    def get_current_user(self) -> Optional[User]:
        ...


class DatabaseAuthProvider(AuthProvider):
    """Auth provider backed by the ``users`` table."""

    def __init__(self, session: Session):
        self.session = session
        self.users = UserRepository(session)
        self.current_session: Optional[AuthSession] = None

    def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """
        Register a new account.

        Raises:
            ValidationError: Malformed email or too-short password
            AuthError: Email already registered
        """
        normalized = (email or "").strip().lower()
        if "@" not in normalized:
            raise ValidationError("A valid email address is required")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        try:
            if self.users.get_by_email(normalized) is not None:
                raise AuthError("An account with this email already exists")
            user = self.users.create(
                email=normalized,
                password_hash=hash_password(password),
                full_name=full_name,
                avatar_url=avatar_url,
            )
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise AuthError("An account with this email already exists") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to create account: {e}") from e

        logger.info(f"Signed up user {user.id}")
        return user

    def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        A fresh session token is issued and its hash stored on the account,
        replacing the token of any earlier sign-in.

        Raises:
            AuthError: Unknown email or wrong password
        """
        try:
            user = self.users.get_by_email((email or "").strip().lower())
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load account: {e}") from e

        if user is None or not verify_password(password or "", user.password_hash):
            raise AuthError("Invalid email or password")

        auth_session = AuthSession(user_id=user.id, email=user.email)
        try:
            user.session_token_hash = hash_token(auth_session.token)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to start session: {e}") from e

        self.current_session = auth_session
        logger.info(f"Signed in user {user.id}")
        return self.current_session

    def sign_out(self) -> None:
        """End the current session and revoke its token."""
        if self.current_session is None:
            return
        user = self.users.get(self.current_session.user_id)
        self.current_session = None
        if user is None:
            return
        try:
            user.session_token_hash = None
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to end session: {e}") from e

    def get_current_user(self) -> Optional[User]:
        if self.current_session is None:
            return None
        return self.users.get(self.current_session.user_id)

    def authenticate(self, user_id: uuid.UUID, token: str) -> User:
        """
        Resolve a user from a session token issued by sign_in.

        Raises:
            AuthError: Unknown user, no active session, or wrong token
        """
        try:
            user = self.users.get(user_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load account: {e}") from e

        if (
            user is None
            or not user.session_token_hash
            or not verify_token(token or "", user.session_token_hash)
        ):
            raise AuthError("Invalid or expired session")
        return user
