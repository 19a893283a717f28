"""
Request authentication for API endpoints.

Every user-scoped endpoint depends on get_auth_context(), which checks the
X-User-Id header together with the session token returned by
``POST /auth/signin``, sent as ``Authorization: Bearer <token>``.
Conversations, branches and messages are only ever looked up through the
caller's user id.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from branchchat.auth import DatabaseAuthProvider
from branchchat.db.connection import get_db
from branchchat.exceptions import AuthError


@dataclass
class AuthContext:
    """
    Authentication context for an API request.

    Attributes:
        user_id: UUID of the calling user
    """

    user_id: UUID


def get_auth_context(
    x_user_id: Optional[str] = Header(
        None,
        description="UUID of the calling user (required)",
        alias="X-User-Id",
    ),
    authorization: Optional[str] = Header(
        None,
        description="Bearer session token from /auth/signin (required)",
    ),
    session: Session = Depends(get_db),
) -> AuthContext:
    """
    FastAPI dependency that validates the X-User-Id and Authorization headers.

    Raises:
        HTTPException(401): Header missing, unknown user, or bad token
        HTTPException(400): X-User-Id is not a UUID
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    token = authorization[7:]  # Remove "Bearer " prefix

    try:
        user_uuid = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID format",
        )

    try:
        DatabaseAuthProvider(session).authenticate(user_uuid, token)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        )

    return AuthContext(user_id=user_uuid)
