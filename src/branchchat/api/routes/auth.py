"""
Account API routes.

Sign-up and sign-in against the local users table. Clients send the returned
user id back in the X-User-Id header and the token as a Bearer credential.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from branchchat.api.errors import to_http_exception
from branchchat.api.schemas import (
    AuthSessionResponse,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)
from branchchat.auth import DatabaseAuthProvider
from branchchat.db.connection import get_db
from branchchat.exceptions import ChatError

router = APIRouter()


@router.post(
    "/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED
)
async def sign_up(
    body: SignUpRequest,
    session: Session = Depends(get_db),
) -> UserResponse:
    try:
        user = DatabaseAuthProvider(session).sign_up(
            body.email,
            body.password,
            full_name=body.full_name,
            avatar_url=body.avatar_url,
        )
    except ChatError as e:
        raise to_http_exception(e)
    return UserResponse.model_validate(user)


@router.post("/signin", response_model=AuthSessionResponse)
async def sign_in(
    body: SignInRequest,
    session: Session = Depends(get_db),
) -> AuthSessionResponse:
    try:
        auth_session = DatabaseAuthProvider(session).sign_in(body.email, body.password)
    except ChatError as e:
        raise to_http_exception(e)
    return AuthSessionResponse(
        user_id=auth_session.user_id,
        email=auth_session.email,
        token=auth_session.token,
    )
