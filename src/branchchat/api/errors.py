"""Mapping from service errors to HTTP responses."""

from fastapi import HTTPException

from branchchat.exceptions import (
    AuthError,
    ChatError,
    NotFoundError,
    ProtectedBranchError,
    RateLimitedError,
    ResponderError,
    ValidationError,
)


def status_for(error: ChatError) -> int:
    """HTTP status code for a service error."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthError):
        return 401
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ProtectedBranchError):
        return 409
    if isinstance(error, RateLimitedError):
        return 429
    if isinstance(error, ResponderError):
        return error.status_code or 502
    return 500


def to_http_exception(error: ChatError) -> HTTPException:
    return HTTPException(
        status_code=status_for(error),
        detail={"error": error.message, "code": error.code},
    )
