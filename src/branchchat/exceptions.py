"""Custom exceptions for BranchChat."""

from typing import Optional
from uuid import UUID


class ChatError(Exception):
    """Base class for errors raised at a chat operation boundary."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ValidationError(ChatError):
    """Raised on bad or missing input before any I/O happens."""

    code = "VALIDATION_ERROR"


class PersistenceError(ChatError):
    """Raised when a store operation fails."""

    code = "PERSISTENCE_ERROR"


class NotFoundError(ChatError):
    """Raised when an expected record is missing."""

    code = "NOT_FOUND"


class ProtectedBranchError(ChatError):
    """Raised when attempting to delete the root branch of a conversation."""

    code = "PROTECTED_BRANCH"

    def __init__(self, branch_id: UUID):
        self.branch_id = branch_id
        super().__init__(f"Cannot delete the main branch {branch_id}")


class PartialCreateFailure(ChatError):
    """Raised when a multi-step creation fails after its first step."""

    code = "PARTIAL_CREATE_FAILURE"

    def __init__(
        self, message: str, conversation_id: UUID, rolled_back: bool = True
    ):
        self.conversation_id = conversation_id
        self.rolled_back = rolled_back
        super().__init__(message)


class ResponderError(ChatError):
    """Raised when the language model call fails."""

    code = "RESPONDER_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, code)


class RateLimitedError(ResponderError):
    """Raised when the language model provider rejects the call with 429."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self, message: str = "API rate limit exceeded. Please try again later."
    ):
        super().__init__(message, status_code=429)


class AuthError(ChatError):
    """Raised on failed sign-up or sign-in."""

    code = "AUTH_ERROR"
