"""Base protocol and types for language model responders."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from branchchat.exceptions import ResponderError, ValidationError

logger = logging.getLogger(__name__)

VALID_ROLES = ("user", "assistant")


@dataclass
class ChatTurn:
    """One role/content entry of the history sent to a responder."""

    role: str
    content: str

    def __post_init__(self) -> None:
        # Accept MessageRole members as well as plain strings
        self.role = getattr(self.role, "value", self.role)

    @classmethod
    def from_message(cls, message: Any) -> "ChatTurn":
        """Build a turn from anything with ``role`` and ``content`` attributes."""
        return cls(role=message.role, content=message.content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ResponderReply:
    """Standardized reply from a responder.

    Attributes:
        content: The generated assistant text
        prompt_tokens: Number of tokens in the prompt
        completion_tokens: Number of tokens in the completion
        total_tokens: Total tokens used
        finish_reason: Why generation stopped (stop, length, error, etc.)
        model: The actual model used (may differ from requested)
        duration_ms: Time taken for the call in milliseconds
        raw_response: Provider-specific raw response for debugging
    """

    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    finish_reason: str
    model: str
    duration_ms: float
    raw_response: Any = None


class Responder(ABC):
    """Abstract base class for language model responders.

    Implementations turn an ordered role/content history into one reply and
    translate provider failures into ResponderError / RateLimitedError.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g., 'openai', 'anthropic')."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...

    @abstractmethod
    def generate(self, turns: list[ChatTurn]) -> ResponderReply:
        """Call the provider with a validated history.

        Args:
            turns: Chronological history; the last turn is the newest user turn

        Returns:
            ResponderReply with the completion and metadata

        Raises:
            ResponderError: Provider call failed
            RateLimitedError: Provider rejected the call with a rate limit
        """
        ...

    def respond(self, turns: Sequence[ChatTurn]) -> str:
        """Return the assistant reply for a history.

        Args:
            turns: Chronological history ending with the newest user turn

        Returns:
            Reply text

        Raises:
            ValidationError: History empty, malformed, or not ending in a user turn
            ResponderError: Provider call failed or returned no content
        """
        history = validate_turns(turns)
        reply = self.generate(history)
        if not reply.content:
            raise ResponderError(
                f"No response content from {self.provider_name}",
                code="EMPTY_RESPONSE",
            )

        logger.info(
            f"{self.provider_name} reply: model={reply.model} "
            f"turns={len(history)} tokens={reply.total_tokens} "
            f"duration_ms={reply.duration_ms:.0f}"
        )
        return reply.content


def validate_turns(turns: Sequence[ChatTurn]) -> list[ChatTurn]:
    """Check the responder input contract and return the turns as a list."""
    history = list(turns)
    if not history:
        raise ValidationError("Invalid or empty messages array")
    for turn in history:
        if turn.role not in VALID_ROLES:
            raise ValidationError(f"Invalid message role: {turn.role!r}")
        if not isinstance(turn.content, str):
            raise ValidationError("Message content must be a string")
    if history[-1].role != "user":
        raise ValidationError("The last message must be a user message")
    return history
