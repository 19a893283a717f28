"""Anthropic responder implementation."""

import logging
import time
from typing import Any, Optional

import anthropic
from anthropic import Anthropic

from branchchat.exceptions import RateLimitedError, ResponderError
from branchchat.responders.base import ChatTurn, Responder, ResponderReply

logger = logging.getLogger(__name__)


def _error_type(error: anthropic.APIStatusError) -> Optional[str]:
    """Pull the machine-readable error type out of an Anthropic error body."""
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        detail = body.get("error")
        if isinstance(detail, dict):
            return detail.get("type")
    return None


class AnthropicResponder(Responder):
    """Responder using the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5-20250514",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        system_prompt: str = "",
    ):
        """Initialize the Anthropic responder.

        Args:
            api_key: Anthropic API key
            model: Model to use (default: claude-sonnet-4-5-20250514)
            max_tokens: Maximum tokens per reply
            temperature: Sampling temperature
            system_prompt: Optional system prompt
        """
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self.client = Anthropic(api_key=api_key)
        self._model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.system_prompt = system_prompt
        logger.info(f"Initialized Anthropic responder with model: {model}")

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    def generate(self, turns: list[ChatTurn]) -> ResponderReply:
        start_time = time.time()

        request_params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [turn.to_dict() for turn in turns],
        }
        if self.system_prompt:
            request_params["system"] = self.system_prompt

        try:
            response = self.client.messages.create(**request_params)
        except anthropic.RateLimitError as e:
            logger.warning(f"Anthropic rate limit exceeded: {e}")
            raise RateLimitedError() from e
        except anthropic.APIStatusError as e:
            raise ResponderError(
                e.message,
                code=_error_type(e) or "UNKNOWN_ERROR",
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ResponderError(
                f"Could not reach Anthropic: {e}",
                code="CONNECTION_ERROR",
                status_code=502,
            ) from e
        except anthropic.AnthropicError as e:
            raise ResponderError(str(e) or "Failed to generate AI response") from e

        duration_ms = (time.time() - start_time) * 1000

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        usage = response.usage
        prompt_tokens = usage.input_tokens if usage else 0
        completion_tokens = usage.output_tokens if usage else 0

        return ResponderReply(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            finish_reason=response.stop_reason or "unknown",
            model=response.model,
            duration_ms=duration_ms,
            raw_response=response,
        )
