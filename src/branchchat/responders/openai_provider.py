"""OpenAI responder implementation."""

import logging
import time
from typing import Any

import openai
from openai import OpenAI

from branchchat.exceptions import RateLimitedError, ResponderError
from branchchat.responders.base import ChatTurn, Responder, ResponderReply

logger = logging.getLogger(__name__)


class OpenAIResponder(Responder):
    """Responder using the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        system_prompt: str = "",
    ):
        """Initialize the OpenAI responder.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4o-mini)
            max_tokens: Maximum tokens per reply
            temperature: Sampling temperature
            system_prompt: Optional system message prepended to every history
        """
        if not api_key:
            raise ValueError("OpenAI API key is required")

        self.client = OpenAI(api_key=api_key)
        self._model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.system_prompt = system_prompt
        logger.info(f"Initialized OpenAI responder with model: {model}")

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    def generate(self, turns: list[ChatTurn]) -> ResponderReply:
        start_time = time.time()

        messages: list[dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.extend(turn.to_dict() for turn in turns)

        request_params: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        try:
            response = self.client.chat.completions.create(**request_params)
        except openai.RateLimitError as e:
            logger.warning(f"OpenAI rate limit exceeded: {e}")
            raise RateLimitedError() from e
        except openai.APIStatusError as e:
            raise ResponderError(
                e.message,
                code=e.code or "UNKNOWN_ERROR",
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            raise ResponderError(
                f"Could not reach OpenAI: {e}",
                code="CONNECTION_ERROR",
                status_code=502,
            ) from e
        except openai.OpenAIError as e:
            raise ResponderError(str(e) or "Failed to generate AI response") from e

        duration_ms = (time.time() - start_time) * 1000

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content if choice else None) or ""

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0

        return ResponderReply(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            finish_reason=(choice.finish_reason if choice else None) or "unknown",
            model=response.model,
            duration_ms=duration_ms,
            raw_response=response,
        )
