"""
HTTP responder for the server-mediated deployment.

Posts the history to a BranchChat ``/chat`` endpoint instead of calling a
model provider directly, so API keys stay on the server.
"""

import logging
import time
from typing import Any, Optional

import httpx

from branchchat.exceptions import RateLimitedError, ResponderError
from branchchat.responders.base import ChatTurn, Responder, ResponderReply

logger = logging.getLogger(__name__)


class HTTPResponder(Responder):
    """Responder that delegates to a remote ``POST /chat`` endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self._client = httpx.Client(
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "HTTPResponder":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def provider_name(self) -> str:
        return "http"

    @property
    def model_name(self) -> str:
        return self.url

    def generate(self, turns: list[ChatTurn]) -> ResponderReply:
        start_time = time.time()
        payload = {"messages": [turn.to_dict() for turn in turns]}

        try:
            response = self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise ResponderError(
                f"Could not reach chat endpoint: {e}",
                code="CONNECTION_ERROR",
                status_code=502,
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        data = _json_body(response)

        if response.status_code == 429:
            raise RateLimitedError(
                data.get("error") or "API rate limit exceeded. Please try again later."
            )
        if response.is_error:
            raise ResponderError(
                data.get("error") or response.text or "Failed to generate AI response",
                code=data.get("code") or "UNKNOWN_ERROR",
                status_code=response.status_code,
            )

        return ResponderReply(
            content=data.get("content") or "",
            prompt_tokens=0,
            completion_tokens=0,
            total_tokens=0,
            finish_reason="stop",
            model=self.url,
            duration_ms=duration_ms,
            raw_response=data,
        )


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
