"""
Server-mediated chat endpoint.

``POST /chat`` takes ``{"messages": [{"role", "content"}, ...]}`` and returns
``{"content": <assistant reply>}``. Errors come back as ``{"error", "code"}``
with the upstream status (429 for rate limits), so API keys never leave the
server.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from branchchat.api.dependencies import get_responder
from branchchat.api.schemas import ChatRequest
from branchchat.exceptions import (
    RateLimitedError,
    ResponderError,
    ValidationError,
)
from branchchat.responders import ChatTurn, Responder

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_MESSAGES = "Invalid or empty messages array"


def _error(message: str, code: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


def _parse_turns(body: Any) -> list[ChatTurn]:
    if not isinstance(body, dict) or not isinstance(body.get("messages"), list):
        raise ValidationError(INVALID_MESSAGES)
    try:
        request = ChatRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(INVALID_MESSAGES) from e
    if not request.messages:
        raise ValidationError(INVALID_MESSAGES)
    return [ChatTurn(role=m.role, content=m.content) for m in request.messages]


@router.post("/chat")
async def chat(
    request: Request,
    responder: Responder = Depends(get_responder),
) -> JSONResponse:
    """Generate one assistant reply for a role/content history."""
    try:
        body = await request.json()
    except ValueError:
        return _error(INVALID_MESSAGES, ValidationError.code, 400)

    try:
        turns = _parse_turns(body)
        content = await run_in_threadpool(responder.respond, turns)
    except ValidationError as e:
        return _error(e.message, e.code, 400)
    except RateLimitedError as e:
        logger.warning(f"Chat request rate limited: {e.message}")
        return _error(e.message, e.code, 429)
    except ResponderError as e:
        logger.error(f"Error in chat endpoint: {e.message}")
        return _error(e.message, e.code, e.status_code or 500)

    return JSONResponse({"content": content})
