"""Shared FastAPI dependencies."""

import logging
from functools import lru_cache

from fastapi import HTTPException, status

from branchchat.config import settings
from branchchat.responders import Responder, create_responder_from_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _configured_responder() -> Responder:
    return create_responder_from_settings(settings)


def get_responder() -> Responder:
    """
    FastAPI dependency returning the process-wide responder.

    Raises:
        HTTPException(503): The configured provider cannot be built
    """
    try:
        return _configured_responder()
    except ValueError as e:
        logger.error(f"Responder is not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": str(e), "code": "RESPONDER_NOT_CONFIGURED"},
        ) from e
