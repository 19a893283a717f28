"""
Message API routes.

Editing a message never rewrites it: the edit becomes the first message of
a new branch forked from the message's branch.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from branchchat.api.auth import AuthContext, get_auth_context
from branchchat.api.dependencies import get_responder
from branchchat.api.errors import to_http_exception
from branchchat.api.schemas import (
    BranchExchangeResponse,
    BranchResponse,
    MessageCreate,
    MessageResponse,
)
from branchchat.config import settings
from branchchat.db.connection import get_db
from branchchat.exceptions import ChatError
from branchchat.responders import Responder
from branchchat.services.message_pipeline import MessagePipeline

router = APIRouter()


@router.post(
    "/{message_id}/branch",
    response_model=BranchExchangeResponse,
    status_code=status.HTTP_201_CREATED,
)
def branch_from_message(
    message_id: UUID,
    body: MessageCreate,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
    responder: Responder = Depends(get_responder),
) -> BranchExchangeResponse:
    """Fork a new branch from an edited copy of a message."""
    pipeline = MessagePipeline(
        session,
        responder,
        conversation_title_max_length=settings.conversation_title_max_length,
        branch_title_max_length=settings.branch_title_max_length,
    )
    try:
        origin = pipeline.get_message(message_id)
        pipeline.branch_manager.get_conversation(
            origin.conversation_id, owner_id=auth.user_id
        )
        exchange = pipeline.edit_message_into_new_branch(origin, body.content)
    except ChatError as e:
        raise to_http_exception(e)
    return BranchExchangeResponse(
        branch=BranchResponse.model_validate(exchange.branch),
        user_message=MessageResponse.model_validate(exchange.user_message),
        assistant_message=MessageResponse.model_validate(exchange.assistant_message),
    )
