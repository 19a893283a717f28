"""
Conversation API routes.

Endpoints for creating and listing conversations and for reading and
appending to the messages of one of their branches.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from branchchat.api.auth import AuthContext, get_auth_context
from branchchat.api.dependencies import get_responder
from branchchat.api.errors import to_http_exception
from branchchat.api.schemas import (
    BranchResponse,
    ConversationCreateResponse,
    ConversationResponse,
    MessageCreate,
    MessageExchangeResponse,
    MessageResponse,
    TitleUpdate,
)
from branchchat.config import settings
from branchchat.db.connection import get_db
from branchchat.db.repositories import MessageRepository
from branchchat.exceptions import ChatError
from branchchat.responders import Responder
from branchchat.services.branch_manager import BranchManager
from branchchat.services.message_pipeline import MessagePipeline

router = APIRouter()


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[ConversationResponse]:
    """List the caller's conversations, newest first."""
    try:
        conversations = BranchManager(session).list_conversations(auth.user_id)
    except ChatError as e:
        raise to_http_exception(e)
    return [ConversationResponse.model_validate(c) for c in conversations]


@router.post(
    "",
    response_model=ConversationCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ConversationCreateResponse:
    """Create a "New Chat" conversation with its main branch."""
    try:
        conversation, root = BranchManager(
            session
        ).create_conversation_with_root_branch(auth.user_id)
    except ChatError as e:
        raise to_http_exception(e)
    return ConversationCreateResponse(
        conversation=ConversationResponse.model_validate(conversation),
        root_branch=BranchResponse.model_validate(root),
    )


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def rename_conversation(
    conversation_id: UUID,
    update: TitleUpdate,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    """Rename a conversation (and its main branch)."""
    manager = BranchManager(session)
    try:
        manager.get_conversation(conversation_id, owner_id=auth.user_id)
        conversation = manager.rename_conversation(conversation_id, update.title)
    except ChatError as e:
        raise to_http_exception(e)
    return ConversationResponse.model_validate(conversation)


@router.get("/{conversation_id}/branches", response_model=list[BranchResponse])
async def list_branches(
    conversation_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[BranchResponse]:
    """List the branches of a conversation, oldest first."""
    manager = BranchManager(session)
    try:
        manager.get_conversation(conversation_id, owner_id=auth.user_id)
        branches = manager.list_branches(conversation_id)
    except ChatError as e:
        raise to_http_exception(e)
    return [BranchResponse.model_validate(b) for b in branches]


@router.get("/{conversation_id}/root-branch", response_model=BranchResponse)
async def get_root_branch(
    conversation_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> BranchResponse:
    """Get the main branch of a conversation."""
    manager = BranchManager(session)
    try:
        manager.get_conversation(conversation_id, owner_id=auth.user_id)
        root = manager.select_conversation(conversation_id)
    except ChatError as e:
        raise to_http_exception(e)
    return BranchResponse.model_validate(root)


@router.get(
    "/{conversation_id}/branches/{branch_id}/messages",
    response_model=list[MessageResponse],
)
async def list_messages(
    conversation_id: UUID,
    branch_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[MessageResponse]:
    """List the messages of a branch, oldest first."""
    try:
        BranchManager(session).get_conversation(conversation_id, owner_id=auth.user_id)
    except ChatError as e:
        raise to_http_exception(e)
    messages = MessageRepository(session).get_by_branch(conversation_id, branch_id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post(
    "/{conversation_id}/branches/{branch_id}/messages",
    response_model=MessageExchangeResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    conversation_id: UUID,
    branch_id: UUID,
    body: MessageCreate,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
    responder: Responder = Depends(get_responder),
) -> MessageExchangeResponse:
    """
    Send a user message on a branch and return it with the assistant reply.

    Runs in the threadpool since the responder call blocks.
    """
    pipeline = MessagePipeline(
        session,
        responder,
        conversation_title_max_length=settings.conversation_title_max_length,
        branch_title_max_length=settings.branch_title_max_length,
    )
    try:
        BranchManager(session).get_conversation(conversation_id, owner_id=auth.user_id)
        history = pipeline.list_messages(conversation_id, branch_id)
        exchange = pipeline.send_message(
            conversation_id, branch_id, body.content, history
        )
    except ChatError as e:
        raise to_http_exception(e)
    return MessageExchangeResponse(
        user_message=MessageResponse.model_validate(exchange.user_message),
        assistant_message=MessageResponse.model_validate(exchange.assistant_message),
        title=exchange.title,
        branch_title=exchange.branch_title,
    )
