"""
API schemas for BranchChat.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from branchchat.models.db import MessageRole

# ===== Auth =====


class SignUpRequest(BaseModel):
    email: str
    password: str = Field(min_length=6)
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class SignInRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """Public view of an account."""

    id: UUID
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuthSessionResponse(BaseModel):
    user_id: UUID
    email: str
    token: str


# ===== Conversations and branches =====


class ConversationResponse(BaseModel):
    id: UUID
    title: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BranchResponse(BaseModel):
    """A branch; parent_branch_id is null for the main branch."""

    id: UUID
    conversation_id: UUID
    parent_branch_id: Optional[UUID] = None
    title: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationCreateResponse(BaseModel):
    conversation: ConversationResponse
    root_branch: BranchResponse


class TitleUpdate(BaseModel):
    title: str


class BranchDeleteResponse(BaseModel):
    deleted_branch_id: UUID
    root_branch: BranchResponse


# ===== Messages =====


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    branch_id: UUID
    parent_id: Optional[UUID] = None
    role: MessageRole
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    content: str


class MessageExchangeResponse(BaseModel):
    user_message: MessageResponse
    assistant_message: MessageResponse
    title: Optional[str] = None
    branch_title: Optional[str] = None


class BranchExchangeResponse(BaseModel):
    branch: BranchResponse
    user_message: MessageResponse
    assistant_message: MessageResponse


# ===== Chat =====


class ChatTurnSchema(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    """Body of POST /chat."""

    messages: list[ChatTurnSchema]


class ChatResponse(BaseModel):
    content: str
