"""
Client-side view state for a BranchChat session.

ClientState is a plain in-memory model of what a chat UI shows: the
conversation list, the branches of the active conversation, the messages
of the active branch, and a dismissible error notice. It performs no I/O;
ChatClient applies operation results to it explicitly.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from branchchat.models.db import MAIN_BRANCH_LABEL


@dataclass
class ConversationView:
    id: uuid.UUID
    title: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, conversation: Any) -> "ConversationView":
        return cls(
            id=conversation.id,
            title=conversation.title,
            created_at=conversation.created_at,
        )


@dataclass
class BranchView:
    id: uuid.UUID
    conversation_id: uuid.UUID
    parent_branch_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_root(self) -> bool:
        return self.parent_branch_id is None

    @property
    def display_title(self) -> str:
        """Title for lists; the main branch falls back to "Main Thread"."""
        if self.title:
            return self.title
        return MAIN_BRANCH_LABEL if self.is_root else "Untitled"

    @classmethod
    def from_model(cls, branch: Any) -> "BranchView":
        return cls(
            id=branch.id,
            conversation_id=branch.conversation_id,
            parent_branch_id=branch.parent_branch_id,
            title=branch.title,
            created_at=branch.created_at,
        )


@dataclass
class MessageView:
    id: uuid.UUID
    conversation_id: uuid.UUID
    branch_id: uuid.UUID
    role: str
    content: str
    parent_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, message: Any) -> "MessageView":
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            branch_id=message.branch_id,
            role=getattr(message.role, "value", message.role),
            content=message.content,
            parent_id=message.parent_id,
            created_at=message.created_at,
        )


@dataclass
class ErrorNotice:
    """Dismissible, user-visible error."""

    message: str
    code: Optional[str] = None
    hint: Optional[str] = None


@dataclass(frozen=True)
class LoadToken:
    """Ticket for one read; only the newest ticket of a kind may apply."""

    kind: str
    sequence: int
    activation_stamp: int


class ClientState:
    """In-memory view model of one chat session."""

    def __init__(self) -> None:
        self.active_conversation_id: Optional[uuid.UUID] = None
        self.active_branch_id: Optional[uuid.UUID] = None
        self.conversations: list[ConversationView] = []
        self.branches: list[BranchView] = []
        self.messages: list[MessageView] = []
        self.error: Optional[ErrorNotice] = None
        # Bumped on every conversation or branch switch
        self.activation_stamp = 0
        self._load_sequence = 0
        self._latest_loads: dict[str, int] = {}

    # Conversations

    def set_conversations(self, conversations: list[ConversationView]) -> None:
        self.conversations = list(conversations)

    def upsert_conversation(self, conversation: ConversationView) -> None:
        """Replace a conversation by id, or add it at the top of the list."""
        for index, existing in enumerate(self.conversations):
            if existing.id == conversation.id:
                self.conversations[index] = conversation
                return
        self.conversations.insert(0, conversation)

    def get_conversation(self, conversation_id: uuid.UUID) -> Optional[ConversationView]:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    # Branches

    def set_branches(self, branches: list[BranchView]) -> None:
        self.branches = list(branches)

    def add_branch(self, branch: BranchView) -> None:
        if self.get_branch(branch.id) is None:
            self.branches.append(branch)

    def replace_branch(self, branch: BranchView) -> None:
        for index, existing in enumerate(self.branches):
            if existing.id == branch.id:
                self.branches[index] = branch
                return

    def remove_branch(self, branch_id: uuid.UUID) -> set[uuid.UUID]:
        """
        Remove a branch and every descendant branch.

        Returns:
            Ids of all removed branches
        """
        removed = {branch_id}
        changed = True
        while changed:
            changed = False
            for branch in self.branches:
                if branch.parent_branch_id in removed and branch.id not in removed:
                    removed.add(branch.id)
                    changed = True
        self.branches = [b for b in self.branches if b.id not in removed]
        return removed

    def get_branch(self, branch_id: uuid.UUID) -> Optional[BranchView]:
        for branch in self.branches:
            if branch.id == branch_id:
                return branch
        return None

    @property
    def root_branch(self) -> Optional[BranchView]:
        for branch in self.branches:
            if branch.is_root:
                return branch
        return None

    @property
    def active_branch(self) -> Optional[BranchView]:
        if self.active_branch_id is None:
            return None
        return self.get_branch(self.active_branch_id)

    # Messages

    def set_messages(self, messages: list[MessageView]) -> None:
        self.messages = list(messages)

    def append_message(self, message: MessageView) -> None:
        if self.get_message(message.id) is None:
            self.messages.append(message)

    def remove_message(self, message_id: uuid.UUID) -> None:
        self.messages = [m for m in self.messages if m.id != message_id]

    def get_message(self, message_id: uuid.UUID) -> Optional[MessageView]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    # Activation

    def activate_conversation(self, conversation_id: Optional[uuid.UUID]) -> None:
        """Switch conversation; clears the branch and message lists."""
        self.active_conversation_id = conversation_id
        self.active_branch_id = None
        self.branches = []
        self.messages = []
        self.activation_stamp += 1

    def activate_branch(self, branch_id: Optional[uuid.UUID]) -> None:
        """Switch branch within the active conversation; clears messages."""
        self.active_branch_id = branch_id
        self.messages = []
        self.activation_stamp += 1

    # Errors

    def set_error(self, notice: ErrorNotice) -> None:
        self.error = notice

    def dismiss_error(self) -> None:
        self.error = None

    # Loads

    def begin_load(self, kind: str) -> LoadToken:
        self._load_sequence += 1
        self._latest_loads[kind] = self._load_sequence
        return LoadToken(
            kind=kind,
            sequence=self._load_sequence,
            activation_stamp=self.activation_stamp,
        )

    def is_latest_load(self, token: LoadToken) -> bool:
        """True if no newer load of the same kind began and nothing was switched."""
        return (
            self._latest_loads.get(token.kind) == token.sequence
            and self.activation_stamp == token.activation_stamp
        )
