"""
Chat client: the operation boundary between a UI and the services.

Every public method runs one user action against the Branch Manager and
Message Pipeline, then applies the result to a ClientState. ChatError
raised by the services is caught here and turned into an ErrorNotice on
the state; callers get ``None`` back for a failed action.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from branchchat.auth import AuthProvider
from branchchat.client.state import (
    BranchView,
    ClientState,
    ConversationView,
    ErrorNotice,
    MessageView,
)
from branchchat.config import settings
from branchchat.exceptions import (
    AuthError,
    ChatError,
    RateLimitedError,
    ValidationError,
)
from branchchat.models.db import Message, User
from branchchat.responders.base import Responder
from branchchat.services.branch_manager import BranchManager
from branchchat.services.message_pipeline import MessagePipeline

logger = logging.getLogger(__name__)

RATE_LIMIT_HINT = "Please check your API quota or try again later."


def error_notice(error: ChatError) -> ErrorNotice:
    """Convert a service error into a user-visible notice."""
    hint = RATE_LIMIT_HINT if isinstance(error, RateLimitedError) else None
    return ErrorNotice(message=error.message, code=error.code, hint=hint)


class ChatClient:
    """Drives one user's chat session."""

    def __init__(
        self,
        session: Session,
        responder: Responder,
        auth_provider: AuthProvider,
        state: Optional[ClientState] = None,
    ):
        self.auth_provider = auth_provider
        self.state = state or ClientState()
        self.branch_manager = BranchManager(session)
        self.pipeline = MessagePipeline(
            session,
            responder,
            conversation_title_max_length=settings.conversation_title_max_length,
            branch_title_max_length=settings.branch_title_max_length,
        )

    def _fail(self, error: ChatError) -> None:
        logger.warning(f"{type(error).__name__}: {error.message}")
        self.state.set_error(error_notice(error))

    def _require_user(self) -> User:
        user = self.auth_provider.get_current_user()
        if user is None:
            raise AuthError("Please sign in first")
        return user

    def _require_active(self) -> tuple[uuid.UUID, uuid.UUID]:
        conversation_id = self.state.active_conversation_id
        branch_id = self.state.active_branch_id
        if conversation_id is None or branch_id is None:
            raise ValidationError("No conversation selected")
        return conversation_id, branch_id

    def _apply_titles(
        self,
        conversation_id: uuid.UUID,
        branch_id: uuid.UUID,
        conversation_title: Optional[str],
        branch_title: Optional[str],
    ) -> None:
        """Copy stored titles into the state. None means the write failed."""
        if conversation_title is not None:
            conversation = self.state.get_conversation(conversation_id)
            if conversation is not None:
                conversation.title = conversation_title
        if self.state.active_conversation_id != conversation_id:
            return
        root = self.state.root_branch
        if conversation_title is not None and root is not None:
            root.title = conversation_title
        branch = self.state.get_branch(branch_id)
        if branch_title is not None and branch is not None:
            branch.title = branch_title

    # Conversations

    def load_conversations(self) -> Optional[list[ConversationView]]:
        """
        Load the signed-in user's conversations.

        When nothing is active yet, the most recent conversation is selected.
        """
        try:
            user = self._require_user()
            token = self.state.begin_load("conversations")
            conversations = self.branch_manager.list_conversations(user.id)
        except ChatError as e:
            self._fail(e)
            return None

        if not self.state.is_latest_load(token):
            return self.state.conversations

        self.state.set_conversations(
            [ConversationView.from_model(c) for c in conversations]
        )
        if self.state.active_conversation_id is None and conversations:
            self.select_conversation(conversations[0].id)
        return self.state.conversations

    def new_chat(self) -> Optional[ConversationView]:
        """Create a conversation with its main branch and switch to it."""
        try:
            user = self._require_user()
            conversation, root = self.branch_manager.create_conversation_with_root_branch(
                user.id
            )
        except ChatError as e:
            self._fail(e)
            return None

        view = ConversationView.from_model(conversation)
        self.state.upsert_conversation(view)
        self.state.activate_conversation(conversation.id)
        self.state.set_branches([BranchView.from_model(root)])
        self.state.activate_branch(root.id)
        return view

    def select_conversation(self, conversation_id: uuid.UUID) -> Optional[BranchView]:
        """Switch to a conversation and its main branch."""
        try:
            user = self._require_user()
            self.branch_manager.get_conversation(conversation_id, owner_id=user.id)
        except ChatError as e:
            self._fail(e)
            return None

        self.state.activate_conversation(conversation_id)
        token = self.state.begin_load("branches")
        try:
            root = self.branch_manager.select_conversation(conversation_id)
            branches = self.branch_manager.list_branches(conversation_id)
        except ChatError as e:
            self._fail(e)
            return None

        if not self.state.is_latest_load(token):
            return None

        self.state.set_branches([BranchView.from_model(b) for b in branches])
        self.state.activate_branch(root.id)
        self.reload_messages()
        return self.state.active_branch

    def rename_conversation(
        self, conversation_id: uuid.UUID, title: str
    ) -> Optional[ConversationView]:
        try:
            conversation = self.branch_manager.rename_conversation(
                conversation_id, title
            )
        except ChatError as e:
            self._fail(e)
            return None

        view = ConversationView.from_model(conversation)
        self.state.upsert_conversation(view)
        if self.state.active_conversation_id == conversation_id:
            root = self.state.root_branch
            if root is not None:
                root.title = view.title
        return view

    # Branches

    def select_branch(self, branch_id: uuid.UUID) -> Optional[BranchView]:
        """Switch to another branch of the active conversation."""
        try:
            branch = self.branch_manager.get_branch(branch_id)
            if branch.conversation_id != self.state.active_conversation_id:
                raise ValidationError(
                    "Branch does not belong to the active conversation"
                )
        except ChatError as e:
            self._fail(e)
            return None

        view = BranchView.from_model(branch)
        self.state.add_branch(view)
        self.state.activate_branch(branch.id)
        self.reload_messages()
        return view

    def rename_branch(self, branch_id: uuid.UUID, title: str) -> Optional[BranchView]:
        try:
            branch = self.branch_manager.rename_branch(branch_id, title)
        except ChatError as e:
            self._fail(e)
            return None

        view = BranchView.from_model(branch)
        self.state.replace_branch(view)
        if view.is_root:
            conversation = self.state.get_conversation(view.conversation_id)
            if conversation is not None:
                conversation.title = view.title or conversation.title
        return view

    def delete_branch(self, branch_id: uuid.UUID) -> bool:
        """
        Delete a branch and its descendants.

        If the active branch is removed, the main branch becomes active.
        """
        try:
            root = self.branch_manager.delete_branch(branch_id)
        except ChatError as e:
            self._fail(e)
            return False

        removed = self.state.remove_branch(branch_id)
        if self.state.active_branch_id in removed:
            self.state.add_branch(BranchView.from_model(root))
            self.state.activate_branch(root.id)
            self.reload_messages()
        return True

    def reload_branches(self) -> None:
        """Re-read the branches of the active conversation. Failures keep prior state."""
        conversation_id = self.state.active_conversation_id
        if conversation_id is None:
            self.state.set_branches([])
            return

        token = self.state.begin_load("branches")
        try:
            branches = self.branch_manager.list_branches(conversation_id)
        except ChatError as e:
            logger.error(f"Failed to reload branches for {conversation_id}: {e}")
            return

        if self.state.is_latest_load(token):
            self.state.set_branches([BranchView.from_model(b) for b in branches])

    # Messages

    def reload_messages(self) -> None:
        """Re-read the messages of the active branch. Failures keep prior state."""
        conversation_id = self.state.active_conversation_id
        branch_id = self.state.active_branch_id
        if conversation_id is None or branch_id is None:
            self.state.set_messages([])
            return

        token = self.state.begin_load("messages")
        try:
            messages = self.pipeline.list_messages(conversation_id, branch_id)
        except ChatError as e:
            logger.error(f"Failed to reload messages for branch {branch_id}: {e}")
            return

        if self.state.is_latest_load(token):
            self.state.set_messages([MessageView.from_model(m) for m in messages])

    def send_message(self, content: str) -> Optional[MessageView]:
        """
        Send a message on the active branch.

        The user message shows up as soon as it is stored. If the reply
        fails it is removed again. A reply that arrives after the user
        switched away is stored but not shown.

        Returns:
            The assistant message, or None on failure
        """
        shown: list[uuid.UUID] = []

        try:
            conversation_id, branch_id = self._require_active()
            stamp = self.state.activation_stamp

            def show_user_message(message: Message) -> None:
                if self.state.activation_stamp == stamp:
                    self.state.append_message(MessageView.from_model(message))
                    shown.append(message.id)

            exchange = self.pipeline.send_message(
                conversation_id,
                branch_id,
                content,
                list(self.state.messages),
                on_user_message=show_user_message,
            )
        except ChatError as e:
            for message_id in shown:
                self.state.remove_message(message_id)
            self._fail(e)
            return None

        assistant = MessageView.from_model(exchange.assistant_message)
        self._apply_titles(
            conversation_id, branch_id, exchange.title, exchange.branch_title
        )
        if self.state.activation_stamp == stamp:
            self.state.append_message(assistant)
        else:
            logger.info(f"Discarded stale reply for branch {branch_id}")
        return assistant

    def edit_message(self, message_id: uuid.UUID, content: str) -> Optional[BranchView]:
        """
        Edit a message by forking a new branch from it, then switch to that branch.

        Returns:
            The new branch, or None on failure
        """
        try:
            origin = self.state.get_message(message_id) or self.pipeline.get_message(
                message_id
            )
            if origin.conversation_id != self.state.active_conversation_id:
                raise ValidationError(
                    "Message does not belong to the active conversation"
                )
            stamp = self.state.activation_stamp
            exchange = self.pipeline.edit_message_into_new_branch(origin, content)
        except ChatError as e:
            self._fail(e)
            return None

        view = BranchView.from_model(exchange.branch)
        if self.state.active_conversation_id == view.conversation_id:
            self.state.add_branch(view)
        if self.state.activation_stamp == stamp:
            self.state.activate_branch(view.id)
            self.state.set_messages(
                [
                    MessageView.from_model(exchange.user_message),
                    MessageView.from_model(exchange.assistant_message),
                ]
            )
        else:
            logger.info(f"Discarded stale branch result {view.id}")
        return view
