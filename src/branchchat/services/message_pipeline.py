"""
Message pipeline for BranchChat.

Sends a user message on a branch and records the assistant reply, and
turns an edit of an earlier message into a new branch. Both flows are
compensating sagas: if a later step fails, the rows written by earlier
steps are removed before the error is re-raised.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from branchchat.db.repositories import MessageRepository
from branchchat.exceptions import (
    ChatError,
    NotFoundError,
    PersistenceError,
    ResponderError,
    ValidationError,
)
from branchchat.models.db import DEFAULT_BRANCH_TITLE, Branch, Message, MessageRole
from branchchat.responders.base import ChatTurn, Responder
from branchchat.services.branch_manager import BranchManager
from branchchat.utils.titles import derive_title

logger = logging.getLogger(__name__)


@dataclass
class MessageExchange:
    """
    Result of a successful send.

    ``title`` and ``branch_title`` are the conversation and branch titles as
    stored after the send; either is None when its write failed.
    """

    user_message: Message
    assistant_message: Message
    title: Optional[str]
    branch_title: Optional[str] = None


@dataclass
class BranchExchange:
    """Result of a successful branch-on-edit."""

    branch: Branch
    user_message: Message
    assistant_message: Message


class MessagePipeline:
    """Runs the send and branch-on-edit flows against a responder."""

    def __init__(
        self,
        session: Session,
        responder: Responder,
        conversation_title_max_length: int = 40,
        branch_title_max_length: int = 20,
    ):
        self.session = session
        self.responder = responder
        self.conversation_title_max_length = conversation_title_max_length
        self.branch_title_max_length = branch_title_max_length
        self.messages = MessageRepository(session)
        self.branch_manager = BranchManager(session)

    def get_message(self, message_id: uuid.UUID) -> Message:
        """
        Fetch a message.

        Raises:
            NotFoundError: No such message
        """
        try:
            message = self.messages.get(message_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load message: {e}") from e
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return message

    def list_messages(
        self, conversation_id: uuid.UUID, branch_id: uuid.UUID
    ) -> list[Message]:
        """List the messages of a branch, oldest first."""
        try:
            return self.messages.get_by_branch(conversation_id, branch_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load messages: {e}") from e

    def send_message(
        self,
        conversation_id: uuid.UUID,
        branch_id: uuid.UUID,
        content: str,
        history: Sequence[Any],
        on_user_message: Optional[Callable[[Message], None]] = None,
    ) -> MessageExchange:
        """
        Send a user message on a branch and store the assistant reply.

        Args:
            conversation_id: Conversation the branch belongs to
            branch_id: Branch to append to
            content: User message text
            history: Messages already on the branch, oldest first. Items need
                ``id``, ``role`` and ``content`` attributes.
            on_user_message: Called with the stored user message before the
                responder is invoked, so a client can show it immediately

        Returns:
            MessageExchange with both stored messages and the stored titles

        Raises:
            ValidationError: Missing ids, blank content, or branch/conversation mismatch
            NotFoundError: Branch does not exist
            PersistenceError: A store write failed
            ResponderError: The responder failed (RateLimitedError on 429)
        """
        if conversation_id is None or branch_id is None:
            raise ValidationError("A conversation and branch must be selected")
        if not content or not content.strip():
            raise ValidationError("Message content must not be empty")

        branch = self.branch_manager.get_branch(branch_id)
        if branch.conversation_id != conversation_id:
            raise ValidationError(
                f"Branch {branch_id} does not belong to conversation {conversation_id}"
            )

        parent_id = history[-1].id if history else None
        try:
            user_message = self.messages.create(
                conversation_id=conversation_id,
                branch_id=branch_id,
                parent_id=parent_id,
                role=MessageRole.USER,
                content=content,
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to save message: {e}") from e

        if on_user_message is not None:
            on_user_message(user_message)

        user_message_id = user_message.id
        turns = [ChatTurn.from_message(m) for m in history]
        turns.append(ChatTurn(role=MessageRole.USER, content=content))

        try:
            reply = self.responder.respond(turns)
            assistant_message = self.messages.create(
                conversation_id=conversation_id,
                branch_id=branch_id,
                parent_id=user_message_id,
                role=MessageRole.ASSISTANT,
                content=reply,
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self._retract_message(user_message_id)
            raise PersistenceError(f"Failed to save assistant reply: {e}") from e
        except ChatError:
            self._retract_message(user_message_id)
            raise
        except Exception as e:
            self._retract_message(user_message_id)
            raise ResponderError(f"Failed to get a reply: {e}") from e

        title = derive_title(content, self.conversation_title_max_length)
        stored_title, branch_title = self._apply_title(conversation_id, branch, title)

        return MessageExchange(
            user_message=user_message,
            assistant_message=assistant_message,
            title=stored_title,
            branch_title=branch_title,
        )

    def edit_message_into_new_branch(
        self, origin_message: Any, edited_content: str
    ) -> BranchExchange:
        """
        Fork a new branch from an edited message.

        The new branch's parent is the origin message's branch, its first
        message points at the origin message, and the responder sees only the
        edited text.

        Args:
            origin_message: The message being edited (``id`` and ``branch_id``)
            edited_content: Replacement text

        Returns:
            BranchExchange with the new branch and both stored messages

        Raises:
            ValidationError: Blank content
            NotFoundError: Origin branch does not exist
            PersistenceError: A store write failed
            ResponderError: The responder failed (RateLimitedError on 429)
        """
        if origin_message is None:
            raise ValidationError("No message to edit")
        if not edited_content or not edited_content.strip():
            raise ValidationError("Message content must not be empty")

        branch = self.branch_manager.fork_branch(
            origin_message.branch_id, title=DEFAULT_BRANCH_TITLE
        )
        branch_id = branch.id
        conversation_id = branch.conversation_id

        try:
            user_message = self.messages.create(
                conversation_id=conversation_id,
                branch_id=branch_id,
                parent_id=origin_message.id,
                role=MessageRole.USER,
                content=edited_content,
            )
            self.session.commit()

            reply = self.responder.respond(
                [ChatTurn(role=MessageRole.USER, content=edited_content)]
            )

            assistant_message = self.messages.create(
                conversation_id=conversation_id,
                branch_id=branch_id,
                parent_id=user_message.id,
                role=MessageRole.ASSISTANT,
                content=reply,
            )
            branch.title = derive_title(edited_content, self.branch_title_max_length)
            self.session.commit()
        except SQLAlchemyError as e:
            self._discard_branch(branch_id)
            raise PersistenceError(f"Failed to create branch from edit: {e}") from e
        except ChatError:
            self._discard_branch(branch_id)
            raise
        except Exception as e:
            self._discard_branch(branch_id)
            raise ResponderError(f"Failed to get a reply: {e}") from e

        logger.info(f"Branched {branch_id} from message {origin_message.id}")
        return BranchExchange(
            branch=branch,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    def _apply_title(
        self, conversation_id: uuid.UUID, branch: Branch, title: str
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Write the derived title to the conversation and the active branch.

        Returns:
            (conversation title, branch title) as stored, None for a failed write
        """
        conversation_title = None
        try:
            conversation = self.branch_manager.rename_conversation(
                conversation_id, title
            )
            conversation_title = conversation.title
        except ChatError as e:
            logger.error(f"Failed to update conversation title {conversation_id}: {e}")

        if branch.is_root:
            # The main branch mirrors the conversation title
            return conversation_title, conversation_title

        branch_title = None
        try:
            branch_title = self.branch_manager.rename_branch(branch.id, title).title
        except ChatError as e:
            logger.error(f"Failed to update branch title {branch.id}: {e}")
        return conversation_title, branch_title

    def _retract_message(self, message_id: uuid.UUID) -> None:
        self.session.rollback()
        try:
            self.messages.delete(message_id)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to retract message {message_id}: {e}")

    def _discard_branch(self, branch_id: uuid.UUID) -> None:
        self.session.rollback()
        try:
            self.branch_manager.branches.delete(branch_id)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to discard branch {branch_id}: {e}")
