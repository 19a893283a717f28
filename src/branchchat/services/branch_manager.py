"""
Branch management for BranchChat conversations.

Creates conversations together with their main branch, lists, renames,
forks and deletes branches. The main (parentless) branch of a conversation
is permanent, and its title mirrors the conversation title.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from branchchat.db.repositories import BranchRepository, ConversationRepository
from branchchat.exceptions import (
    NotFoundError,
    PartialCreateFailure,
    PersistenceError,
    ProtectedBranchError,
    ValidationError,
)
from branchchat.models.db import (
    DEFAULT_BRANCH_TITLE,
    DEFAULT_CONVERSATION_TITLE,
    Branch,
    Conversation,
)

logger = logging.getLogger(__name__)


def _clean_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title must not be empty")
    return cleaned


class BranchManager:
    """Operations over the conversation/branch tree.

    Each mutating method commits on success. On a store failure the session
    is rolled back and PersistenceError is raised.
    """

    def __init__(self, session: Session):
        self.session = session
        self.conversations = ConversationRepository(session)
        self.branches = BranchRepository(session)

    def create_conversation_with_root_branch(
        self, owner_id: uuid.UUID
    ) -> Tuple[Conversation, Branch]:
        """
        Create a conversation titled "New Chat" and its main branch.

        Both inserts share one transaction: if the branch insert fails the
        conversation is rolled back too and PartialCreateFailure is raised,
        so no branchless conversation is ever left behind.

        Args:
            owner_id: UUID of the owning user

        Returns:
            (conversation, root branch)

        Raises:
            ValidationError: owner_id missing
            PersistenceError: conversation insert failed
            PartialCreateFailure: branch insert failed after the conversation insert
        """
        if owner_id is None:
            raise ValidationError("An owner is required to create a conversation")

        try:
            conversation = self.conversations.create(
                owner_id=owner_id, title=DEFAULT_CONVERSATION_TITLE
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to create conversation: {e}") from e

        conversation_id = conversation.id
        try:
            branch = self.branches.create(
                conversation_id=conversation_id,
                parent_branch_id=None,
                title=conversation.title,
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(
                f"Main branch insert failed for conversation {conversation_id}; "
                f"rolled back: {e}"
            )
            raise PartialCreateFailure(
                f"Created conversation {conversation_id} but not its main branch",
                conversation_id=conversation_id,
                rolled_back=True,
            ) from e

        logger.info(f"Created conversation {conversation_id} for owner {owner_id}")
        return conversation, branch

    def list_conversations(self, owner_id: uuid.UUID) -> List[Conversation]:
        """List a user's conversations, newest first."""
        try:
            return self.conversations.get_by_owner(owner_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load conversations: {e}") from e

    def list_branches(self, conversation_id: uuid.UUID) -> List[Branch]:
        """List a conversation's branches, oldest first."""
        try:
            return self.branches.get_by_conversation(conversation_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load branches: {e}") from e

    def get_conversation(
        self, conversation_id: uuid.UUID, owner_id: Optional[uuid.UUID] = None
    ) -> Conversation:
        """
        Fetch a conversation, optionally scoped to its owner.

        Raises:
            NotFoundError: No such conversation (or not owned by owner_id)
        """
        try:
            if owner_id is not None:
                conversation = self.conversations.get_for_owner(
                    conversation_id, owner_id
                )
            else:
                conversation = self.conversations.get(conversation_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load conversation: {e}") from e
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    def get_branch(self, branch_id: uuid.UUID) -> Branch:
        """
        Fetch a branch.

        Raises:
            NotFoundError: No such branch
        """
        try:
            branch = self.branches.get(branch_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load branch: {e}") from e
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found")
        return branch

    def select_conversation(self, conversation_id: uuid.UUID) -> Branch:
        """
        Resolve the main branch of a conversation.

        Raises:
            NotFoundError: The conversation has no main branch
        """
        try:
            root = self.branches.get_root(conversation_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to load main branch: {e}") from e
        if root is None:
            raise NotFoundError(f"Conversation {conversation_id} has no main branch")
        return root

    def fork_branch(
        self, parent_branch_id: uuid.UUID, title: str = DEFAULT_BRANCH_TITLE
    ) -> Branch:
        """
        Create a child branch of an existing branch in the same conversation.

        Args:
            parent_branch_id: Branch to fork from
            title: Initial title

        Returns:
            The new branch

        Raises:
            NotFoundError: Parent branch does not exist
            PersistenceError: Insert failed
        """
        parent = self.get_branch(parent_branch_id)
        try:
            branch = self.branches.create(
                conversation_id=parent.conversation_id,
                parent_branch_id=parent.id,
                title=title,
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to create branch: {e}") from e

        logger.info(f"Forked branch {branch.id} from {parent_branch_id}")
        return branch

    def rename_branch(self, branch_id: uuid.UUID, new_title: str) -> Branch:
        """
        Rename a branch. Renaming the main branch renames the conversation too.

        Raises:
            ValidationError: Empty title
            NotFoundError: No such branch
        """
        title = _clean_title(new_title)
        branch = self.get_branch(branch_id)
        try:
            branch.title = title
            if branch.is_root:
                self.conversations.update_title(branch.conversation_id, title)
            self.session.flush()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to rename branch: {e}") from e
        return branch

    def rename_conversation(
        self, conversation_id: uuid.UUID, new_title: str
    ) -> Conversation:
        """
        Rename a conversation and, to keep them mirrored, its main branch.

        Raises:
            ValidationError: Empty title
            NotFoundError: No such conversation
        """
        title = _clean_title(new_title)
        conversation = self.get_conversation(conversation_id)
        try:
            conversation.title = title
            root = self.branches.get_root(conversation_id)
            if root is not None:
                root.title = title
            self.session.flush()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to rename conversation: {e}") from e
        return conversation

    def delete_branch(self, branch_id: uuid.UUID) -> Branch:
        """
        Delete a non-main branch together with its descendants and messages.

        Args:
            branch_id: Branch to delete

        Returns:
            The conversation's main branch, for callers that must fall back
            to it when the deleted branch was active

        Raises:
            ProtectedBranchError: branch_id is the main branch (nothing is written)
            NotFoundError: No such branch
        """
        branch = self.get_branch(branch_id)
        if branch.is_root:
            raise ProtectedBranchError(branch.id)

        root = self.select_conversation(branch.conversation_id)
        try:
            self.branches.delete(branch.id)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to delete branch: {e}") from e

        logger.info(f"Deleted branch {branch_id}")
        return root
