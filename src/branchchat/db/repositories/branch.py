"""
Branch repository.
"""

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from branchchat.db.repositories.base import BaseRepository
from branchchat.models.db import Branch


class BranchRepository(BaseRepository[Branch]):
    """Repository for Branch model."""

    def __init__(self, session: Session):
        super().__init__(Branch, session)

    def get_by_conversation(self, conversation_id: uuid.UUID) -> List[Branch]:
        """
        Get all branches of a conversation, oldest first.

        Args:
            conversation_id: Conversation UUID

        Returns:
            List of branches ordered by created_at ascending
        """
        return (
            self.session.query(Branch)
            .filter(Branch.conversation_id == conversation_id)
            .order_by(Branch.created_at.asc())
            .all()
        )

    def get_root(self, conversation_id: uuid.UUID) -> Optional[Branch]:
        """
        Get the main (parentless) branch of a conversation.

        Args:
            conversation_id: Conversation UUID

        Returns:
            Root branch or None if the conversation has none
        """
        return (
            self.session.query(Branch)
            .filter(
                Branch.conversation_id == conversation_id,
                Branch.parent_branch_id.is_(None),
            )
            .first()
        )

    def get_children(self, branch_id: uuid.UUID) -> List[Branch]:
        """Get branches forked directly from the given branch."""
        return (
            self.session.query(Branch)
            .filter(Branch.parent_branch_id == branch_id)
            .order_by(Branch.created_at.asc())
            .all()
        )

    def count_roots(self, conversation_id: uuid.UUID) -> int:
        """Count parentless branches of a conversation (always 1 when healthy)."""
        return (
            self.session.query(Branch)
            .filter(
                Branch.conversation_id == conversation_id,
                Branch.parent_branch_id.is_(None),
            )
            .count()
        )

    def count_by_conversation(self, conversation_id: uuid.UUID) -> int:
        """Count branches of a conversation."""
        return (
            self.session.query(Branch)
            .filter(Branch.conversation_id == conversation_id)
            .count()
        )
