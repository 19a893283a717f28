"""
Message repository.
"""

import uuid
from typing import List

from sqlalchemy.orm import Session

from branchchat.db.repositories.base import BaseRepository
from branchchat.models.db import Message


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model."""

    def __init__(self, session: Session):
        super().__init__(Message, session)

    def get_by_branch(
        self, conversation_id: uuid.UUID, branch_id: uuid.UUID
    ) -> List[Message]:
        """
        Get the messages of a branch in chronological order.

        Args:
            conversation_id: Conversation UUID
            branch_id: Branch UUID

        Returns:
            List of messages ordered by created_at ascending
        """
        return (
            self.session.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.branch_id == branch_id,
            )
            .order_by(Message.created_at.asc())
            .all()
        )

    def count_by_branch(self, conversation_id: uuid.UUID, branch_id: uuid.UUID) -> int:
        """Count the messages of a branch."""
        return (
            self.session.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.branch_id == branch_id,
            )
            .count()
        )

    def count_by_conversation(self, conversation_id: uuid.UUID) -> int:
        """Count the messages of a conversation across all branches."""
        return (
            self.session.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .count()
        )
