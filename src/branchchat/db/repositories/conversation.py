"""
Conversation repository.
"""

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from branchchat.db.repositories.base import BaseRepository
from branchchat.models.db import Conversation


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation model."""

    def __init__(self, session: Session):
        super().__init__(Conversation, session)

    def get_by_owner(
        self, owner_id: uuid.UUID, limit: Optional[int] = None, offset: int = 0
    ) -> List[Conversation]:
        """
        Get conversations owned by a user, newest first.

        Args:
            owner_id: User UUID
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            List of conversations ordered by created_at descending
        """
        query = (
            self.session.query(Conversation)
            .filter(Conversation.owner_id == owner_id)
            .order_by(Conversation.created_at.desc())
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def get_for_owner(
        self, id: uuid.UUID, owner_id: uuid.UUID
    ) -> Optional[Conversation]:
        """
        Get a conversation only if it belongs to the given user.

        Args:
            id: Conversation UUID
            owner_id: User UUID

        Returns:
            Conversation or None
        """
        return (
            self.session.query(Conversation)
            .filter(Conversation.id == id, Conversation.owner_id == owner_id)
            .first()
        )

    def update_title(self, id: uuid.UUID, title: str) -> Optional[Conversation]:
        """Set a conversation's display title."""
        return self.update(id, title=title)

    def count_by_owner(self, owner_id: uuid.UUID) -> int:
        """Count conversations owned by a user."""
        return (
            self.session.query(Conversation)
            .filter(Conversation.owner_id == owner_id)
            .count()
        )
