"""
User repository.
"""

from typing import Optional

from sqlalchemy.orm import Session

from branchchat.db.repositories.base import BaseRepository
from branchchat.models.db import User


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: Session):
        super().__init__(User, session)

    def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User instance or None
        """
        return (
            self.session.query(User)
            .filter(User.email == email.strip().lower())
            .first()
        )
