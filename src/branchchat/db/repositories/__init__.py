"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from branchchat.db.repositories.base import BaseRepository
from branchchat.db.repositories.branch import BranchRepository
from branchchat.db.repositories.conversation import ConversationRepository
from branchchat.db.repositories.message import MessageRepository
from branchchat.db.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "BranchRepository",
    "ConversationRepository",
    "MessageRepository",
    "UserRepository",
]
