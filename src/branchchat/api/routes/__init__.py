"""
API routes for BranchChat.
"""

from branchchat.api.routes import auth, branches, chat, conversations, messages

__all__ = [
    "auth",
    "branches",
    "chat",
    "conversations",
    "messages",
]
