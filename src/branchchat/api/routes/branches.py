"""
Branch API routes.

Rename and delete branches. The main branch of a conversation cannot be
deleted.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from branchchat.api.auth import AuthContext, get_auth_context
from branchchat.api.errors import to_http_exception
from branchchat.api.schemas import BranchDeleteResponse, BranchResponse, TitleUpdate
from branchchat.db.connection import get_db
from branchchat.exceptions import ChatError
from branchchat.models.db import Branch
from branchchat.services.branch_manager import BranchManager

router = APIRouter()


def _owned_branch(manager: BranchManager, branch_id: UUID, auth: AuthContext) -> Branch:
    """Load a branch, 404ing unless it belongs to one of the caller's conversations."""
    branch = manager.get_branch(branch_id)
    manager.get_conversation(branch.conversation_id, owner_id=auth.user_id)
    return branch


@router.patch("/{branch_id}", response_model=BranchResponse)
async def rename_branch(
    branch_id: UUID,
    update: TitleUpdate,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> BranchResponse:
    """Rename a branch. Renaming the main branch renames its conversation."""
    manager = BranchManager(session)
    try:
        _owned_branch(manager, branch_id, auth)
        branch = manager.rename_branch(branch_id, update.title)
    except ChatError as e:
        raise to_http_exception(e)
    return BranchResponse.model_validate(branch)


@router.delete("/{branch_id}", response_model=BranchDeleteResponse)
async def delete_branch(
    branch_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> BranchDeleteResponse:
    """
    Delete a branch with its descendant branches and their messages.

    Returns the conversation's main branch so clients can fall back to it.
    Responds 409 for the main branch itself.
    """
    manager = BranchManager(session)
    try:
        _owned_branch(manager, branch_id, auth)
        root = manager.delete_branch(branch_id)
    except ChatError as e:
        raise to_http_exception(e)
    return BranchDeleteResponse(
        deleted_branch_id=branch_id,
        root_branch=BranchResponse.model_validate(root),
    )
