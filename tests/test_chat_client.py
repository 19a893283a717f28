"""
Tests for ChatClient, the operation boundary that keeps ClientState in sync.
"""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from branchchat.auth import DatabaseAuthProvider
from branchchat.client.session import RATE_LIMIT_HINT, ChatClient
from branchchat.db.repositories import (
    BranchRepository,
    ConversationRepository,
    MessageRepository,
)
from branchchat.exceptions import PersistenceError, RateLimitedError
from branchchat.services.branch_manager import BranchManager
from branchchat.services.message_pipeline import MessagePipeline
from fakes import FakeResponder


@pytest.fixture
def responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture
def client(
    db_session: Session, responder: FakeResponder, auth_provider: DatabaseAuthProvider
) -> ChatClient:
    return ChatClient(db_session, responder, auth_provider)


@pytest.fixture
def active_client(client: ChatClient) -> ChatClient:
    """Client with a fresh conversation active."""
    client.new_chat()
    return client


class TestLoadConversations:
    def test_empty(self, client: ChatClient):
        assert client.load_conversations() == []
        assert client.state.active_conversation_id is None

    def test_activates_most_recent(
        self, db_session: Session, client: ChatClient, sample_user
    ):
        manager = BranchManager(db_session)
        manager.create_conversation_with_root_branch(sample_user.id)
        newest, root = manager.create_conversation_with_root_branch(sample_user.id)

        conversations = client.load_conversations()

        assert len(conversations) == 2
        assert client.state.active_conversation_id == newest.id
        assert client.state.active_branch_id == root.id

    def test_signed_out_sets_error(self, client: ChatClient):
        client.auth_provider.sign_out()

        assert client.load_conversations() is None
        assert client.state.error.code == "AUTH_ERROR"


class TestNewChat:
    def test_new_chat_activates_root(self, client: ChatClient):
        view = client.new_chat()

        state = client.state
        assert view.title == "New Chat"
        assert state.conversations[0].id == view.id
        assert state.active_conversation_id == view.id
        assert len(state.branches) == 1
        assert state.branches[0].is_root
        assert state.active_branch_id == state.branches[0].id
        assert state.messages == []


class TestSendMessage:
    def test_success_appends_two_messages(self, active_client: ChatClient):
        before = len(active_client.state.messages)

        reply = active_client.send_message("Hello")

        messages = active_client.state.messages
        assert len(messages) == before + 2
        assert messages[0].role == "user"
        assert messages[1].role == "assistant"
        assert messages[1].id == reply.id
        assert messages[1].parent_id == messages[0].id

    def test_success_updates_titles(self, active_client: ChatClient):
        active_client.send_message("Hello")

        state = active_client.state
        assert state.conversations[0].title == "Hello"
        assert state.root_branch.title == "Hello"

    def test_rate_limit_restores_state(
        self, db_session: Session, active_client: ChatClient, responder: FakeResponder
    ):
        active_client.send_message("First")
        before = len(active_client.state.messages)
        responder.replies = [RateLimitedError()]

        assert active_client.send_message("Second") is None

        state = active_client.state
        assert len(state.messages) == before
        assert state.error.code == "RATE_LIMIT_EXCEEDED"
        assert state.error.hint == RATE_LIMIT_HINT
        stored = MessageRepository(db_session).count_by_branch(
            state.active_conversation_id, state.active_branch_id
        )
        assert stored == before

    def test_unexpected_responder_exception_restores_state(
        self, db_session: Session, active_client: ChatClient, responder: FakeResponder
    ):
        active_client.send_message("First")
        state = active_client.state
        before = list(state.messages)
        responder.replies = [RuntimeError("client library crashed")]

        assert active_client.send_message("Second") is None

        assert state.messages == before
        assert state.error.code == "RESPONDER_ERROR"
        stored = MessageRepository(db_session).count_by_branch(
            state.active_conversation_id, state.active_branch_id
        )
        assert stored == len(before)

    def test_title_write_failure_keeps_cached_title(
        self, db_session: Session, active_client: ChatClient
    ):
        state = active_client.state

        with patch.object(
            BranchManager,
            "rename_conversation",
            side_effect=PersistenceError("title write failed"),
        ):
            assert active_client.send_message("Hello") is not None

        stored = ConversationRepository(db_session).get(state.active_conversation_id)
        assert stored.title == "New Chat"
        assert state.conversations[0].title == "New Chat"
        assert state.root_branch.title == stored.title

    def test_cached_title_matches_stored_title(
        self, db_session: Session, active_client: ChatClient
    ):
        state = active_client.state

        active_client.send_message("   Hello")

        stored = ConversationRepository(db_session).get(state.active_conversation_id)
        assert stored.title == "Hello"
        assert state.conversations[0].title == stored.title
        assert state.root_branch.title == stored.title

    def test_child_branch_title_cached(
        self, db_session: Session, active_client: ChatClient
    ):
        state = active_client.state
        other = BranchManager(db_session).fork_branch(state.active_branch_id)
        active_client.select_branch(other.id)

        active_client.send_message("Side quest")

        stored = BranchRepository(db_session).get(other.id)
        assert state.active_branch.title == stored.title == "Side quest"
        assert state.root_branch.title == state.conversations[0].title == "Side quest"

    def test_without_active_conversation(self, client: ChatClient):
        assert client.send_message("Hello") is None
        assert client.state.error.code == "VALIDATION_ERROR"

    def test_stale_reply_not_shown(
        self, db_session: Session, active_client: ChatClient, responder: FakeResponder
    ):
        state = active_client.state
        conversation_id = state.active_conversation_id
        root_id = state.active_branch_id
        other = BranchManager(db_session).fork_branch(root_id)
        # The user switches branch while the reply is in flight
        responder.during_call = lambda: state.activate_branch(other.id)

        reply = active_client.send_message("Hello")

        assert reply is not None
        assert state.active_branch_id == other.id
        assert state.messages == []
        # The exchange is still stored on the branch it was sent to
        assert MessageRepository(db_session).count_by_branch(conversation_id, root_id) == 2


class TestEditMessage:
    def test_edit_switches_to_new_branch(
        self, db_session: Session, active_client: ChatClient
    ):
        active_client.send_message("Explain recursion")
        state = active_client.state
        origin = state.messages[0]
        root_id = state.active_branch_id

        branch = active_client.edit_message(origin.id, "Explain iteration")

        assert branch.parent_branch_id == root_id
        assert state.active_branch_id == branch.id
        assert [m.content for m in state.messages][0] == "Explain iteration"
        assert len(state.messages) == 2
        assert state.messages[0].parent_id == origin.id
        assert len(state.branches) == 2

    def test_delete_root_still_rejected_after_edit(
        self, db_session: Session, active_client: ChatClient
    ):
        active_client.send_message("Explain recursion")
        state = active_client.state
        root_id = state.active_branch_id
        active_client.edit_message(state.messages[0].id, "Explain iteration")
        count = BranchRepository(db_session).count_by_conversation(
            state.active_conversation_id
        )

        assert active_client.delete_branch(root_id) is False

        assert state.error.code == "PROTECTED_BRANCH"
        assert len(state.branches) == 2
        assert (
            BranchRepository(db_session).count_by_conversation(
                state.active_conversation_id
            )
            == count
        )

    def test_edit_unknown_message(self, active_client: ChatClient):
        assert active_client.edit_message(uuid.uuid4(), "Anything") is None
        assert active_client.state.error.code == "NOT_FOUND"

    def test_edit_message_of_other_conversation(
        self, db_session: Session, active_client: ChatClient
    ):
        active_client.send_message("Explain recursion")
        state = active_client.state
        first_conversation_id = state.active_conversation_id
        foreign_id = state.messages[0].id
        active_client.new_chat()
        conversation_id = state.active_conversation_id
        branch_id = state.active_branch_id

        assert active_client.edit_message(foreign_id, "Explain iteration") is None

        assert state.error.code == "VALIDATION_ERROR"
        assert state.active_conversation_id == conversation_id
        assert state.active_branch_id == branch_id
        assert len(state.branches) == 1
        assert (
            BranchRepository(db_session).count_by_conversation(first_conversation_id)
            == 1
        )


class TestBranchOperations:
    def test_select_branch_loads_messages(
        self, db_session: Session, active_client: ChatClient
    ):
        active_client.send_message("Explain recursion")
        state = active_client.state
        root_id = state.active_branch_id
        active_client.edit_message(state.messages[0].id, "Explain iteration")

        active_client.select_branch(root_id)

        assert state.active_branch_id == root_id
        assert [m.content for m in state.messages][0] == "Explain recursion"

    def test_select_branch_of_other_conversation(
        self, db_session: Session, active_client: ChatClient, sample_user
    ):
        _, other_root = BranchManager(db_session).create_conversation_with_root_branch(
            sample_user.id
        )
        active_branch = active_client.state.active_branch_id

        assert active_client.select_branch(other_root.id) is None
        assert active_client.state.error.code == "VALIDATION_ERROR"
        assert active_client.state.active_branch_id == active_branch

    def test_delete_active_branch_falls_back_to_root(
        self, active_client: ChatClient
    ):
        active_client.send_message("Explain recursion")
        state = active_client.state
        root_id = state.active_branch_id
        branch = active_client.edit_message(state.messages[0].id, "Explain iteration")

        assert active_client.delete_branch(branch.id) is True

        assert state.active_branch_id == root_id
        assert [b.id for b in state.branches] == [root_id]
        assert len(state.messages) == 2

    def test_rename_root_branch_renames_conversation(self, active_client: ChatClient):
        state = active_client.state

        active_client.rename_branch(state.active_branch_id, "Algorithms")

        assert state.root_branch.title == "Algorithms"
        assert state.conversations[0].title == "Algorithms"

    def test_rename_conversation_renames_root(self, active_client: ChatClient):
        state = active_client.state

        active_client.rename_conversation(state.active_conversation_id, "Graphs")

        assert state.conversations[0].title == "Graphs"
        assert state.root_branch.title == "Graphs"

    def test_rename_empty_title(self, active_client: ChatClient):
        state = active_client.state

        assert active_client.rename_branch(state.active_branch_id, " ") is None
        assert state.error.code == "VALIDATION_ERROR"


class TestReloads:
    def test_reload_failure_keeps_prior_state(self, active_client: ChatClient):
        active_client.send_message("Hello")
        before = list(active_client.state.messages)

        with patch.object(
            MessagePipeline,
            "list_messages",
            side_effect=PersistenceError("store offline"),
        ):
            active_client.reload_messages()

        assert active_client.state.messages == before
        assert active_client.state.error is None

    def test_reload_branches(self, db_session: Session, active_client: ChatClient):
        state = active_client.state
        BranchManager(db_session).fork_branch(state.active_branch_id)

        active_client.reload_branches()

        assert len(state.branches) == 2
