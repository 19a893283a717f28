"""
Tests for the BranchChat command-line interface.
"""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session
from typer.testing import CliRunner

from branchchat.cli import _pick, app
from branchchat.db.repositories import ConversationRepository, UserRepository
from branchchat.models.db import Branch, User
from branchchat.services.branch_manager import BranchManager
from conftest import TEST_PASSWORD
from fakes import FakeResponder

ENV = {"NO_COLOR": "1", "TERM": "dumb"}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_session(patched_db_session):
    with patch("branchchat.cli.db_session", patched_db_session), patch(
        "branchchat.cli.setup_logging"
    ):
        yield


@pytest.fixture
def cli_responder(cli_session) -> FakeResponder:
    responder = FakeResponder()
    with patch(
        "branchchat.cli.create_responder_from_settings", return_value=responder
    ):
        yield responder


class TestSignup:
    def test_creates_account(self, runner: CliRunner, db_session: Session, cli_session):
        result = runner.invoke(
            app, ["signup", "alan@example.com", "--password", "enigma1"], env=ENV
        )

        assert result.exit_code == 0
        assert "Account created" in result.stdout
        assert UserRepository(db_session).get_by_email("alan@example.com") is not None

    def test_rejects_duplicate(
        self, runner: CliRunner, sample_user: User, cli_session
    ):
        result = runner.invoke(
            app, ["signup", sample_user.email, "--password", "enigma1"], env=ENV
        )

        assert result.exit_code == 1
        assert "already exists" in result.stdout


class TestConversations:
    def test_empty(self, runner: CliRunner, sample_user: User, cli_session):
        result = runner.invoke(
            app, ["conversations", sample_user.email, "--password", TEST_PASSWORD], env=ENV
        )

        assert result.exit_code == 0
        assert "No conversations yet" in result.stdout

    def test_lists_titles(
        self, runner: CliRunner, sample_root_branch: Branch, sample_user: User, cli_session
    ):
        result = runner.invoke(
            app, ["conversations", sample_user.email, "--password", TEST_PASSWORD], env=ENV
        )

        assert result.exit_code == 0
        assert "New Chat" in result.stdout

    def test_wrong_password(self, runner: CliRunner, sample_user: User, cli_session):
        result = runner.invoke(
            app, ["conversations", sample_user.email, "--password", "nope-nope"], env=ENV
        )

        assert result.exit_code == 1
        assert "Invalid email or password" in result.stdout


class TestChat:
    def _chat(self, runner: CliRunner, user: User, lines: list[str]):
        return runner.invoke(
            app,
            ["chat", user.email, "--password", TEST_PASSWORD],
            input="\n".join(lines) + "\n",
            env=ENV,
        )

    def test_sends_message(
        self,
        runner: CliRunner,
        db_session: Session,
        sample_user: User,
        cli_responder: FakeResponder,
    ):
        cli_responder.replies = ["Hi there"]

        result = self._chat(runner, sample_user, ["Hello", "/quit"])

        assert result.exit_code == 0
        assert "assistant: Hi there" in result.stdout
        conversations = ConversationRepository(db_session).get_by_owner(sample_user.id)
        assert [c.title for c in conversations] == ["Hello"]

    def test_shows_error_notice(
        self,
        runner: CliRunner,
        sample_user: User,
        cli_responder: FakeResponder,
    ):
        from branchchat.exceptions import RateLimitedError

        cli_responder.replies = [RateLimitedError()]

        result = self._chat(runner, sample_user, ["Hello", "/quit"])

        assert result.exit_code == 0
        assert "rate limit" in result.stdout
        assert "API quota" in result.stdout

    def test_edit_creates_branch(
        self,
        runner: CliRunner,
        db_session: Session,
        sample_user: User,
        cli_responder: FakeResponder,
    ):
        result = self._chat(
            runner,
            sample_user,
            ["Explain recursion", "/edit 1 Explain iteration", "/branches", "/quit"],
        )

        assert result.exit_code == 0
        assert "Explain iteration" in result.stdout
        conversation = ConversationRepository(db_session).get_by_owner(sample_user.id)[0]
        assert len(BranchManager(db_session).list_branches(conversation.id)) == 2

    @pytest.mark.parametrize("number", ["0", "-1", "3"])
    def test_delete_out_of_range_keeps_branches(
        self,
        runner: CliRunner,
        db_session: Session,
        sample_user: User,
        cli_responder: FakeResponder,
        number: str,
    ):
        result = self._chat(
            runner,
            sample_user,
            [
                "Explain recursion",
                "/edit 1 Explain iteration",
                f"/delete {number}",
                "/branches",
                "/quit",
            ],
        )

        assert result.exit_code == 0
        assert f"No item '{number}'" in result.stdout
        assert "Branch deleted" not in result.stdout
        conversation = ConversationRepository(db_session).get_by_owner(sample_user.id)[0]
        assert len(BranchManager(db_session).list_branches(conversation.id)) == 2

    def test_help_and_unknown_command(
        self, runner: CliRunner, sample_user: User, cli_responder: FakeResponder
    ):
        result = self._chat(runner, sample_user, ["/help", "/bogus", "/quit"])

        assert result.exit_code == 0
        assert "/switch" in result.stdout
        assert "Unknown command /bogus" in result.stdout
        assert cli_responder.calls == []

    def test_unconfigured_responder(
        self, runner: CliRunner, sample_user: User, cli_session
    ):
        with patch(
            "branchchat.cli.create_responder_from_settings",
            side_effect=ValueError("OpenAI API key is required"),
        ):
            result = self._chat(runner, sample_user, ["/quit"])

        assert result.exit_code == 1
        assert "API key is required" in result.stdout


class TestPick:
    class _Item:
        def __init__(self):
            self.id = uuid.uuid4()

    def test_in_range(self):
        items = [self._Item(), self._Item()]

        assert _pick(items, "1") == items[0].id
        assert _pick(items, "2") == items[1].id

    @pytest.mark.parametrize("arg", ["0", "-1", "3", "two", ""])
    def test_out_of_range(self, arg: str):
        assert _pick([self._Item(), self._Item()], arg) is None
