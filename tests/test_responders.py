"""
Tests for language model responders.
"""

import json
from unittest.mock import Mock, patch

import anthropic
import httpx
import openai
import pytest

from branchchat.config import Settings
from branchchat.exceptions import RateLimitedError, ResponderError, ValidationError
from branchchat.responders import (
    ChatTurn,
    create_responder,
    create_responder_from_settings,
    get_available_providers,
)
from branchchat.responders.anthropic_provider import AnthropicResponder
from branchchat.responders.base import validate_turns
from branchchat.responders.http_responder import HTTPResponder
from branchchat.responders.openai_provider import OpenAIResponder

HISTORY = [
    ChatTurn(role="user", content="Hello"),
    ChatTurn(role="assistant", content="Hi!"),
    ChatTurn(role="user", content="How are you?"),
]


def _openai_response(content: str = "Fine, thanks") -> Mock:
    response = Mock()
    response.choices = [Mock(message=Mock(content=content), finish_reason="stop")]
    response.usage = Mock(prompt_tokens=12, completion_tokens=3, total_tokens=15)
    response.model = "gpt-4o-mini"
    return response


def _anthropic_response(*texts: str) -> Mock:
    response = Mock()
    response.content = [Mock(text=text) for text in texts]
    response.usage = Mock(input_tokens=12, output_tokens=3)
    response.stop_reason = "end_turn"
    response.model = "claude-sonnet-4-5-20250514"
    return response


def _http_response(status_code: int, url: str) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", url))


class TestValidateTurns:
    def test_accepts_history_ending_in_user(self):
        assert validate_turns(HISTORY) == HISTORY

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            validate_turns([])

    def test_rejects_unknown_role(self):
        with pytest.raises(ValidationError):
            validate_turns([ChatTurn(role="system", content="x")])

    def test_rejects_trailing_assistant(self):
        with pytest.raises(ValidationError):
            validate_turns(HISTORY[:2])

    def test_enum_roles_normalized(self):
        from branchchat.models.db import MessageRole

        turn = ChatTurn(role=MessageRole.USER, content="Hi")

        assert turn.role == "user"
        assert turn.to_dict() == {"role": "user", "content": "Hi"}


class TestOpenAIResponder:
    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_respond(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _openai_response()
        mock_openai_class.return_value = mock_client

        responder = OpenAIResponder(api_key="sk-test", system_prompt="Be brief")
        reply = responder.respond(HISTORY)

        assert reply == "Fine, thanks"
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o-mini"
        assert call_kwargs["messages"][0] == {"role": "system", "content": "Be brief"}
        assert call_kwargs["messages"][-1] == {
            "role": "user",
            "content": "How are you?",
        }

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenAIResponder(api_key="")

    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_rate_limit(self, mock_openai_class):
        url = "https://api.openai.com/v1/chat/completions"
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = openai.RateLimitError(
            "Rate limit reached", response=_http_response(429, url), body=None
        )
        mock_openai_class.return_value = mock_client

        with pytest.raises(RateLimitedError) as exc_info:
            OpenAIResponder(api_key="sk-test").respond(HISTORY)

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "RATE_LIMIT_EXCEEDED"

    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_status_error_keeps_status(self, mock_openai_class):
        url = "https://api.openai.com/v1/chat/completions"
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = openai.InternalServerError(
            "Server error", response=_http_response(503, url), body=None
        )
        mock_openai_class.return_value = mock_client

        with pytest.raises(ResponderError) as exc_info:
            OpenAIResponder(api_key="sk-test").respond(HISTORY)

        assert not isinstance(exc_info.value, RateLimitedError)
        assert exc_info.value.status_code == 503

    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_connection_error(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )
        mock_openai_class.return_value = mock_client

        with pytest.raises(ResponderError) as exc_info:
            OpenAIResponder(api_key="sk-test").respond(HISTORY)

        assert exc_info.value.code == "CONNECTION_ERROR"
        assert exc_info.value.status_code == 502

    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_empty_reply(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _openai_response(content="")
        mock_openai_class.return_value = mock_client

        with pytest.raises(ResponderError) as exc_info:
            OpenAIResponder(api_key="sk-test").respond(HISTORY)

        assert exc_info.value.code == "EMPTY_RESPONSE"

    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_no_choices(self, mock_openai_class):
        response = _openai_response(content="unused")
        response.choices = []
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = response
        mock_openai_class.return_value = mock_client

        with pytest.raises(ResponderError) as exc_info:
            OpenAIResponder(api_key="sk-test").respond(HISTORY)

        assert exc_info.value.code == "EMPTY_RESPONSE"


class TestAnthropicResponder:
    @patch("branchchat.responders.anthropic_provider.Anthropic")
    def test_respond_joins_text_blocks(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create.return_value = _anthropic_response("Fine, ", "thanks")
        mock_anthropic_class.return_value = mock_client

        reply = AnthropicResponder(api_key="sk-ant-test").respond(HISTORY)

        assert reply == "Fine, thanks"
        call_kwargs = mock_client.messages.create.call_args.kwargs
        assert "system" not in call_kwargs
        assert len(call_kwargs["messages"]) == 3

    @patch("branchchat.responders.anthropic_provider.Anthropic")
    def test_system_prompt_passed_separately(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create.return_value = _anthropic_response("Ok")
        mock_anthropic_class.return_value = mock_client

        AnthropicResponder(api_key="sk-ant-test", system_prompt="Be brief").respond(
            HISTORY
        )

        assert mock_client.messages.create.call_args.kwargs["system"] == "Be brief"

    @patch("branchchat.responders.anthropic_provider.Anthropic")
    def test_rate_limit(self, mock_anthropic_class):
        url = "https://api.anthropic.com/v1/messages"
        mock_client = Mock()
        mock_client.messages.create.side_effect = anthropic.RateLimitError(
            "Rate limited", response=_http_response(429, url), body=None
        )
        mock_anthropic_class.return_value = mock_client

        with pytest.raises(RateLimitedError):
            AnthropicResponder(api_key="sk-ant-test").respond(HISTORY)

    @patch("branchchat.responders.anthropic_provider.Anthropic")
    def test_error_type_becomes_code(self, mock_anthropic_class):
        url = "https://api.anthropic.com/v1/messages"
        mock_client = Mock()
        mock_client.messages.create.side_effect = anthropic.InternalServerError(
            "Overloaded",
            response=_http_response(529, url),
            body={"type": "error", "error": {"type": "overloaded_error"}},
        )
        mock_anthropic_class.return_value = mock_client

        with pytest.raises(ResponderError) as exc_info:
            AnthropicResponder(api_key="sk-ant-test").respond(HISTORY)

        assert exc_info.value.code == "overloaded_error"
        assert exc_info.value.status_code == 529


class TestHTTPResponder:
    URL = "http://chat.test/chat"

    def _responder(self, handler) -> HTTPResponder:
        return HTTPResponder(self.URL, transport=httpx.MockTransport(handler))

    def test_posts_messages(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": "Fine, thanks"})

        with self._responder(handler) as responder:
            reply = responder.respond(HISTORY)

        assert reply == "Fine, thanks"
        assert seen["body"] == {"messages": [t.to_dict() for t in HISTORY]}

    def test_rate_limit(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                json={
                    "error": "API rate limit exceeded. Please try again later.",
                    "code": "RATE_LIMIT_EXCEEDED",
                },
            )

        with pytest.raises(RateLimitedError):
            self._responder(handler).respond(HISTORY)

    def test_error_body_preserved(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"error": "Overloaded", "code": "OVERLOADED"})

        with pytest.raises(ResponderError) as exc_info:
            self._responder(handler).respond(HISTORY)

        assert exc_info.value.message == "Overloaded"
        assert exc_info.value.code == "OVERLOADED"
        assert exc_info.value.status_code == 503

    def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ResponderError) as exc_info:
            self._responder(handler).respond(HISTORY)

        assert exc_info.value.code == "CONNECTION_ERROR"


class TestFactory:
    def test_available_providers(self):
        assert get_available_providers() == ["openai", "anthropic", "http"]

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            create_responder("gemini")  # type: ignore[arg-type]

    def test_http_requires_url(self):
        with pytest.raises(ValueError):
            create_responder("http")

    @patch("branchchat.responders.openai_provider.OpenAI")
    def test_from_settings(self, mock_openai_class):
        config = Settings(
            responder_provider="openai",
            openai_api_key="sk-test",
            openai_model="gpt-4o",
        )

        responder = create_responder_from_settings(config)

        assert isinstance(responder, OpenAIResponder)
        assert responder.model_name == "gpt-4o"

    def test_http_from_settings(self):
        config = Settings(
            responder_provider="http", responder_http_url="http://chat.test/chat"
        )

        responder = create_responder_from_settings(config)

        assert responder.provider_name == "http"
        assert responder.model_name == "http://chat.test/chat"
