"""Language model responders.

A responder turns an ordered role/content history into a single assistant
reply. Currently supported providers:
- OpenAI (gpt-4o-mini, gpt-4o, etc.)
- Anthropic (claude-sonnet-4-5, claude-3-5-haiku, etc.)
- HTTP (server-mediated: delegates to a BranchChat ``/chat`` endpoint)

Usage:
    from branchchat.responders import ChatTurn, create_responder

    responder = create_responder(provider_type="openai", api_key="sk-xxx")
    reply = responder.respond([ChatTurn(role="user", content="Hello")])
"""

import logging
from typing import Literal, Optional

from branchchat.config import Settings
from branchchat.responders.base import ChatTurn, Responder, ResponderReply

logger = logging.getLogger(__name__)

ProviderType = Literal["openai", "anthropic", "http"]


def create_responder(
    provider_type: ProviderType,
    api_key: str = "",
    model: Optional[str] = None,
    max_tokens: int = 1000,
    temperature: float = 0.7,
    system_prompt: str = "",
    url: str = "",
    timeout: float = 60.0,
) -> Responder:
    """Factory function to create responders.

    Args:
        provider_type: "openai", "anthropic", or "http"
        api_key: API key for model providers (unused for http)
        model: Optional model override (uses provider default if not specified)
        max_tokens: Maximum tokens per reply
        temperature: Sampling temperature
        system_prompt: Optional system prompt
        url: Chat endpoint URL (http only)
        timeout: Request timeout in seconds (http only)

    Returns:
        Configured Responder instance

    Raises:
        ValueError: If provider_type is unknown or a required credential is missing
    """
    if provider_type == "openai":
        from branchchat.responders.openai_provider import OpenAIResponder

        return OpenAIResponder(
            api_key=api_key,
            model=model or "gpt-4o-mini",
            max_tokens=max_tokens,
            temperature=temperature,
            system_prompt=system_prompt,
        )

    elif provider_type == "anthropic":
        from branchchat.responders.anthropic_provider import AnthropicResponder

        return AnthropicResponder(
            api_key=api_key,
            model=model or "claude-sonnet-4-5-20250514",
            max_tokens=max_tokens,
            temperature=temperature,
            system_prompt=system_prompt,
        )

    elif provider_type == "http":
        from branchchat.responders.http_responder import HTTPResponder

        if not url:
            raise ValueError("A chat endpoint URL is required for the http provider")
        return HTTPResponder(url=url, timeout=timeout)

    else:
        raise ValueError(
            f"Unknown provider type: {provider_type}. "
            f"Supported providers: {', '.join(get_available_providers())}"
        )


def create_responder_from_settings(settings: Settings) -> Responder:
    """Build the responder selected by ``settings.responder_provider``."""
    provider = settings.responder_provider
    api_keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
    }
    models = {
        "openai": settings.openai_model,
        "anthropic": settings.anthropic_model,
    }
    return create_responder(
        provider_type=provider,  # type: ignore[arg-type]
        api_key=api_keys.get(provider, ""),
        model=models.get(provider),
        max_tokens=settings.responder_max_tokens,
        temperature=settings.responder_temperature,
        system_prompt=settings.responder_system_prompt,
        url=settings.responder_http_url,
        timeout=settings.responder_http_timeout,
    )


def get_available_providers() -> list[str]:
    """Get list of available provider types."""
    return ["openai", "anthropic", "http"]


__all__ = [
    "ChatTurn",
    "ProviderType",
    "Responder",
    "ResponderReply",
    "create_responder",
    "create_responder_from_settings",
    "get_available_providers",
]
