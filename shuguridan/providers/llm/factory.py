from __future__ import annotations

from shuguridan.core.config import get_settings
from shuguridan.core.errors import ProviderConfigError
from shuguridan.providers.llm.anthropic_claude import AnthropicClaudeProvider
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.providers.llm.fake import FakeLLMProvider
from shuguridan.providers.llm.openai_chat import OpenAIChatProvider


def is_llm_configured() -> bool:
    settings = get_settings()
    provider = (settings.llm_provider or "auto").lower()
    if provider == "fake":
        return True
    if provider == "anthropic":
        return bool(settings.anthropic_api_key)
    if provider == "openai":
        return bool(settings.openai_api_key)
    return bool(settings.anthropic_api_key or settings.openai_api_key)


def get_llm_provider() -> LLMProvider:
    settings = get_settings()
    provider = (settings.llm_provider or "auto").lower()

    if provider == "fake":
        return FakeLLMProvider()
    if provider == "anthropic":
        return AnthropicClaudeProvider()
    if provider == "openai":
        return OpenAIChatProvider()
    if provider == "auto":
        # Prefer Claude when both keys are present.
        if settings.anthropic_api_key:
            return AnthropicClaudeProvider()
        if settings.openai_api_key:
            return OpenAIChatProvider()
        raise ProviderConfigError("LLM not configured: set ANTHROPIC_API_KEY or OPENAI_API_KEY.")
    raise ProviderConfigError(f"Unknown LLM_PROVIDER: {settings.llm_provider}")
