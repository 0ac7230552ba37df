"""LLM provider abstraction using LangChain."""

from __future__ import annotations

import typing as t
from dataclasses import dataclass

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from pydantic import SecretStr

from rubricate.model import ProviderType

if t.TYPE_CHECKING:
    from rubricate.core.config.llm import ModelSettings


@dataclass(frozen=True)
class ModelConfig:
    """Configuration for a specific model."""

    provider: ProviderType
    model_name: str
    temperature: float = 0.3
    max_tokens: int = 4096
    timeout: float = 120.0
    max_retries: int = 0

    @classmethod
    def from_settings(cls, settings: ModelSettings, model_name: str | None = None) -> ModelConfig:
        return cls(
            provider=settings.provider,
            model_name=model_name or settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
        )


def create_chat_model(config: ModelConfig, *, api_key: str) -> BaseChatModel:
    """Create a LangChain chat model from configuration.

    Args:
        config: Model configuration
        api_key: API key of the configured provider

    Returns:
        Configured LangChain chat model
    """
    if config.provider == ProviderType.OpenAI:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            max_completion_tokens=config.max_tokens,
            timeout=config.timeout,
            max_retries=config.max_retries,
            api_key=SecretStr(api_key),
        )
    elif config.provider == ProviderType.Anthropic:
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model_name=config.model_name,
            temperature=config.temperature,
            max_tokens_to_sample=config.max_tokens,
            timeout=config.timeout,
            max_retries=config.max_retries,
            api_key=SecretStr(api_key),
            stop=None,
        )
    elif config.provider == ProviderType.Google:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=config.model_name,
            temperature=config.temperature,
            max_output_tokens=config.max_tokens,
            timeout=config.timeout,
            max_retries=config.max_retries,
            google_api_key=SecretStr(api_key),
        )
    else:
        raise ValueError(f"Unsupported provider: {config.provider}")


def message_text(message: BaseMessage | t.Any) -> str:
    """Plain text of a model reply; content blocks are concatenated."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in t.cast(list[t.Any], content):
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":  # pyright: ignore[reportUnknownMemberType]
                parts.append(str(block.get("text", "")))  # pyright: ignore[reportUnknownMemberType]
        return "".join(parts)
    return str(content)
