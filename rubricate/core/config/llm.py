"""LLM configuration settings."""

from __future__ import annotations

import typing as t

import pydantic as p

from rubricate.model import ProviderType

from .base import BaseSettings


class ModelSettings(BaseSettings):
    """Settings for a specific model."""

    provider: ProviderType = ProviderType.OpenAI
    model: str = "gpt-4o-mini"
    max_tokens: int = 4096
    # grading favors near-deterministic sampling
    temperature: float = 0.3
    # the invoker never retries; this is the provider client's own retry budget
    max_retries: int = 0
    timeout_seconds: float = 120.0


class ProviderModels(BaseSettings):
    """Model used for each provider when no model hint is given."""

    openai: ModelSettings = ModelSettings(provider=ProviderType.OpenAI, model="gpt-4o-mini")
    anthropic: ModelSettings = ModelSettings(provider=ProviderType.Anthropic, model="claude-3-5-haiku-latest")
    google: ModelSettings = ModelSettings(provider=ProviderType.Google, model="gemini-2.5-flash-lite")

    def for_provider(self, provider: ProviderType) -> ModelSettings:
        return t.cast(ModelSettings, getattr(self, provider.value))


class LLMSettings(BaseSettings):
    """Root LLM configuration."""

    default_provider: ProviderType = ProviderType.OpenAI
    models: ProviderModels = p.Field(default_factory=ProviderModels)
    # upper bound on one provider call, enforced by the invoker
    timeout_seconds: float = 120.0
