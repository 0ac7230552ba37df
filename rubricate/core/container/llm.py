"""LLM container for dependency injection."""

from __future__ import annotations

import typing as t

from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Configuration, Factory, Provider, Singleton

from rubricate.llm import ModelFactory, ModelInvoker

from ..config.llm import LLMSettings
from ..config.secrets import LLMSecrets


def provide_llm_secrets(secrets: dict[str, t.Any] | None) -> LLMSecrets | None:
    return LLMSecrets(**secrets) if secrets else None


class LLMContainer(DeclarativeContainer):
    """Container for LLM services."""

    config: Configuration = Configuration()
    secrets: Configuration = Configuration()

    llm_secrets: Provider[LLMSecrets | None] = Factory(provide_llm_secrets, secrets.llm)
    factory: Provider[ModelFactory] = Singleton(
        ModelFactory, settings=config.as_(LLMSettings), secrets=llm_secrets
    )
    invoker: Provider[ModelInvoker] = Singleton(ModelInvoker, factory=factory, timeout=config.timeout_seconds)
