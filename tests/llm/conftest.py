"""Fixtures for LLM tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import jinja2
import pytest

from rubricate.core import RubricateContainer
from rubricate.llm import ModelConfig, ModelFactory
from rubricate.model import ProviderType


@pytest.fixture(scope="session")
def llm_env(container: RubricateContainer) -> jinja2.Environment:
    """Provide the LLM Jinja2 environment from the DI container."""
    return container.template().llm()


@pytest.fixture
def chat_model() -> MagicMock:
    """A chat model double whose replies are set through ``ainvoke``.

    ``with_structured_output()`` returns ``chat_model.structured``, whose
    ``ainvoke`` is likewise an AsyncMock.
    """
    chat = MagicMock(name="chat_model")
    chat.ainvoke = AsyncMock(name="ainvoke")
    chat.structured = MagicMock(name="structured")
    chat.structured.ainvoke = AsyncMock(name="structured.ainvoke")
    chat.with_structured_output.return_value = chat.structured
    return chat


@pytest.fixture
def model_factory(chat_model: MagicMock) -> MagicMock:
    """A ModelFactory double handing out ``chat_model`` for every provider."""
    factory = MagicMock(spec=ModelFactory)
    factory.default_provider = ProviderType.OpenAI

    def config_for(provider: ProviderType | None = None, model: str | None = None) -> ModelConfig:
        return ModelConfig(provider=provider or ProviderType.OpenAI, model_name=model or "test-model")

    factory.config_for.side_effect = config_for
    factory.get_model.return_value = chat_model
    return factory
