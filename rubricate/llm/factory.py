"""Model factory for creating LLM instances."""

from __future__ import annotations

import logging
import threading
import typing as t

from langchain_core.language_models import BaseChatModel

from rubricate.model import ProviderType

from .provider import create_chat_model, ModelConfig

if t.TYPE_CHECKING:
    from rubricate.core.config.llm import LLMSettings
    from rubricate.core.config.secrets import LLMSecrets

logger = logging.getLogger(__name__)


class ModelFactory:
    """Creates configured chat models, once per (provider, model) pair.

    Chat model handles are immutable and safe to share, so the first handle
    created for a pair is cached and handed to every later caller.
    """

    def __init__(self, settings: LLMSettings, secrets: LLMSecrets | None) -> None:
        self._settings = settings
        self._secrets = secrets
        self._models: dict[tuple[ProviderType, str], BaseChatModel] = {}
        self._lock = threading.Lock()

    def _get_api_key(self, provider: ProviderType) -> str:
        """Get the API key for a provider."""
        vendor = getattr(self._secrets, provider.value, None) if self._secrets else None
        if vendor is None:
            raise ValueError(f"{provider.value} API key not configured")
        return vendor.api_key.get_secret_value()

    @property
    def default_provider(self) -> ProviderType:
        return self._settings.default_provider

    def config_for(self, provider: ProviderType | None = None, model: str | None = None) -> ModelConfig:
        provider = provider or self._settings.default_provider
        return ModelConfig.from_settings(self._settings.models.for_provider(provider), model)

    def get_model(self, provider: ProviderType | None = None, model: str | None = None) -> BaseChatModel:
        """Get the chat model for a provider, optionally overriding its configured model name."""
        config = self.config_for(provider, model)
        key = (config.provider, config.model_name)
        with self._lock:
            if key not in self._models:
                logger.debug(
                    "creating chat model", extra={"provider": config.provider.value, "model": config.model_name}
                )
                self._models[key] = create_chat_model(config, api_key=self._get_api_key(config.provider))
            return self._models[key]
