from __future__ import annotations

import pydantic as p
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from rubricate.model import BaseModel, DeploymentEnvironment

from .base import BaseSecrets
from .source import VendorEnvironmentSource, YAMLSecretsSource


class PostgresqlSecrets(BaseSecrets):
    username: p.Secret[str] | None = None
    password: p.Secret[str] | None = None


class OpenAISecrets(BaseSecrets):
    """OpenAI API secrets."""

    api_key: p.Secret[str]


class AnthropicSecrets(BaseSecrets):
    """Anthropic API secrets."""

    api_key: p.Secret[str]


class GoogleSecrets(BaseSecrets):
    """Google Generative AI (Gemini) API secrets."""

    api_key: p.Secret[str]


class LLMSecrets(BaseSecrets):
    """LLM vendor API secrets."""

    openai: OpenAISecrets | None = None
    anthropic: AnthropicSecrets | None = None
    google: GoogleSecrets | None = None


class ObjectSecrets(BaseSecrets):
    """S3 credentials; when absent boto3 falls back to its own credential chain."""

    access_key_id: p.Secret[str] | None = None
    secret_access_key: p.Secret[str] | None = None


class Secrets(BaseSecrets, BaseModel):  # pyright: ignore [reportIncompatibleVariableOverride]
    root: p.AnyUrl
    env: DeploymentEnvironment

    llm: LLMSecrets | None = None
    object: ObjectSecrets | None = None
    postgresql: PostgresqlSecrets = p.Field(default_factory=PostgresqlSecrets)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # e.g. RUBRICATE_LLM__OPENAI__API_KEY beats the secrets file, which beats OPENAI_API_KEY
        return init_settings, env_settings, YAMLSecretsSource(settings_cls), VendorEnvironmentSource(settings_cls)
