__all__ = [
    "AnalysisSettings",
    "LLMSettings",
    "LoggingSettings",
    "ModelSettings",
    "ObjectSettings",
    "ProviderModels",
    "Secrets",
    "Settings",
    "StorageSettings",
    "TemplateSettings",
]


from .analysis import AnalysisSettings
from .llm import LLMSettings, ModelSettings, ProviderModels
from .logging import LoggingSettings
from .secrets import Secrets
from .settings import Settings
from .storage import ObjectSettings, StorageSettings
from .template import TemplateSettings
