__all__ = [
    "BootConfiguration",
    "di",
    "RubricateContainer",
    "LoggingProvider",
    "Settings",
    "Secrets",
    "TimestampProvider",
]


from . import di
from .config import Secrets, Settings
from .container import BootConfiguration, RubricateContainer
from .provider import LoggingProvider, TimestampProvider
