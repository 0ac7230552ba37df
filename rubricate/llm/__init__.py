"""LLM integration module using LangChain."""

__all__ = [
    # Provider types
    "ModelConfig",
    "create_chat_model",
    "message_text",
    # Factory
    "ModelFactory",
    # Invocation
    "ModelInvoker",
    # Token estimation
    "estimate_tokens",
]

from .factory import ModelFactory
from .invoker import ModelInvoker
from .provider import create_chat_model, message_text, ModelConfig
from .tokens import estimate_tokens
