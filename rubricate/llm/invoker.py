"""Bounded single-shot calls to chat models."""

from __future__ import annotations

import asyncio
import logging
import time
import typing as t

import pydantic as p
from langchain_core.exceptions import OutputParserException
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from rubricate.errors import ProviderError, SchemaParseError
from rubricate.model import ProviderType

from .factory import ModelFactory
from .provider import message_text

logger = logging.getLogger(__name__)

TSchema = t.TypeVar("TSchema", bound=p.BaseModel)


class ModelInvoker(object):
    """Sends prompts to a provider and returns text or validated objects.

    Every call is bounded by ``timeout`` seconds. The invoker never retries;
    the provider client's own retry budget comes from the model settings.
    """

    def __init__(self, factory: ModelFactory, timeout: float) -> None:
        self.factory = factory
        self.timeout = timeout

    async def generate(
        self,
        prompt: str,
        *,
        provider: ProviderType | None = None,
        model: str | None = None,
    ) -> str:
        """Get a free-text completion of a single user prompt.

        Raises:
            ProviderError: the call failed or timed out
        """
        response = await self._invoke([HumanMessage(content=prompt)], provider=provider, model=model)
        return message_text(response)

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: type[TSchema],
        *,
        provider: ProviderType | None = None,
        model: str | None = None,
    ) -> TSchema:
        """Get a response constrained to ``schema``.

        Raises:
            ProviderError: the call failed or timed out
            SchemaParseError: the response does not validate against ``schema``
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        result = await self._invoke(messages, provider=provider, model=model, schema=schema)

        if result is None:
            raise SchemaParseError(f"provider returned no {schema.__name__}")
        if isinstance(result, schema):
            return result
        try:
            return schema.model_validate(result)
        except p.ValidationError as e:
            raise SchemaParseError(f"response does not match {schema.__name__}: {e}") from e

    async def _invoke(
        self,
        messages: list[BaseMessage],
        *,
        provider: ProviderType | None,
        model: str | None,
        schema: type[p.BaseModel] | None = None,
    ) -> t.Any:
        config = self.factory.config_for(provider, model)
        extra = {"provider": config.provider.value, "model": config.model_name}
        started = time.monotonic()
        try:
            chat = self.factory.get_model(config.provider, config.model_name)
            # LangChain's with_structured_output has incomplete types
            runnable: t.Any = chat.with_structured_output(schema) if schema is not None else chat  # pyright: ignore
            result = await asyncio.wait_for(runnable.ainvoke(messages), timeout=self.timeout)
        except TimeoutError as e:
            logger.warning("model call timed out", extra={**extra, "timeout": self.timeout})
            raise ProviderError(
                f"{config.provider.value} call timed out after {self.timeout:g}s", cause=e
            ) from e
        except (OutputParserException, p.ValidationError) as e:
            raise SchemaParseError(f"could not parse {config.provider.value} response: {e}") from e
        except Exception as e:
            logger.warning("model call failed", extra={**extra, "error": repr(e)})
            raise ProviderError(f"{config.provider.value} call failed: {e}", cause=e) from e

        logger.debug("model call completed", extra={**extra, "elapsed": round(time.monotonic() - started, 3)})
        return result
