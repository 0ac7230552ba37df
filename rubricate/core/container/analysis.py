"""Analysis pipeline container."""

from __future__ import annotations

import typing as t

import jinja2
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Configuration, Dependency, Factory, Provider, Singleton

from rubricate.document import DocumentLocator, TextExtractor
from rubricate.llm import ModelInvoker
from rubricate.storage.object import ObjectStore

from ..provider import TimestampProvider

if t.TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from rubricate.llm.grading import EvaluationOrchestrator, PromptAssembler


def provide_assembler(env: jinja2.Environment, locator: DocumentLocator, extractor: TextExtractor) -> PromptAssembler:
    from rubricate.llm.grading import PromptAssembler

    return PromptAssembler(env, locator, extractor)


def provide_orchestrator(**kwargs: t.Any) -> EvaluationOrchestrator:
    # the grading pipeline reaches the storage layer, which itself imports this package
    from rubricate.llm.grading import EvaluationOrchestrator

    return EvaluationOrchestrator(**kwargs)


class AnalysisContainer(DeclarativeContainer):
    config: Configuration = Configuration(strict=True)
    llm_env: Provider[jinja2.Environment] = Dependency()
    invoker: Provider[ModelInvoker] = Dependency()
    store: Provider[ObjectStore] = Dependency()
    session: Provider[Session] = Dependency()
    utcnow: Provider[TimestampProvider] = Dependency()

    extractor: Provider[TextExtractor] = Singleton(TextExtractor, max_size=config.max_document_bytes)
    locator: Provider[DocumentLocator] = Singleton(DocumentLocator, store=store, max_size=config.max_document_bytes)
    assembler: Provider[PromptAssembler] = Singleton(
        provide_assembler, env=llm_env, locator=locator, extractor=extractor
    )
    orchestrator: Provider[EvaluationOrchestrator] = Factory(
        provide_orchestrator,
        invoker=invoker,
        assembler=assembler,
        locator=locator,
        extractor=extractor,
        session=session,
        utcnow=utcnow,
        concurrency=config.concurrency,
        max_document_tokens=config.max_document_tokens,
        chunk_size=config.chunk_size,
        default_max_score=config.default_max_score,
    )
