"""Evaluation management: evaluations, their primary rubric and its items."""

from __future__ import annotations

import contextlib
import logging
import typing as t

import pydantic as p
from sqlalchemy.exc import SQLAlchemyError

from rubricate.core import di
from rubricate.core.provider import TimestampProvider
from rubricate.document import check_document, DocumentLocator
from rubricate.errors import NotFoundError, PersistenceError
from rubricate.lib.util import sanitize_filename
from rubricate.model import EvaluationAggregate, EvaluationID
from rubricate.storage import evaluation as evaluation_storage
from rubricate.storage import rubric as rubric_storage
from rubricate.storage import Session
from rubricate.storage.object import ObjectStore
from rubricate.storage.rubric import RubricItemCreateParams

logger = logging.getLogger(__name__)


class RubricDocument(p.BaseModel):
    """An uploaded rubric PDF."""

    model_config = p.ConfigDict(frozen=True)

    filename: str
    data: bytes


@contextlib.contextmanager
def transaction(session: Session) -> t.Iterator[Session]:
    """Run a block in one transaction, surfacing database failures as PersistenceError."""
    try:
        with session.begin():
            yield session
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e


def rubric_title(evaluation_title: str, document: RubricDocument | None) -> str:
    if document is None:
        return f"Rubric for {evaluation_title}"
    name = document.filename
    return name[: -len(".pdf")] if name.lower().endswith(".pdf") else name


@di.inject
async def upload_rubric_document(
    evaluation_id: EvaluationID,
    filename: str,
    data: bytes,
    *,
    store: ObjectStore = di.Provide["storage.object.store"],
    bucket: str = di.Provide["config.storage.object.bucket"],
    max_size: int = di.Provide["config.analysis.max_document_bytes"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> str:
    """Store a rubric PDF under the evaluation's prefix and return its reference.

    Raises:
        PayloadTooLargeError: the document exceeds the size ceiling
        InvalidFormatError: the document is not a PDF
    """
    check_document(data, max_size)
    timestamp = int(utcnow().timestamp() * 1000)
    key = f"evaluations/{evaluation_id}/rubrics/{timestamp}_{sanitize_filename(filename)}"
    reference = await store.put(bucket, key, data, content_type="application/pdf")
    logger.info("uploaded rubric document", extra={"evaluation_id": str(evaluation_id), "reference": reference})
    return reference


@di.inject
async def create_evaluation(
    *,
    title: str,
    description: str | None = None,
    group_count: int = 0,
    owner: str | None = None,
    items: t.Sequence[RubricItemCreateParams] = (),
    rubric_document: RubricDocument | None = None,
    session: Session = di.Provide["storage.persistent.session"],
    store: ObjectStore = di.Provide["storage.object.store"],
    locator: DocumentLocator = di.Provide["analysis.locator"],
) -> EvaluationAggregate:
    """Create an evaluation with its primary rubric and the rubric's items.

    A rubric document is uploaded first; if the database write then fails the
    upload is discarded again and the PersistenceError still propagates.
    """
    evaluation_id = EvaluationID()
    document_url = None
    if rubric_document is not None:
        document_url = await upload_rubric_document(
            evaluation_id, rubric_document.filename, rubric_document.data, store=store
        )

    try:
        with transaction(session):
            evaluation_storage.create(
                evaluation_id=evaluation_id,
                title=title,
                description=description,
                group_count=group_count,
                owner=owner,
                session=session,
            )
            rubric_storage.create(
                evaluation_id=evaluation_id,
                title=rubric_title(title, rubric_document),
                document_url=document_url,
                items=list(items),
                session=session,
            )
    except PersistenceError:
        if document_url is not None:
            await locator.discard(document_url)
        raise

    logger.info("created evaluation", extra={"evaluation_id": str(evaluation_id), "items": len(items)})
    return get_evaluation(evaluation_id, session=session)


@di.inject
def get_evaluation(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationAggregate:
    """Raises NotFoundError for an unknown evaluation."""
    with session.begin():
        aggregate = evaluation_storage.get_aggregate(evaluation_id, session=session)
    if aggregate is None:
        raise NotFoundError(f"evaluation {evaluation_id} not found")
    return aggregate


@di.inject
def update_evaluation(
    evaluation_id: EvaluationID,
    *,
    title: str | None = None,
    description: str | None = None,
    group_count: int | None = None,
    additional_items: t.Sequence[RubricItemCreateParams] = (),
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationAggregate:
    """Update an evaluation and append items to its primary rubric.

    Appended items without an explicit order continue after the current last
    item of the rubric.

    Raises:
        NotFoundError: the evaluation does not exist, or has no rubric to append to
    """
    changes: dict[str, t.Any] = {
        k: v for k, v in dict(title=title, description=description, group_count=group_count).items() if v is not None
    }

    with transaction(session):
        try:
            evaluation_storage.update(evaluation_id, **changes, session=session)
        except KeyError as e:
            raise NotFoundError(f"evaluation {evaluation_id} not found") from e

        if additional_items:
            rubrics = rubric_storage.find(evaluation_id=evaluation_id, session=session)
            if not rubrics:
                raise NotFoundError(f"evaluation {evaluation_id} has no rubric")
            primary = rubrics[0]

            next_order = rubric_storage.max_order_index(primary.rubric_id, session=session) + 1
            for item in additional_items:
                order_index = item.order_index
                if order_index is None:
                    order_index, next_order = next_order, next_order + 1
                rubric_storage.create_item(
                    rubric_id=primary.rubric_id,
                    title=item.title,
                    conditions=item.conditions,
                    max_score=item.max_score,
                    order_index=order_index,
                    session=session,
                )

    return get_evaluation(evaluation_id, session=session)


@di.inject
def delete_evaluation(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Delete an evaluation with its rubrics, groups, submissions and analyses.

    Raises:
        NotFoundError: the evaluation does not exist
    """
    with transaction(session):
        deleted = evaluation_storage.delete(evaluation_id, session=session)
    if not deleted:
        raise NotFoundError(f"evaluation {evaluation_id} not found")
    logger.info("deleted evaluation", extra={"evaluation_id": str(evaluation_id)})
