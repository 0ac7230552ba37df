"""Tests for rubricate.service.evaluation."""

from __future__ import annotations

import asyncio
import logging
import typing as t
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from rubricate.core import RubricateContainer
from rubricate.document import DocumentLocator
from rubricate.errors import InvalidFormatError, NotFoundError, PersistenceError
from rubricate.model import EvaluationAggregate, EvaluationID
from rubricate.service.evaluation import create_evaluation, delete_evaluation, get_evaluation, RubricDocument, \
    update_evaluation
from rubricate.storage import rubric as rubric_storage
from rubricate.storage.object import LocalObjectStore, resolve_reference
from rubricate.storage.rubric import RubricItemCreateParams


class TestCreateEvaluation(object):
    """Tests for create_evaluation()."""

    def test_with_items(self, db_session: Session, object_store: LocalObjectStore) -> None:
        aggregate = asyncio.run(
            create_evaluation(
                title="Final Project",
                description="End of term",
                group_count=4,
                items=[
                    RubricItemCreateParams(title="Structure", max_score=5.0),
                    RubricItemCreateParams(title="Content", max_score=15.0, conditions="Covers every topic"),
                ],
                session=db_session,
                store=object_store,
            )
        )

        assert aggregate.evaluation.title == "Final Project"
        assert aggregate.evaluation.group_count == 4
        assert len(aggregate.rubrics) == 1

        rubric = aggregate.rubrics[0]
        assert rubric.title == "Rubric for Final Project"
        assert rubric.document_url is None
        assert [(i.order_index, i.title) for i in rubric.items] == [(1, "Structure"), (2, "Content")]
        assert rubric.items[1].conditions == "Covers every topic"

    def test_with_rubric_document(
        self,
        container: RubricateContainer,
        db_session: Session,
        object_store: LocalObjectStore,
        pdf_factory: t.Callable[..., bytes],
    ) -> None:
        document = RubricDocument(filename="Project Rubric.pdf", data=pdf_factory("Criteria"))

        aggregate = asyncio.run(
            create_evaluation(
                title="Final Project", rubric_document=document, session=db_session, store=object_store
            )
        )

        rubric = aggregate.rubrics[0]
        assert rubric.title == "Project Rubric"
        assert rubric.document_url is not None

        ref = resolve_reference(rubric.document_url)
        assert ref.bucket == "rubricate-test"
        assert ref.key.startswith(f"evaluations/{aggregate.evaluation.evaluation_id}/rubrics/")
        assert ref.key.endswith("_Project_Rubric.pdf")
        assert asyncio.run(object_store.fetch(ref.bucket, ref.key)) == document.data

    def test_rejects_non_pdf_document(
        self,
        container: RubricateContainer,
        db_session: Session,
        object_store: LocalObjectStore,
    ) -> None:
        document = RubricDocument(filename="rubric.pdf", data=b"not a pdf")

        with pytest.raises(InvalidFormatError):
            asyncio.run(
                create_evaluation(title="Broken", rubric_document=document, session=db_session, store=object_store)
            )

    def test_failed_write_removes_upload(
        self,
        container: RubricateContainer,
        db_session: Session,
        object_store: LocalObjectStore,
        pdf_factory: t.Callable[..., bytes],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fail(**kwargs: t.Any) -> None:
            raise OperationalError("INSERT INTO rubrics", {}, Exception("database is locked"))

        monkeypatch.setattr(rubric_storage, "create", fail)
        document = RubricDocument(filename="rubric.pdf", data=pdf_factory("Criteria"))

        with pytest.raises(PersistenceError):
            asyncio.run(
                create_evaluation(
                    title="Doomed",
                    rubric_document=document,
                    session=db_session,
                    store=object_store,
                    locator=DocumentLocator(object_store),
                )
            )

        assert list((tmp_path / "objects").rglob("*.pdf")) == []

    def test_failed_cleanup_keeps_write_error(
        self,
        container: RubricateContainer,
        db_session: Session,
        object_store: LocalObjectStore,
        pdf_factory: t.Callable[..., bytes],
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """An upload that cannot be deleted is logged; the database error is what surfaces."""

        def fail(**kwargs: t.Any) -> None:
            raise OperationalError("INSERT INTO rubrics", {}, Exception("database is locked"))

        monkeypatch.setattr(rubric_storage, "create", fail)
        broken = MagicMock(spec=LocalObjectStore)
        broken.delete = AsyncMock(side_effect=OSError("bucket unreachable"))
        document = RubricDocument(filename="rubric.pdf", data=pdf_factory("Criteria"))
        caplog.set_level(logging.ERROR, logger="rubricate.document.locate")

        with pytest.raises(PersistenceError):
            asyncio.run(
                create_evaluation(
                    title="Doomed",
                    rubric_document=document,
                    session=db_session,
                    store=object_store,
                    locator=DocumentLocator(broken),
                )
            )

        broken.delete.assert_awaited_once()
        messages = [r.getMessage() for r in caplog.records if r.name == "rubricate.document.locate"]
        assert messages == ["could not discard document"]


class TestUpdateEvaluation(object):
    """Tests for update_evaluation()."""

    def test_appends_after_last_item(
        self,
        db_session: Session,
        evaluation_factory: t.Callable[..., EvaluationAggregate],
    ) -> None:
        evaluation = evaluation_factory(items=[("Structure", 5.0), ("Content", 15.0)]).evaluation

        aggregate = update_evaluation(
            evaluation.evaluation_id,
            title="Final Project (revised)",
            additional_items=[
                RubricItemCreateParams(title="Presentation", max_score=5.0),
                RubricItemCreateParams(title="Teamwork", max_score=5.0),
            ],
            session=db_session,
        )

        assert aggregate.evaluation.title == "Final Project (revised)"
        items = aggregate.rubrics[0].items
        assert [(i.order_index, i.title) for i in items] == [
            (1, "Structure"),
            (2, "Content"),
            (3, "Presentation"),
            (4, "Teamwork"),
        ]

    def test_unknown_evaluation(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            update_evaluation(EvaluationID(), title="Nothing", session=db_session)


class TestGetAndDeleteEvaluation(object):
    """Tests for get_evaluation() and delete_evaluation()."""

    def test_get_unknown(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            get_evaluation(EvaluationID(), session=db_session)

    def test_delete(self, db_session: Session, evaluation_factory: t.Callable[..., EvaluationAggregate]) -> None:
        evaluation = evaluation_factory().evaluation

        delete_evaluation(evaluation.evaluation_id, session=db_session)

        with pytest.raises(NotFoundError):
            get_evaluation(evaluation.evaluation_id, session=db_session)

    def test_delete_unknown(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            delete_evaluation(EvaluationID(), session=db_session)
