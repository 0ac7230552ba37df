"""Tests for rubricate.storage.rubric module."""

from __future__ import annotations


import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rubricate.model import Evaluation, RubricID
from rubricate.storage import rubric as rubric_storage
from rubricate.storage.rubric import RubricItemCreateParams


class TestCreate(object):
    """Tests for rubric_storage.create()."""

    def test_items_numbered_from_one(self, db_session: Session, test_evaluation: Evaluation) -> None:
        """Items without an explicit order are numbered 1, 2, ... in list order."""
        with db_session.begin():
            rubric = rubric_storage.create(
                evaluation_id=test_evaluation.evaluation_id,
                title="Rubric",
                items=[
                    RubricItemCreateParams(title="Introduction"),
                    RubricItemCreateParams(title="Method", max_score=4.0, conditions="Describes the method"),
                ],
                session=db_session,
            )

        assert [(i.order_index, i.title) for i in rubric.items] == [(1, "Introduction"), (2, "Method")]
        assert rubric.items[0].max_score == 1.0
        assert rubric.items[1].max_score == 4.0
        assert rubric.items[1].conditions == "Describes the method"

    def test_explicit_order_kept(self, db_session: Session, test_evaluation: Evaluation) -> None:
        with db_session.begin():
            rubric = rubric_storage.create(
                evaluation_id=test_evaluation.evaluation_id,
                title="Rubric",
                items=[RubricItemCreateParams(title="Late", order_index=10)],
                session=db_session,
            )

        assert rubric.items[0].order_index == 10

    def test_without_items(self, db_session: Session, test_evaluation: Evaluation) -> None:
        with db_session.begin():
            rubric = rubric_storage.create(
                evaluation_id=test_evaluation.evaluation_id,
                title="Empty",
                document_url="s3://b/rubric.pdf",
                session=db_session,
            )

        assert rubric.items == []
        assert rubric.document_url == "s3://b/rubric.pdf"


class TestItems(object):
    """Tests for rubric item functions."""

    def test_create_item_appends(self, db_session: Session, test_evaluation: Evaluation) -> None:
        """An item without an order index goes after the current last one."""
        with db_session.begin():
            (rubric,) = rubric_storage.find(evaluation_id=test_evaluation.evaluation_id, session=db_session)
            before = rubric_storage.max_order_index(rubric.rubric_id, session=db_session)
            item = rubric_storage.create_item(rubric_id=rubric.rubric_id, title="Extra", session=db_session)

        assert before == 2
        assert item.order_index == 3

    def test_max_order_index_empty(self, db_session: Session) -> None:
        with db_session.begin():
            assert rubric_storage.max_order_index(RubricID(), session=db_session) == 0

    def test_order_index_unique(self, db_session: Session, test_evaluation: Evaluation) -> None:
        with db_session.begin():
            (rubric,) = rubric_storage.find(evaluation_id=test_evaluation.evaluation_id, session=db_session)

        with pytest.raises(IntegrityError):
            with db_session.begin():
                rubric_storage.create_item(
                    rubric_id=rubric.rubric_id, title="Clash", order_index=1, session=db_session
                )

    def test_delete_item(self, db_session: Session, test_evaluation: Evaluation) -> None:
        with db_session.begin():
            (rubric,) = rubric_storage.find(evaluation_id=test_evaluation.evaluation_id, session=db_session)
            items = rubric_storage.find_items(rubric_id=rubric.rubric_id, session=db_session)
            assert rubric_storage.delete_item(items[0].item_id, session=db_session) is True
            assert rubric_storage.delete_item(items[0].item_id, session=db_session) is False
            remaining = rubric_storage.find_items(rubric_id=rubric.rubric_id, session=db_session)

        assert [i.item_id for i in remaining] == [items[1].item_id]


class TestUpdate(object):
    """Tests for rubric_storage.update()."""

    def test_update_title(self, db_session: Session, test_evaluation: Evaluation) -> None:
        with db_session.begin():
            (rubric,) = rubric_storage.find(evaluation_id=test_evaluation.evaluation_id, session=db_session)
            rubric_storage.update(rubric.rubric_id, title="Renamed", session=db_session)
            updated = rubric_storage.get_with_items(rubric.rubric_id, session=db_session)

        assert updated is not None
        assert updated.title == "Renamed"
        assert len(updated.items) == 2

    def test_unknown_raises_key_error(self, db_session: Session) -> None:
        with pytest.raises(KeyError):
            with db_session.begin():
                rubric_storage.update(RubricID(), title="x", session=db_session)
