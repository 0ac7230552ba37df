"""Tests for rubricate.service.group."""

from __future__ import annotations

import asyncio
import datetime
import logging
import typing as t

import pytest
from sqlalchemy.orm import Session

from rubricate.core import RubricateContainer
from rubricate.errors import NotFoundError, PayloadTooLargeError, PersistenceError
from rubricate.model import AnalysisState, Evaluation, EvaluationID, Group, GroupID
from rubricate.service.group import create_group, create_submission, delete_group, find_group_recommendations, \
    get_group, update_group, upload_submission_document
from rubricate.storage import analysis as analysis_storage
from rubricate.storage import submission as submission_storage
from rubricate.storage.object import LocalObjectStore, resolve_reference


class TestCreateGroup(object):
    """Tests for create_group()."""

    def test_create(self, db_session: Session, test_evaluation: Evaluation) -> None:
        group = create_group(
            test_evaluation.evaluation_id, code="G1", name="Group One", student_count=4, session=db_session
        )

        assert group.code == "G1"
        assert group.student_count == 4
        assert get_group(group.group_id, session=db_session) == group

    def test_duplicate_code(self, db_session: Session, test_evaluation: Evaluation) -> None:
        create_group(test_evaluation.evaluation_id, code="G1", name="Group One", session=db_session)

        with pytest.raises(PersistenceError):
            create_group(test_evaluation.evaluation_id, code="G1", name="Other", session=db_session)

    def test_same_code_in_other_evaluation(
        self,
        db_session: Session,
        test_evaluation: Evaluation,
        evaluation_factory: t.Callable[..., t.Any],
    ) -> None:
        other = evaluation_factory(title="Midterm").evaluation
        create_group(test_evaluation.evaluation_id, code="G1", name="Group One", session=db_session)

        group = create_group(other.evaluation_id, code="G1", name="Group One", session=db_session)

        assert group.evaluation_id == other.evaluation_id

    def test_unknown_evaluation(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            create_group(EvaluationID(), code="G1", name="Group One", session=db_session)


class TestUpdateAndDeleteGroup(object):
    """Tests for update_group() and delete_group()."""

    def test_update(self, db_session: Session, group_factory: t.Callable[..., Group]) -> None:
        group = group_factory()

        updated = update_group(group.group_id, name="Renamed", session=db_session)

        assert updated.name == "Renamed"
        assert updated.student_count == group.student_count

    def test_update_unknown(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            update_group(GroupID(), name="Nobody", session=db_session)

    def test_delete(self, db_session: Session, group_factory: t.Callable[..., Group]) -> None:
        group = group_factory()

        delete_group(group.group_id, session=db_session)

        with pytest.raises(NotFoundError):
            get_group(group.group_id, session=db_session)

    def test_delete_unknown(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            delete_group(GroupID(), session=db_session)


class TestSubmissions(object):
    """Tests for create_submission() and upload_submission_document()."""

    def test_latest_submission_wins(self, db_session: Session, group_factory: t.Callable[..., Group]) -> None:
        group = group_factory()
        now = datetime.datetime.now(datetime.UTC)
        create_submission(
            group.group_id,
            filename="draft.pdf",
            document_url="s3://rubricate/draft.pdf",
            uploaded_at=now - datetime.timedelta(days=1),
            session=db_session,
        )
        create_submission(
            group.group_id, filename="final.pdf", document_url="s3://rubricate/final.pdf", uploaded_at=now,
            session=db_session,
        )

        with db_session.begin():
            latest = submission_storage.get_latest(group.group_id, session=db_session)

        assert latest is not None
        assert latest.filename == "final.pdf"

    def test_submission_logged(
        self,
        db_session: Session,
        group_factory: t.Callable[..., Group],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        group = group_factory()
        caplog.set_level(logging.INFO, logger="rubricate.service.group")

        submission = create_submission(
            group.group_id, filename="final.pdf", document_url="s3://rubricate/final.pdf", session=db_session
        )

        records = [r for r in caplog.records if r.getMessage() == "received submission"]
        assert len(records) == 1
        assert records[0].submission_filename == "final.pdf"
        assert records[0].submission_id == str(submission.submission_id)

    def test_submission_for_unknown_group(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            create_submission(GroupID(), filename="a.pdf", document_url="s3://b/a.pdf", session=db_session)

    def test_upload(
        self,
        container: RubricateContainer,
        object_store: LocalObjectStore,
        group_factory: t.Callable[..., Group],
        pdf_factory: t.Callable[..., bytes],
    ) -> None:
        group = group_factory(code="G7")
        data = pdf_factory("Our report")

        def fixed() -> datetime.datetime:
            return datetime.datetime(2024, 5, 1, tzinfo=datetime.UTC)

        reference = asyncio.run(
            upload_submission_document(group, "final report.pdf", data, store=object_store, utcnow=fixed)
        )

        ref = resolve_reference(reference)
        assert ref.bucket == "rubricate-test"
        assert ref.key == f"evaluations/{group.evaluation_id}/groups/G7/1714521600000_final_report.pdf"
        assert asyncio.run(object_store.fetch(ref.bucket, ref.key)) == data

    def test_upload_too_large(
        self,
        container: RubricateContainer,
        object_store: LocalObjectStore,
        group_factory: t.Callable[..., Group],
    ) -> None:
        group = group_factory()

        with pytest.raises(PayloadTooLargeError):
            asyncio.run(
                upload_submission_document(group, "big.pdf", b"%PDF-" + b"0" * 100, store=object_store, max_size=64)
            )


class TestFindGroupRecommendations(object):
    """Tests for find_group_recommendations()."""

    def test_latest_analysis_only(
        self,
        db_session: Session,
        test_evaluation: Evaluation,
        group_factory: t.Callable[..., Group],
    ) -> None:
        first = group_factory(code="G1")
        second = group_factory(code="G2")
        now = datetime.datetime.now(datetime.UTC)

        with db_session.begin():
            for offset, summary in ((2, "stale advice"), (1, "current advice")):
                analysis = analysis_storage.create(
                    evaluation_id=test_evaluation.evaluation_id,
                    engine="openai",
                    started_at=now - datetime.timedelta(hours=offset),
                    state=AnalysisState.Completed,
                    session=db_session,
                )
                analysis_storage.create_recommendation(
                    analysis_id=analysis.analysis_id,
                    group_id=first.group_id,
                    priority=1,
                    summary=summary,
                    details="Details",
                    session=db_session,
                )

        found = find_group_recommendations(test_evaluation.evaluation_id, session=db_session)

        by_code = {entry.group.code: entry for entry in found}
        assert set(by_code) == {"G1", "G2"}
        assert [r.summary for r in by_code["G1"].recommendations] == ["current advice"]
        assert by_code["G2"].recommendations == []
        assert by_code["G2"].group == second

    def test_without_analyses(self, db_session: Session, test_evaluation: Evaluation) -> None:
        assert find_group_recommendations(test_evaluation.evaluation_id, session=db_session) == []

    def test_unknown_evaluation(self, db_session: Session) -> None:
        with pytest.raises(NotFoundError):
            find_group_recommendations(EvaluationID(), session=db_session)
