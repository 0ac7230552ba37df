"""Tests for rubricate.llm.grading.pipeline."""

from __future__ import annotations

import asyncio
import datetime
import typing as t
from unittest.mock import AsyncMock, MagicMock

import jinja2
import pytest
from sqlalchemy.orm import Session

from rubricate.core import TimestampProvider
from rubricate.document import DocumentLocator, TextExtractor
from rubricate.document.extract import ExtractedDocument
from rubricate.errors import NotFoundError, ProviderError
from rubricate.llm import ModelInvoker
from rubricate.llm.grading import CriterionAssessment, EvaluationOrchestrator, PromptAssembler, \
    RecommendationDraft, RubricAnalysis
from rubricate.model import AchievementLevel, AnalysisID, AnalysisState, AnalysisStatus, EvaluationAggregate, \
    EvaluationID, Group, GroupID, ProviderType, Submission, SubmissionStatus
from rubricate.storage import analysis as analysis_storage
from rubricate.storage import evaluation as evaluation_storage
from rubricate.storage import submission as submission_storage
from rubricate.storage.object import LocalObjectStore

LOREM = "Lorem ipsum dolor sit amet. "


def rubric_analysis(
    total_score: float = 8.0,
    max_score: float = 10.0,
    recommendations: int = 2,
) -> RubricAnalysis:
    return RubricAnalysis(
        group_name="Group One",
        group_code="G1",
        total_score=total_score,
        max_score=max_score,
        percentage=100 * total_score / max_score,
        status=AnalysisStatus.Pass,
        criteria=[
            CriterionAssessment(
                criterion_name="Structure",
                score=4.0,
                max_score=5.0,
                level=AchievementLevel.Good,
                feedback="Clear sections",
            ),
            CriterionAssessment(
                criterion_name="Content",
                score=4.0,
                max_score=5.0,
                level=AchievementLevel.Good,
                feedback="Covers the topics",
            ),
        ],
        general_feedback="A solid report.",
        strengths=["Well organized"],
        improvements=["Cite more sources"],
        recommendations=[
            RecommendationDraft(priority=i + 1, summary=f"Suggestion {i + 1}", details="Details")
            for i in range(recommendations)
        ],
    )


@pytest.fixture
def invoker(model_factory: MagicMock) -> MagicMock:
    """A ModelInvoker double; grading calls return a passing analysis."""
    invoker = MagicMock(spec=ModelInvoker)
    invoker.factory = model_factory
    invoker.generate = AsyncMock(return_value="analysis text")
    invoker.generate_structured = AsyncMock(return_value=rubric_analysis())
    return invoker


@pytest.fixture
def extractor() -> TextExtractor:
    return TextExtractor()


@pytest.fixture
def orchestrator_factory(
    invoker: MagicMock,
    llm_env: jinja2.Environment,
    object_store: LocalObjectStore,
    extractor: TextExtractor,
    db_session: Session,
    utcnow: TimestampProvider,
) -> t.Callable[..., EvaluationOrchestrator]:
    def create_orchestrator(extractor: TextExtractor = extractor, **kwargs: t.Any) -> EvaluationOrchestrator:
        locator = DocumentLocator(object_store)
        return EvaluationOrchestrator(
            invoker=invoker,
            assembler=PromptAssembler(llm_env, locator, extractor),
            locator=locator,
            extractor=extractor,
            session=db_session,
            utcnow=utcnow,
            concurrency=2,
            **kwargs,
        )

    return create_orchestrator


@pytest.fixture
def orchestrator(orchestrator_factory: t.Callable[..., EvaluationOrchestrator]) -> EvaluationOrchestrator:
    return orchestrator_factory()


@pytest.fixture
def graded_evaluation(evaluation_factory: t.Callable[..., EvaluationAggregate]) -> EvaluationAggregate:
    """An evaluation whose rubric adds up to 10 points."""
    return evaluation_factory(items=[("Structure", 5.0), ("Content", 5.0)])


@pytest.fixture
def submitted_group(
    graded_evaluation: EvaluationAggregate,
    group_factory: t.Callable[..., Group],
    submission_factory: t.Callable[..., Submission],
    object_store: LocalObjectStore,
    pdf_factory: t.Callable[..., bytes],
) -> tuple[Group, Submission]:
    group = group_factory(evaluation=graded_evaluation.evaluation)
    reference = asyncio.run(
        object_store.put("rubricate", "groups/G1/report.pdf", pdf_factory("Our report on bridge design"))
    )
    return group, submission_factory(group, reference)


def get_submission(db_session: Session, submission: Submission) -> Submission:
    with db_session.begin():
        found = submission_storage.get(submission.submission_id, session=db_session)
    assert found is not None
    return found


class TestAnalyzeEvaluation(object):
    """Tests for EvaluationOrchestrator.analyze_evaluation()."""

    def test_grades_submitted_group(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        db_session: Session,
        graded_evaluation: EvaluationAggregate,
        submitted_group: tuple[Group, Submission],
    ) -> None:
        group, submission = submitted_group

        outcome = asyncio.run(orchestrator.analyze_evaluation(graded_evaluation.evaluation.evaluation_id))

        assert outcome.analyzed == 1
        assert outcome.failed == 0
        assert outcome.message == "Analysis completed: 1 of 1 groups analyzed"

        report = orchestrator.get_analysis_report(outcome.analysis_id)
        assert report.analysis.state == AnalysisState.Completed
        assert report.analysis.ended_at is not None
        assert report.analysis.engine == "openai"
        assert len(report.results) == 1

        result = report.results[0]
        assert result.group_id == group.group_id
        assert result.rubric_id == graded_evaluation.rubrics[0].rubric_id
        assert 0 <= result.score <= 10
        assert result.max_score == 10.0
        assert [c.criterion_name for c in result.criteria] == ["Structure", "Content"]
        assert "**Strengths:**\n- Well organized" in result.feedback
        assert 1 <= len(report.recommendations) <= 3
        assert get_submission(db_session, submission).status == SubmissionStatus.Analyzed

        system_prompt, user_prompt, schema = invoker.generate_structured.call_args.args
        assert schema is RubricAnalysis
        assert "Our report on bridge design" in user_prompt
        assert "1. Structure (max score: 5)" in user_prompt
        assert "10" in system_prompt

    def test_score_clamped_to_maximum(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        graded_evaluation: EvaluationAggregate,
        submitted_group: tuple[Group, Submission],
    ) -> None:
        invoker.generate_structured.return_value = rubric_analysis(total_score=14.0)

        outcome = asyncio.run(orchestrator.analyze_evaluation(graded_evaluation.evaluation.evaluation_id))

        report = orchestrator.get_analysis_report(outcome.analysis_id)
        assert report.results[0].score == 10.0

    def test_groups_without_submission_skipped(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        graded_evaluation: EvaluationAggregate,
        group_factory: t.Callable[..., Group],
    ) -> None:
        group_factory(code="G1", evaluation=graded_evaluation.evaluation)
        group_factory(code="G2", evaluation=graded_evaluation.evaluation)

        outcome = asyncio.run(orchestrator.analyze_evaluation(graded_evaluation.evaluation.evaluation_id))

        assert outcome.analyzed == 0
        assert outcome.skipped == 2
        invoker.generate_structured.assert_not_called()

        report = orchestrator.get_analysis_report(outcome.analysis_id)
        assert report.analysis.state == AnalysisState.Completed
        assert report.results == []

    def test_invalid_document_rejected(
        self,
        orchestrator: EvaluationOrchestrator,
        db_session: Session,
        graded_evaluation: EvaluationAggregate,
        group_factory: t.Callable[..., Group],
        submission_factory: t.Callable[..., Submission],
        object_store: LocalObjectStore,
    ) -> None:
        group = group_factory(evaluation=graded_evaluation.evaluation)
        reference = asyncio.run(object_store.put("rubricate", "groups/G1/notes.pdf", b"plain text, not a PDF"))
        submission = submission_factory(group, reference)

        outcome = asyncio.run(orchestrator.analyze_evaluation(graded_evaluation.evaluation.evaluation_id))

        assert outcome.analyzed == 0
        assert outcome.failed == 1
        assert get_submission(db_session, submission).status == SubmissionStatus.Rejected

    def test_provider_failure_isolated(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        db_session: Session,
        graded_evaluation: EvaluationAggregate,
        group_factory: t.Callable[..., Group],
        submission_factory: t.Callable[..., Submission],
        object_store: LocalObjectStore,
        pdf_factory: t.Callable[..., bytes],
    ) -> None:
        """One group's provider failure leaves the other groups' results intact."""
        submissions = []
        for code in ("G1", "G2"):
            group = group_factory(code=code, evaluation=graded_evaluation.evaluation)
            reference = asyncio.run(object_store.put("rubricate", f"groups/{code}.pdf", pdf_factory(f"Report {code}")))
            submissions.append(submission_factory(group, reference))

        async def grade(system: str, user: str, schema: type, **kwargs: t.Any) -> RubricAnalysis:
            if "Report G2" in user:
                raise ProviderError("timed out", cause=TimeoutError())
            return rubric_analysis()

        invoker.generate_structured.side_effect = grade

        outcome = asyncio.run(orchestrator.analyze_evaluation(graded_evaluation.evaluation.evaluation_id))

        assert outcome.analyzed == 1
        assert outcome.failed == 1
        assert "1 failed" in outcome.message

        report = orchestrator.get_analysis_report(outcome.analysis_id)
        assert report.analysis.state == AnalysisState.Completed
        assert len(report.results) == 1
        assert get_submission(db_session, submissions[0]).status == SubmissionStatus.Analyzed
        assert get_submission(db_session, submissions[1]).status == SubmissionStatus.Received

    def test_grading_bounded_by_concurrency(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        graded_evaluation: EvaluationAggregate,
        group_factory: t.Callable[..., Group],
        submission_factory: t.Callable[..., Submission],
        object_store: LocalObjectStore,
        pdf_factory: t.Callable[..., bytes],
    ) -> None:
        """Groups are graded in parallel, never more at once than the configured concurrency."""
        for code in ("G1", "G2", "G3", "G4"):
            group = group_factory(code=code, evaluation=graded_evaluation.evaluation)
            reference = asyncio.run(object_store.put("rubricate", f"groups/{code}.pdf", pdf_factory(f"Report {code}")))
            submission_factory(group, reference)

        in_flight = 0
        peak = 0

        async def grade(system: str, user: str, schema: type, **kwargs: t.Any) -> RubricAnalysis:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return rubric_analysis()

        invoker.generate_structured.side_effect = grade

        outcome = asyncio.run(orchestrator.analyze_evaluation(graded_evaluation.evaluation.evaluation_id))

        assert outcome.analyzed == 4
        assert invoker.generate_structured.await_count == 4
        assert 1 < peak <= orchestrator.concurrency

    def test_provider_override(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        graded_evaluation: EvaluationAggregate,
        submitted_group: tuple[Group, Submission],
    ) -> None:
        outcome = asyncio.run(
            orchestrator.analyze_evaluation(
                graded_evaluation.evaluation.evaluation_id,
                provider=ProviderType.Anthropic,
                model="claude-test",
                notes="second pass",
            )
        )

        report = orchestrator.get_analysis_report(outcome.analysis_id)
        assert report.analysis.engine == "anthropic"
        assert report.analysis.notes == "second pass"
        kwargs = invoker.generate_structured.call_args.kwargs
        assert kwargs == {"provider": ProviderType.Anthropic, "model": "claude-test"}

    def test_unknown_evaluation(self, orchestrator: EvaluationOrchestrator) -> None:
        with pytest.raises(NotFoundError):
            asyncio.run(orchestrator.analyze_evaluation(EvaluationID()))

    def test_evaluation_without_rubric(
        self,
        orchestrator: EvaluationOrchestrator,
        db_session: Session,
    ) -> None:
        with db_session.begin():
            evaluation = evaluation_storage.create(title="No rubric", session=db_session)

        with pytest.raises(NotFoundError):
            asyncio.run(orchestrator.analyze_evaluation(evaluation.evaluation_id))

        with db_session.begin():
            assert analysis_storage.find(evaluation_id=evaluation.evaluation_id, session=db_session) == ()


class TestAnalyzeGroup(object):
    """Tests for EvaluationOrchestrator.analyze_group()."""

    def test_grades_one_group(
        self,
        orchestrator: EvaluationOrchestrator,
        graded_evaluation: EvaluationAggregate,
        submitted_group: tuple[Group, Submission],
    ) -> None:
        group, _ = submitted_group

        outcome = asyncio.run(orchestrator.analyze_group(graded_evaluation.evaluation.evaluation_id, group.group_id))

        assert outcome.analyzed == 1
        report = orchestrator.get_analysis_report(outcome.analysis_id)
        assert [r.group_id for r in report.results] == [group.group_id]

    def test_latest_submission_marked_analyzed(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        db_session: Session,
        graded_evaluation: EvaluationAggregate,
        group_factory: t.Callable[..., Group],
        submission_factory: t.Callable[..., Submission],
        object_store: LocalObjectStore,
        pdf_factory: t.Callable[..., bytes],
    ) -> None:
        """Only the newest submission is graded; earlier drafts keep their status."""
        group = group_factory(evaluation=graded_evaluation.evaluation)
        now = datetime.datetime.now(datetime.UTC)
        draft = submission_factory(
            group,
            asyncio.run(object_store.put("rubricate", "groups/G1/draft.pdf", pdf_factory("Early draft"))),
            uploaded_at=now - datetime.timedelta(days=1),
        )
        final = submission_factory(
            group,
            asyncio.run(object_store.put("rubricate", "groups/G1/final.pdf", pdf_factory("Final report"))),
            uploaded_at=now,
        )

        asyncio.run(orchestrator.analyze_group(graded_evaluation.evaluation.evaluation_id, group.group_id))

        _, user_prompt, _ = invoker.generate_structured.call_args.args
        assert "Final report" in user_prompt
        assert "Early draft" not in user_prompt
        assert get_submission(db_session, final).status == SubmissionStatus.Analyzed
        assert get_submission(db_session, draft).status == SubmissionStatus.Received

    def test_failure_propagates(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        db_session: Session,
        graded_evaluation: EvaluationAggregate,
        submitted_group: tuple[Group, Submission],
    ) -> None:
        group, _ = submitted_group
        invoker.generate_structured.side_effect = ProviderError("unavailable", cause=RuntimeError("503"))

        with pytest.raises(ProviderError):
            asyncio.run(orchestrator.analyze_group(graded_evaluation.evaluation.evaluation_id, group.group_id))

        with db_session.begin():
            analyses = analysis_storage.find(evaluation_id=graded_evaluation.evaluation.evaluation_id, session=db_session)
        assert [a.state for a in analyses] == [AnalysisState.Completed]

    def test_unknown_group(
        self,
        orchestrator: EvaluationOrchestrator,
        graded_evaluation: EvaluationAggregate,
    ) -> None:
        with pytest.raises(NotFoundError):
            asyncio.run(orchestrator.analyze_group(graded_evaluation.evaluation.evaluation_id, GroupID()))

    def test_group_without_submission(
        self,
        orchestrator: EvaluationOrchestrator,
        graded_evaluation: EvaluationAggregate,
        group_factory: t.Callable[..., Group],
    ) -> None:
        group = group_factory(evaluation=graded_evaluation.evaluation)

        with pytest.raises(NotFoundError):
            asyncio.run(orchestrator.analyze_group(graded_evaluation.evaluation.evaluation_id, group.group_id))


class TestDocumentAnalysis(object):
    """Tests for the stateless document analyses."""

    @pytest.fixture
    def long_extractor(self) -> MagicMock:
        extractor = MagicMock(spec=TextExtractor)
        extractor.extract.return_value = ExtractedDocument(text=(LOREM * 900)[:25_000], page_count=12)
        return extractor

    def test_chunks_in_order(
        self,
        orchestrator_factory: t.Callable[..., EvaluationOrchestrator],
        long_extractor: MagicMock,
        invoker: MagicMock,
    ) -> None:
        orchestrator = orchestrator_factory(extractor=long_extractor)
        invoker.generate.side_effect = ["first", "second", "third"]

        result = asyncio.run(
            orchestrator.analyze_in_chunks(
                b"%PDF-", document_name="thesis.pdf", instruction="Summarize", chunk_size=10_000
            )
        )

        assert result.total_chunks == 3
        assert [r.chunk_index for r in result.responses] == [1, 2, 3]
        assert {r.total_chunks for r in result.responses} == {3}
        assert [r.response for r in result.responses] == ["first", "second", "third"]
        prompts = [c.args[0] for c in invoker.generate.call_args_list]
        assert "part 1 of 3" in prompts[0]
        assert "part 3 of 3" in prompts[2]

    def test_default_chunk_size(
        self,
        orchestrator_factory: t.Callable[..., EvaluationOrchestrator],
        long_extractor: MagicMock,
    ) -> None:
        orchestrator = orchestrator_factory(extractor=long_extractor, chunk_size=20_000)

        result = asyncio.run(orchestrator.analyze_in_chunks(b"%PDF-", document_name="a.pdf", instruction="Read"))

        assert result.total_chunks == 2

    def test_chunk_failure_aborts(
        self,
        orchestrator_factory: t.Callable[..., EvaluationOrchestrator],
        long_extractor: MagicMock,
        invoker: MagicMock,
    ) -> None:
        orchestrator = orchestrator_factory(extractor=long_extractor)
        invoker.generate.side_effect = ["first", ProviderError("failed", cause=RuntimeError()), "third"]

        with pytest.raises(ProviderError):
            asyncio.run(orchestrator.analyze_in_chunks(b"%PDF-", document_name="a.pdf", instruction="Read"))

        assert invoker.generate.call_count == 2

    def test_analyze_document(
        self,
        orchestrator: EvaluationOrchestrator,
        invoker: MagicMock,
        pdf_factory: t.Callable[..., bytes],
    ) -> None:
        result = asyncio.run(
            orchestrator.analyze_document(
                pdf_factory("First page", "Second page"), document_name="essay.pdf", instruction="Assess it"
            )
        )

        assert result.document_name == "essay.pdf"
        assert result.page_count == 2
        assert result.estimated_tokens > 0
        assert result.response == "analysis text"
        prompt = invoker.generate.call_args.args[0]
        assert "First page" in prompt
        assert "Second page" in prompt


class TestGetAnalysisReport(object):
    """Tests for EvaluationOrchestrator.get_analysis_report()."""

    def test_unknown_analysis(self, orchestrator: EvaluationOrchestrator) -> None:
        with pytest.raises(NotFoundError):
            orchestrator.get_analysis_report(AnalysisID())
