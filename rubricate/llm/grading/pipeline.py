"""Evaluation analysis orchestrator."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import typing as t

import pydantic as p
from sqlalchemy.exc import SQLAlchemyError

from rubricate.document import clean, DocumentLocator, split, TextExtractor, truncate
from rubricate.errors import CorruptDocumentError, InvalidFormatError, NotFoundError, PayloadTooLargeError, \
    PersistenceError
from rubricate.llm.invoker import ModelInvoker
from rubricate.llm.tokens import estimate_tokens
from rubricate.model import Analysis, AnalysisID, AnalysisReport, AnalysisState, CriterionScore, EvaluationAggregate, \
    EvaluationID, GroupID, GroupWithLatestSubmission, ProviderType, RubricID, Submission, SubmissionStatus
from rubricate.storage import analysis as analysis_storage
from rubricate.storage import evaluation as evaluation_storage
from rubricate.storage import Session
from rubricate.storage import submission as submission_storage

from .prompt import compute_max_score, PromptAssembler
from .schema import RubricAnalysis

if t.TYPE_CHECKING:
    from rubricate.core.provider import TimestampProvider

logger = logging.getLogger(__name__)

# document errors that make a submission unusable rather than merely unanalyzed
_REJECTING_ERRORS = (InvalidFormatError, PayloadTooLargeError, CorruptDocumentError)


class AnalysisOutcome(p.BaseModel):
    """Summary of one analysis run; per-group results are read back with the analysis ID."""

    analysis_id: AnalysisID
    message: str
    analyzed: int = 0
    skipped: int = 0
    failed: int = 0


class ChunkResponse(p.BaseModel):
    chunk_index: int
    total_chunks: int
    response: str


class ChunkedAnalysis(p.BaseModel):
    document_name: str
    total_chunks: int
    responses: list[ChunkResponse] = []


class DocumentAnalysis(p.BaseModel):
    document_name: str
    page_count: int
    estimated_tokens: int
    response: str


def format_feedback(result: RubricAnalysis) -> str:
    """General feedback followed by bulleted strengths and improvement areas."""
    strengths = "\n".join(f"- {s}" for s in result.strengths)
    improvements = "\n".join(f"- {s}" for s in result.improvements)
    return (
        f"{result.general_feedback.strip()}\n\n"
        f"**Strengths:**\n{strengths}\n\n"
        f"**Improvement areas:**\n{improvements}"
    ).strip()


def clamp_score(score: float, max_score: float) -> float:
    return min(max(score, 0.0), max_score)


class EvaluationOrchestrator(object):
    """Runs the grading pipeline over the groups of an evaluation.

    A run:
    1. Loads the evaluation with its rubrics and each group's latest submission
    2. Records an analysis in the running state
    3. Builds the rubric context once and derives the maximum score from it
    4. Grades every group with a submission concurrently, bounded by ``concurrency``
    5. Persists one result plus the recommendations of each graded group
    6. Marks the analysis completed once every group has settled

    Groups without a submission are skipped; a group whose grading fails is
    logged and skipped without affecting the others.

    Writes happen in short synchronous transactions with no suspension point
    inside, so concurrent group tasks can share one session.
    """

    def __init__(
        self,
        *,
        invoker: ModelInvoker,
        assembler: PromptAssembler,
        locator: DocumentLocator,
        extractor: TextExtractor,
        session: Session,
        utcnow: TimestampProvider,
        concurrency: int = 4,
        max_document_tokens: int = 100_000,
        chunk_size: int = 10_000,
        default_max_score: float = 20.0,
    ) -> None:
        self.invoker = invoker
        self.assembler = assembler
        self.locator = locator
        self.extractor = extractor
        self.session = session
        self.utcnow = utcnow
        self.concurrency = concurrency
        self.max_document_tokens = max_document_tokens
        self.chunk_size = chunk_size
        self.default_max_score = default_max_score

    @contextlib.contextmanager
    def _transaction(self) -> t.Iterator[Session]:
        try:
            with self.session.begin():
                yield self.session
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not write analysis data: {e}") from e

    def _load(self, evaluation_id: EvaluationID) -> EvaluationAggregate:
        with self.session.begin():
            aggregate = evaluation_storage.get_aggregate(evaluation_id, session=self.session)
        if aggregate is None:
            raise NotFoundError(f"evaluation {evaluation_id} not found")
        if not aggregate.rubrics:
            raise NotFoundError(f"evaluation {evaluation_id} has no rubric")
        return aggregate

    def _start(self, evaluation_id: EvaluationID, provider: ProviderType, notes: str | None) -> Analysis:
        with self._transaction() as session:
            analysis = analysis_storage.create(
                evaluation_id=evaluation_id,
                engine=provider.value,
                started_at=self.utcnow(),
                state=AnalysisState.Running,
                notes=notes,
                session=session,
            )
        logger.info(
            "started analysis",
            extra={"analysis_id": str(analysis.analysis_id), "evaluation_id": str(evaluation_id)},
        )
        return analysis

    def _complete(self, analysis: Analysis) -> None:
        with self._transaction() as session:
            analysis_storage.update(
                analysis.analysis_id, state=AnalysisState.Completed, ended_at=self.utcnow(), session=session
            )

    async def analyze_evaluation(
        self,
        evaluation_id: EvaluationID,
        *,
        provider: ProviderType | None = None,
        model: str | None = None,
        notes: str | None = None,
    ) -> AnalysisOutcome:
        """Grade the latest submission of every group of an evaluation.

        Raises:
            NotFoundError: the evaluation does not exist or has no rubric
            PersistenceError: the analysis record could not be written
        """
        provider = provider or self.invoker.factory.default_provider
        aggregate = self._load(evaluation_id)
        analysis = self._start(evaluation_id, provider, notes)

        pending = [(g, g.latest_submission) for g in aggregate.groups if g.latest_submission is not None]
        for group in aggregate.groups:
            if group.latest_submission is None:
                logger.warning(
                    "group has no submission, skipping",
                    extra={"analysis_id": str(analysis.analysis_id), "group_code": group.code},
                )

        outcomes: list[bool] = []
        try:
            rubric_context = await self.assembler.build_rubric_context(aggregate.rubrics)
            max_score = compute_max_score(rubric_context, self.default_max_score)
            semaphore = asyncio.Semaphore(self.concurrency)

            async def run(group: GroupWithLatestSubmission, submission: Submission) -> bool:
                async with semaphore:
                    try:
                        await self._analyze_group(
                            analysis,
                            aggregate,
                            group,
                            submission,
                            rubric_context=rubric_context,
                            max_score=max_score,
                            provider=provider,
                            model=model,
                        )
                    except Exception:
                        logger.exception(
                            "group analysis failed, skipping",
                            extra={"analysis_id": str(analysis.analysis_id), "group_code": group.code},
                        )
                        return False
                    return True

            outcomes = await asyncio.gather(*(run(g, s) for g, s in pending))
        finally:
            self._complete(analysis)

        analyzed = sum(outcomes)
        failed = len(outcomes) - analyzed
        skipped = len(aggregate.groups) - len(pending)
        message = f"Analysis completed: {analyzed} of {len(aggregate.groups)} groups analyzed"
        if skipped or failed:
            message += f" ({skipped} without submission, {failed} failed)"

        logger.info(
            "completed analysis",
            extra={
                "analysis_id": str(analysis.analysis_id),
                "analyzed": analyzed,
                "skipped": skipped,
                "failed": failed,
            },
        )
        return AnalysisOutcome(
            analysis_id=analysis.analysis_id, message=message, analyzed=analyzed, skipped=skipped, failed=failed
        )

    async def analyze_group(
        self,
        evaluation_id: EvaluationID,
        group_id: GroupID,
        *,
        provider: ProviderType | None = None,
        model: str | None = None,
        notes: str | None = None,
    ) -> AnalysisOutcome:
        """Grade a single group in an analysis of its own, propagating its failure.

        Raises:
            NotFoundError: the evaluation or group does not exist, or the group has no submission
        """
        provider = provider or self.invoker.factory.default_provider
        aggregate = self._load(evaluation_id)
        group = next((g for g in aggregate.groups if g.group_id == group_id), None)
        if group is None:
            raise NotFoundError(f"group {group_id} not found in evaluation {evaluation_id}")
        submission = group.latest_submission
        if submission is None:
            raise NotFoundError(f"group {group.code} has no submission")

        analysis = self._start(evaluation_id, provider, notes)
        try:
            rubric_context = await self.assembler.build_rubric_context(aggregate.rubrics)
            await self._analyze_group(
                analysis,
                aggregate,
                group,
                submission,
                rubric_context=rubric_context,
                max_score=compute_max_score(rubric_context, self.default_max_score),
                provider=provider,
                model=model,
            )
        finally:
            self._complete(analysis)

        return AnalysisOutcome(
            analysis_id=analysis.analysis_id, message=f"Analysis completed for group {group.code}", analyzed=1
        )

    async def _analyze_group(
        self,
        analysis: Analysis,
        aggregate: EvaluationAggregate,
        group: GroupWithLatestSubmission,
        submission: Submission,
        *,
        rubric_context: str,
        max_score: float,
        provider: ProviderType,
        model: str | None,
    ) -> None:
        extra = {"analysis_id": str(analysis.analysis_id), "group_code": group.code}

        try:
            data = await self.locator.fetch_bytes(submission.document_url)
            document = await asyncio.to_thread(self.extractor.extract, data)
        except _REJECTING_ERRORS:
            with self._transaction() as session:
                submission_storage.update(
                    submission.submission_id, status=SubmissionStatus.Rejected, session=session
                )
            raise

        text = truncate(clean(document.text), self.max_document_tokens)
        prompt = self.assembler.build_group_prompt(
            evaluation_title=aggregate.evaluation.title,
            rubric_context=rubric_context,
            group_code=group.code,
            group_name=group.name,
            document_text=text,
            max_score=max_score,
        )
        logger.debug("grading group", extra={**extra, "pages": document.page_count, "tokens": estimate_tokens(text)})
        result = await self.invoker.generate_structured(
            prompt.system, prompt.user, RubricAnalysis, provider=provider, model=model
        )

        self._save(analysis, aggregate.rubrics[0].rubric_id, group, submission, result, max_score)
        logger.info("graded group", extra={**extra, "score": result.total_score, "max_score": max_score})

    def _save(
        self,
        analysis: Analysis,
        rubric_id: RubricID,
        group: GroupWithLatestSubmission,
        submission: Submission,
        result: RubricAnalysis,
        max_score: float,
    ) -> None:
        with self._transaction() as session:
            analysis_storage.create_result(
                analysis_id=analysis.analysis_id,
                rubric_id=rubric_id,
                group_id=group.group_id,
                status=result.status,
                score=clamp_score(result.total_score, max_score),
                max_score=max_score,
                feedback=format_feedback(result),
                criteria=[CriterionScore(**c.model_dump()) for c in result.criteria],
                session=session,
            )
            for recommendation in result.recommendations:
                analysis_storage.create_recommendation(
                    analysis_id=analysis.analysis_id,
                    group_id=group.group_id,
                    priority=recommendation.priority,
                    summary=recommendation.summary,
                    details=recommendation.details,
                    session=session,
                )
            submission_storage.update(
                submission.submission_id, status=SubmissionStatus.Analyzed, session=session
            )

    async def analyze_in_chunks(
        self,
        data: bytes,
        *,
        document_name: str,
        instruction: str,
        chunk_size: int | None = None,
        provider: ProviderType | None = None,
        model: str | None = None,
    ) -> ChunkedAnalysis:
        """Analyze a long document part by part; nothing is persisted.

        Parts are sent one at a time, in order. The first failing part aborts
        the remaining ones and its error propagates.
        """
        document = await asyncio.to_thread(self.extractor.extract, data)
        chunks = split(clean(document.text), chunk_size or self.chunk_size)
        logger.info("analyzing document in chunks", extra={"document": document_name, "chunks": len(chunks)})

        responses: list[ChunkResponse] = []
        for index, chunk in enumerate(chunks, start=1):
            prompt = self.assembler.build_chunk_prompt(
                document_name=document_name, index=index, total=len(chunks), chunk=chunk, instruction=instruction
            )
            response = await self.invoker.generate(prompt, provider=provider, model=model)
            responses.append(ChunkResponse(chunk_index=index, total_chunks=len(chunks), response=response))

        return ChunkedAnalysis(document_name=document_name, total_chunks=len(chunks), responses=responses)

    async def analyze_document(
        self,
        data: bytes,
        *,
        document_name: str,
        instruction: str,
        provider: ProviderType | None = None,
        model: str | None = None,
    ) -> DocumentAnalysis:
        """Analyze a whole document with one free-text call; nothing is persisted."""
        document = await asyncio.to_thread(self.extractor.extract, data)
        text = truncate(clean(document.text), self.max_document_tokens)
        prompt = self.assembler.build_document_prompt(document_name=document_name, text=text, instruction=instruction)
        response = await self.invoker.generate(prompt, provider=provider, model=model)
        return DocumentAnalysis(
            document_name=document_name,
            page_count=document.page_count,
            estimated_tokens=estimate_tokens(text),
            response=response,
        )

    def get_analysis_report(self, analysis_id: AnalysisID) -> AnalysisReport:
        """Read back an analysis with its results and recommendations.

        Raises:
            NotFoundError: the analysis does not exist
        """
        with self.session.begin():
            analysis = analysis_storage.get(analysis_id, session=self.session)
            if analysis is None:
                raise NotFoundError(f"analysis {analysis_id} not found")
            results = analysis_storage.find_results(analysis_id=analysis_id, session=self.session)
            recommendations = analysis_storage.find_recommendations(analysis_id=analysis_id, session=self.session)
        return AnalysisReport(analysis=analysis, results=list(results), recommendations=list(recommendations))
