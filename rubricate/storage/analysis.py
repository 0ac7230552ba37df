from __future__ import annotations

import datetime
import typing as t

import sqlalchemy as sqla

from rubricate.core import di
from rubricate.lib import NotSet
from rubricate.model import Analysis, AnalysisID, AnalysisResult, AnalysisResultID, AnalysisState, AnalysisStatus, \
    CriterionScore, EvaluationID, GroupID, Recommendation, RecommendationID, RubricID

from . import Session
from .table import analyses, analysis_results, recommendations


def get(
    analysis_id: AnalysisID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Analysis | None:
    """Get an analysis by ID."""
    stmt = sqla.select(analyses.__table__).where(analyses.analysis_id == analysis_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Analysis(**row) if row else None


def find(
    *,
    evaluation_id: EvaluationID | None = None,
    state: AnalysisState | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Analysis, ...]:
    """Find analyses, most recently started first."""
    stmt = sqla.select(analyses.__table__).order_by(analyses.started_at.desc(), analyses.analysis_id.desc())
    if evaluation_id is not None:
        stmt = stmt.where(analyses.evaluation_id == evaluation_id)
    if state is not None:
        stmt = stmt.where(analyses.state == state)
    rows = session.execute(stmt).mappings().all()
    return tuple(Analysis(**row) for row in rows)


def get_latest(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Analysis | None:
    """Get the most recently started analysis of an evaluation."""
    found = find(evaluation_id=evaluation_id, session=session)
    return found[0] if found else None


def create(
    *,
    evaluation_id: EvaluationID,
    engine: str,
    started_at: datetime.datetime,
    state: AnalysisState = AnalysisState.Running,
    notes: str | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Analysis:
    """Create a new analysis run."""
    analysis_id = AnalysisID()
    stmt = sqla.insert(analyses).values(
        analysis_id=analysis_id,
        evaluation_id=evaluation_id,
        engine=engine,
        state=state,
        started_at=started_at,
        notes=notes,
    )
    session.execute(stmt)
    session.flush()
    result = get(analysis_id, session=session)
    assert result is not None
    return result


def update(
    analysis_id: AnalysisID,
    *,
    state: AnalysisState | NotSet = NotSet(),
    ended_at: datetime.datetime | None | NotSet = NotSet(),
    notes: str | None | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update an analysis.

    Raises:
        KeyError: If analysis_id does not correspond to an analysis
    """
    values: dict[str, t.Any] = {}
    if not isinstance(state, NotSet):
        values["state"] = state
    if not isinstance(ended_at, NotSet):
        values["ended_at"] = ended_at
    if not isinstance(notes, NotSet):
        values["notes"] = notes

    values = values or {"analysis_id": analysis_id}
    stmt = sqla.update(analyses).where(analyses.analysis_id == analysis_id).values(**values)
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Analysis {analysis_id} not found")

    session.flush()


# Results


def get_result(
    result_id: AnalysisResultID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> AnalysisResult | None:
    stmt = sqla.select(analysis_results.__table__).where(analysis_results.result_id == result_id)
    row = session.execute(stmt).mappings().one_or_none()
    return AnalysisResult(**row) if row else None


def find_results(
    *,
    analysis_id: AnalysisID,
    group_id: GroupID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[AnalysisResult, ...]:
    """Find the results of an analysis."""
    stmt = (
        sqla
        .select(analysis_results.__table__)
        .where(analysis_results.analysis_id == analysis_id)
        .order_by(analysis_results.group_id, analysis_results.result_id)
    )
    if group_id is not None:
        stmt = stmt.where(analysis_results.group_id == group_id)
    rows = session.execute(stmt).mappings().all()
    return tuple(AnalysisResult(**row) for row in rows)


def create_result(
    *,
    analysis_id: AnalysisID,
    rubric_id: RubricID,
    group_id: GroupID | None,
    status: AnalysisStatus,
    score: float,
    feedback: str,
    max_score: float | None = None,
    criteria: list[CriterionScore] | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> AnalysisResult:
    """Record the outcome of grading one group against a rubric."""
    result_id = AnalysisResultID()
    stmt = sqla.insert(analysis_results).values(
        result_id=result_id,
        analysis_id=analysis_id,
        rubric_id=rubric_id,
        group_id=group_id,
        status=status,
        score=score,
        max_score=max_score,
        feedback=feedback,
        criteria=criteria or [],
    )
    session.execute(stmt)
    session.flush()
    result = get_result(result_id, session=session)
    assert result is not None
    return result


# Recommendations


def get_recommendation(
    recommendation_id: RecommendationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Recommendation | None:
    stmt = sqla.select(recommendations.__table__).where(recommendations.recommendation_id == recommendation_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Recommendation(**row) if row else None


def find_recommendations(
    *,
    analysis_id: AnalysisID,
    group_id: GroupID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Recommendation, ...]:
    """Find recommendations, most urgent first and newest first within a priority."""
    stmt = (
        sqla
        .select(recommendations.__table__)
        .where(recommendations.analysis_id == analysis_id)
        .order_by(recommendations.priority.asc(), recommendations.create_time.desc())
    )
    if group_id is not None:
        stmt = stmt.where(recommendations.group_id == group_id)
    rows = session.execute(stmt).mappings().all()
    return tuple(Recommendation(**row) for row in rows)


def create_recommendation(
    *,
    analysis_id: AnalysisID,
    group_id: GroupID,
    priority: t.Literal[1, 2, 3],
    summary: str,
    details: str,
    create_time: datetime.datetime | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Recommendation:
    recommendation_id = RecommendationID()
    values: dict[str, t.Any] = dict(
        recommendation_id=recommendation_id,
        analysis_id=analysis_id,
        group_id=group_id,
        priority=priority,
        summary=summary,
        details=details,
    )
    if create_time is not None:
        values["create_time"] = create_time
    session.execute(sqla.insert(recommendations).values(**values))
    session.flush()
    result = get_recommendation(recommendation_id, session=session)
    assert result is not None
    return result
