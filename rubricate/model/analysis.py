import datetime
import typing as t

from .base import BaseModel, WithCtime
from .enum import AchievementLevel, AnalysisState, AnalysisStatus
from .id import AnalysisID, AnalysisResultID, EvaluationID, GroupID, RecommendationID, RubricID


class Analysis(BaseModel):
    analysis_id: AnalysisID
    evaluation_id: EvaluationID

    engine: str
    notes: str | None = None
    state: AnalysisState = AnalysisState.Created
    started_at: datetime.datetime
    ended_at: datetime.datetime | None = None


class CriterionScore(BaseModel):
    criterion_name: str
    score: float
    max_score: float
    level: AchievementLevel
    feedback: str


class AnalysisResult(BaseModel):
    result_id: AnalysisResultID
    analysis_id: AnalysisID
    rubric_id: RubricID
    group_id: GroupID | None = None

    status: AnalysisStatus
    score: float
    max_score: float | None = None
    feedback: str
    criteria: list[CriterionScore] = []


class Recommendation(WithCtime):
    recommendation_id: RecommendationID
    analysis_id: AnalysisID
    group_id: GroupID

    priority: t.Literal[1, 2, 3]
    summary: str
    details: str


class AnalysisReport(BaseModel):
    analysis: Analysis
    results: list[AnalysisResult] = []
    recommendations: list[Recommendation] = []
