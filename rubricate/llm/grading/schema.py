"""Structured response schemas for rubric grading."""

from __future__ import annotations

import typing as t

import pydantic as p

from rubricate.model import AchievementLevel, AnalysisStatus


class CriterionAssessment(p.BaseModel):
    """Score awarded for one rubric item."""

    criterion_name: str = p.Field(description="Rubric item title, as given in the rubric")
    score: float = p.Field(description="Points awarded for this item")
    max_score: float = p.Field(description="Maximum points for this item")
    level: AchievementLevel = p.Field(description="Achievement level reached on this item")
    feedback: str = p.Field(description="Feedback citing evidence from the document")


class RecommendationDraft(p.BaseModel):
    """A concrete improvement suggestion for the group."""

    priority: t.Literal[1, 2, 3] = p.Field(description="1 is most urgent, 3 least urgent")
    summary: str = p.Field(description="One-line summary")
    details: str = p.Field(description="What to change and how")


class RubricAnalysis(p.BaseModel):
    """Complete grading of one group's submission against the rubric."""

    group_name: str
    group_code: str
    total_score: float = p.Field(description="Sum of the item scores")
    max_score: float = p.Field(description="Maximum achievable score")
    percentage: float = p.Field(description="total_score as a percentage of max_score")
    status: AnalysisStatus = p.Field(description="PASS, FAIL or PARTIAL")
    criteria: list[CriterionAssessment] = []
    general_feedback: str
    strengths: list[str] = []
    improvements: list[str] = []
    recommendations: list[RecommendationDraft] = p.Field(default=[], max_length=3)
