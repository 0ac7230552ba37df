__all__ = [
    # Base
    "BaseModel",
    "WithCtime",
    # Enums
    "AchievementLevel",
    "AnalysisState",
    "AnalysisStatus",
    "DeploymentEnvironment",
    "ProviderType",
    "SubmissionStatus",
    # ID Types
    "AnalysisID",
    "AnalysisResultID",
    "EvaluationID",
    "GroupID",
    "RecommendationID",
    "RubricID",
    "RubricItemID",
    "SubmissionID",
    # Evaluations
    "Evaluation",
    "EvaluationAggregate",
    "EvaluationWithRubrics",
    # Rubrics
    "Rubric",
    "RubricItem",
    "RubricWithItems",
    # Groups
    "Group",
    "GroupWithLatestSubmission",
    "Submission",
    # Analyses
    "Analysis",
    "AnalysisReport",
    "AnalysisResult",
    "CriterionScore",
    "Recommendation",
]

from .analysis import Analysis, AnalysisReport, AnalysisResult, CriterionScore, Recommendation
from .base import BaseModel, WithCtime
from .enum import AchievementLevel, AnalysisState, AnalysisStatus, DeploymentEnvironment, ProviderType, \
    SubmissionStatus
from .evaluation import Evaluation, EvaluationAggregate, EvaluationWithRubrics
from .group import Group, GroupWithLatestSubmission, Submission
from .id import AnalysisID, AnalysisResultID, EvaluationID, GroupID, RecommendationID, RubricID, RubricItemID, \
    SubmissionID
from .rubric import Rubric, RubricItem, RubricWithItems
