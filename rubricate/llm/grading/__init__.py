"""Rubric grading of group submissions and stateless document analysis."""

from .pipeline import AnalysisOutcome, ChunkedAnalysis, ChunkResponse, DocumentAnalysis, EvaluationOrchestrator, \
    format_feedback
from .prompt import compute_max_score, GroupPrompt, PromptAssembler
from .schema import CriterionAssessment, RecommendationDraft, RubricAnalysis

__all__ = [
    "AnalysisOutcome",
    "ChunkResponse",
    "ChunkedAnalysis",
    "CriterionAssessment",
    "DocumentAnalysis",
    "EvaluationOrchestrator",
    "GroupPrompt",
    "PromptAssembler",
    "RecommendationDraft",
    "RubricAnalysis",
    "compute_max_score",
    "format_feedback",
]
