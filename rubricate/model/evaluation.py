from __future__ import annotations

from .base import BaseModel, WithCtime
from .group import GroupWithLatestSubmission
from .id import EvaluationID
from .rubric import RubricWithItems


class Evaluation(WithCtime):
    evaluation_id: EvaluationID

    title: str
    description: str | None = None
    group_count: int = 0
    owner: str | None = None
    archived: bool = False


class EvaluationWithRubrics(BaseModel):
    evaluation: Evaluation
    rubrics: list[RubricWithItems] = []


class EvaluationAggregate(EvaluationWithRubrics):
    """An evaluation with everything an analysis run reads.

    Rubrics carry their items in ascending order index; each group carries
    only its most recently uploaded submission.
    """

    groups: list[GroupWithLatestSubmission] = []
