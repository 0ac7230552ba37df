from .base import BaseModel
from .id import EvaluationID, RubricID, RubricItemID


class RubricItem(BaseModel):
    item_id: RubricItemID
    rubric_id: RubricID

    order_index: int
    title: str
    conditions: str | None = None
    max_score: float = 1.0


class Rubric(BaseModel):
    rubric_id: RubricID
    evaluation_id: EvaluationID

    title: str
    document_url: str | None = None


class RubricWithItems(Rubric):
    items: list[RubricItem] = []
