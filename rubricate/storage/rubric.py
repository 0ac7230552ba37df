from __future__ import annotations

import typing as t

import pydantic as p
import sqlalchemy as sqla

from rubricate.core import di
from rubricate.lib import NotSet
from rubricate.model import EvaluationID, Rubric, RubricID, RubricItem, RubricItemID, RubricWithItems

from . import Session
from .table import rubric_items, rubrics


class RubricItemCreateParams(p.BaseModel):
    """Parameters for creating a rubric item."""

    model_config = p.ConfigDict(frozen=True)

    title: str
    conditions: str | None = None
    max_score: float = 1.0
    order_index: int | None = None


def get(
    rubric_id: RubricID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Rubric | None:
    """Get a rubric by ID."""
    stmt = sqla.select(rubrics.__table__).where(rubrics.rubric_id == rubric_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Rubric(**row) if row else None


def get_with_items(
    rubric_id: RubricID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> RubricWithItems | None:
    """Get a rubric with its items in ascending order index."""
    rubric = get(rubric_id, session=session)
    if rubric is None:
        return None
    return RubricWithItems(**rubric.model_dump(), items=list(find_items(rubric_id=rubric_id, session=session)))


def find(
    *,
    evaluation_id: EvaluationID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Rubric, ...]:
    """Find rubrics in creation order."""
    stmt = sqla.select(rubrics.__table__).order_by(rubrics.create_time, rubrics.rubric_id)
    if evaluation_id is not None:
        stmt = stmt.where(rubrics.evaluation_id == evaluation_id)
    rows = session.execute(stmt).mappings().all()
    return tuple(Rubric(**row) for row in rows)


def create(
    *,
    evaluation_id: EvaluationID,
    title: str,
    document_url: str | None = None,
    items: list[RubricItemCreateParams] | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> RubricWithItems:
    """Create a rubric, optionally with an initial list of items.

    Items without an explicit order index are numbered from 1 in list order.
    """
    rubric_id = RubricID()
    stmt = sqla.insert(rubrics).values(
        rubric_id=rubric_id,
        evaluation_id=evaluation_id,
        title=title,
        document_url=document_url,
    )
    session.execute(stmt)
    session.flush()

    for n, params in enumerate(items or [], start=1):
        create_item(
            rubric_id=rubric_id,
            title=params.title,
            conditions=params.conditions,
            max_score=params.max_score,
            order_index=params.order_index if params.order_index is not None else n,
            session=session,
        )

    result = get_with_items(rubric_id, session=session)
    assert result is not None
    return result


def update(
    rubric_id: RubricID,
    *,
    title: str | NotSet = NotSet(),
    document_url: str | None | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update a rubric.

    Raises:
        KeyError: If rubric_id does not correspond to a rubric
    """
    values: dict[str, t.Any] = {}
    if not isinstance(title, NotSet):
        values["title"] = title
    if not isinstance(document_url, NotSet):
        values["document_url"] = document_url

    values = values or {"rubric_id": rubric_id}
    stmt = sqla.update(rubrics).where(rubrics.rubric_id == rubric_id).values(**values)
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Rubric {rubric_id} not found")

    session.flush()


def delete(
    rubric_id: RubricID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> bool:
    """Delete a rubric and its items.

    Returns:
        True if a rubric was deleted, False if not found
    """
    stmt = sqla.delete(rubrics).where(rubrics.rubric_id == rubric_id)
    result = session.execute(stmt)
    return bool(result.rowcount)  # pyright: ignore[reportUnknownArgumentType, reportAttributeAccessIssue]


# Rubric items


def get_item(
    item_id: RubricItemID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> RubricItem | None:
    """Get a rubric item by ID."""
    stmt = sqla.select(rubric_items.__table__).where(rubric_items.item_id == item_id)
    row = session.execute(stmt).mappings().one_or_none()
    return RubricItem(**row) if row else None


def find_items(
    *,
    rubric_id: RubricID,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[RubricItem, ...]:
    """Find the items of a rubric in ascending order index."""
    stmt = (
        sqla
        .select(rubric_items.__table__)
        .where(rubric_items.rubric_id == rubric_id)
        .order_by(rubric_items.order_index)
    )
    rows = session.execute(stmt).mappings().all()
    return tuple(RubricItem(**row) for row in rows)


def max_order_index(
    rubric_id: RubricID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    """Highest order index in use for a rubric, 0 when it has no items."""
    stmt = sqla.select(sqla.func.max(rubric_items.order_index)).where(rubric_items.rubric_id == rubric_id)
    return session.execute(stmt).scalar_one_or_none() or 0


def create_item(
    *,
    rubric_id: RubricID,
    title: str,
    conditions: str | None = None,
    max_score: float = 1.0,
    order_index: int | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> RubricItem:
    """Create a rubric item; without an order index it is appended after the last item."""
    if order_index is None:
        order_index = max_order_index(rubric_id, session=session) + 1

    item_id = RubricItemID()
    stmt = sqla.insert(rubric_items).values(
        item_id=item_id,
        rubric_id=rubric_id,
        order_index=order_index,
        title=title,
        conditions=conditions,
        max_score=max_score,
    )
    session.execute(stmt)
    session.flush()
    result = get_item(item_id, session=session)
    assert result is not None
    return result


def delete_item(
    item_id: RubricItemID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> bool:
    stmt = sqla.delete(rubric_items).where(rubric_items.item_id == item_id)
    result = session.execute(stmt)
    return bool(result.rowcount)  # pyright: ignore[reportUnknownArgumentType, reportAttributeAccessIssue]
