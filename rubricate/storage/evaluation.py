from __future__ import annotations

import typing as t

import sqlalchemy as sqla

from rubricate.core import di
from rubricate.lib import NotSet
from rubricate.model import Evaluation, EvaluationAggregate, EvaluationID, Group, GroupWithLatestSubmission, Rubric, \
    RubricItem, RubricWithItems, Submission

from . import Session
from .table import evaluations, groups, rubric_items, rubrics, submissions


def get(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Evaluation | None:
    """Get an evaluation by ID."""
    stmt = sqla.select(evaluations.__table__).where(evaluations.evaluation_id == evaluation_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Evaluation(**row) if row else None


def find(
    *,
    owner: str | None = None,
    archived: bool | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Evaluation, ...]:
    """Find evaluations, newest first."""
    stmt = sqla.select(evaluations.__table__).order_by(evaluations.create_time.desc())
    if owner is not None:
        stmt = stmt.where(evaluations.owner == owner)
    if archived is not None:
        stmt = stmt.where(evaluations.archived == archived)
    rows = session.execute(stmt).mappings().all()
    return tuple(Evaluation(**row) for row in rows)


def get_aggregate(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationAggregate | None:
    """Load an evaluation with everything an analysis run reads.

    Rubrics come in creation order with their items ordered by order index.
    Groups come ordered by code, each with only its most recently uploaded
    submission (None when the group has not submitted anything).
    """
    evaluation = get(evaluation_id, session=session)
    if evaluation is None:
        return None

    rubric_rows = (
        session
        .execute(
            sqla
            .select(rubrics.__table__)
            .where(rubrics.evaluation_id == evaluation_id)
            .order_by(rubrics.create_time, rubrics.rubric_id)
        )
        .mappings()
        .all()
    )
    item_rows = (
        session
        .execute(
            sqla
            .select(rubric_items.__table__)
            .join(rubrics, rubrics.rubric_id == rubric_items.rubric_id)
            .where(rubrics.evaluation_id == evaluation_id)
            .order_by(rubric_items.order_index)
        )
        .mappings()
        .all()
    )
    items_by_rubric: dict[str, list[RubricItem]] = {}
    for row in item_rows:
        items_by_rubric.setdefault(row["rubric_id"], []).append(RubricItem(**row))

    group_rows = (
        session
        .execute(sqla.select(groups.__table__).where(groups.evaluation_id == evaluation_id).order_by(groups.code))
        .mappings()
        .all()
    )

    # rank each group's submissions by upload time, keep the newest
    ranked = (
        sqla
        .select(
            submissions.__table__,
            sqla.func
            .row_number()
            .over(
                partition_by=submissions.group_id,
                order_by=(submissions.uploaded_at.desc(), submissions.submission_id.desc()),
            )
            .label("rank"),
        )
        .join(groups, groups.group_id == submissions.group_id)
        .where(groups.evaluation_id == evaluation_id)
        .subquery()
    )
    latest_rows = (
        session
        .execute(sqla.select(*[c for c in ranked.c if c.name != "rank"]).where(ranked.c.rank == 1))
        .mappings()
        .all()
    )
    latest = {row["group_id"]: Submission(**row) for row in latest_rows}

    return EvaluationAggregate(
        evaluation=evaluation,
        rubrics=[
            RubricWithItems(**Rubric(**row).model_dump(), items=items_by_rubric.get(row["rubric_id"], []))
            for row in rubric_rows
        ],
        groups=[
            GroupWithLatestSubmission(**Group(**row).model_dump(), latest_submission=latest.get(row["group_id"]))
            for row in group_rows
        ],
    )


def create(
    *,
    title: str,
    description: str | None = None,
    group_count: int = 0,
    owner: str | None = None,
    evaluation_id: EvaluationID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Evaluation:
    """Create a new evaluation; the ID may be chosen up front, e.g. to key uploads by it."""
    evaluation_id = evaluation_id or EvaluationID()
    stmt = sqla.insert(evaluations).values(
        evaluation_id=evaluation_id,
        title=title,
        description=description,
        group_count=group_count,
        owner=owner,
    )
    session.execute(stmt)
    session.flush()
    result = get(evaluation_id, session=session)
    assert result is not None
    return result


def update(
    evaluation_id: EvaluationID,
    *,
    title: str | NotSet = NotSet(),
    description: str | None | NotSet = NotSet(),
    group_count: int | NotSet = NotSet(),
    archived: bool | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update an evaluation.

    Uses NotSet sentinel for parameters where None may be a valid value.
    Call get() after if you need the updated entity.

    Raises:
        KeyError: If evaluation_id does not correspond to an evaluation
    """
    values: dict[str, t.Any] = {}
    if not isinstance(title, NotSet):
        values["title"] = title
    if not isinstance(description, NotSet):
        values["description"] = description
    if not isinstance(group_count, NotSet):
        values["group_count"] = group_count
    if not isinstance(archived, NotSet):
        values["archived"] = archived

    # an empty update still verifies the evaluation exists
    values = values or {"evaluation_id": evaluation_id}
    stmt = sqla.update(evaluations).where(evaluations.evaluation_id == evaluation_id).values(**values)
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Evaluation {evaluation_id} not found")

    session.flush()


def delete(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> bool:
    """Delete an evaluation and, by cascade, everything it owns.

    Returns:
        True if an evaluation was deleted, False if not found
    """
    stmt = sqla.delete(evaluations).where(evaluations.evaluation_id == evaluation_id)
    result = session.execute(stmt)
    return bool(result.rowcount)  # pyright: ignore[reportUnknownArgumentType, reportAttributeAccessIssue]
