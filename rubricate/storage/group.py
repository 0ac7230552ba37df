from __future__ import annotations

import typing as t

import sqlalchemy as sqla

from rubricate.core import di
from rubricate.lib import NotSet
from rubricate.model import EvaluationID, Group, GroupID

from . import Session
from .table import groups


def get(
    group_id: GroupID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Group | None:
    """Get a group by ID."""
    stmt = sqla.select(groups.__table__).where(groups.group_id == group_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Group(**row) if row else None


def get_by_code(
    evaluation_id: EvaluationID,
    code: str,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Group | None:
    """Get a group by its code within an evaluation."""
    stmt = sqla.select(groups.__table__).where(groups.evaluation_id == evaluation_id, groups.code == code)
    row = session.execute(stmt).mappings().one_or_none()
    return Group(**row) if row else None


def find(
    *,
    evaluation_id: EvaluationID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Group, ...]:
    """Find groups ordered by code."""
    stmt = sqla.select(groups.__table__).order_by(groups.code)
    if evaluation_id is not None:
        stmt = stmt.where(groups.evaluation_id == evaluation_id)
    rows = session.execute(stmt).mappings().all()
    return tuple(Group(**row) for row in rows)


def create(
    *,
    evaluation_id: EvaluationID,
    code: str,
    name: str,
    student_count: int = 0,
    session: Session = di.Provide["storage.persistent.session"],
) -> Group:
    """Create a new group."""
    group_id = GroupID()
    stmt = sqla.insert(groups).values(
        group_id=group_id,
        evaluation_id=evaluation_id,
        code=code,
        name=name,
        student_count=student_count,
    )
    session.execute(stmt)
    session.flush()
    result = get(group_id, session=session)
    assert result is not None
    return result


def update(
    group_id: GroupID,
    *,
    name: str | NotSet = NotSet(),
    student_count: int | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update a group.

    Raises:
        KeyError: If group_id does not correspond to a group
    """
    values: dict[str, t.Any] = {}
    if not isinstance(name, NotSet):
        values["name"] = name
    if not isinstance(student_count, NotSet):
        values["student_count"] = student_count

    values = values or {"group_id": group_id}
    stmt = sqla.update(groups).where(groups.group_id == group_id).values(**values)
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Group {group_id} not found")

    session.flush()


def delete(
    group_id: GroupID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> bool:
    """Delete a group with its submissions.

    Returns:
        True if a group was deleted, False if not found
    """
    stmt = sqla.delete(groups).where(groups.group_id == group_id)
    result = session.execute(stmt)
    return bool(result.rowcount)  # pyright: ignore[reportUnknownArgumentType, reportAttributeAccessIssue]
