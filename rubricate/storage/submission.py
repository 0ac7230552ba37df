from __future__ import annotations

import datetime
import typing as t

import sqlalchemy as sqla

from rubricate.core import di
from rubricate.lib import NotSet
from rubricate.model import GroupID, Submission, SubmissionID, SubmissionStatus

from . import Session
from .table import submissions


def get(
    submission_id: SubmissionID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission | None:
    """Get a submission by ID."""
    stmt = sqla.select(submissions.__table__).where(submissions.submission_id == submission_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Submission(**row) if row else None


def find(
    *,
    group_id: GroupID | None = None,
    status: SubmissionStatus | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Submission, ...]:
    """Find submissions, most recently uploaded first."""
    stmt = sqla.select(submissions.__table__).order_by(
        submissions.uploaded_at.desc(), submissions.submission_id.desc()
    )
    if group_id is not None:
        stmt = stmt.where(submissions.group_id == group_id)
    if status is not None:
        stmt = stmt.where(submissions.status == status)
    rows = session.execute(stmt).mappings().all()
    return tuple(Submission(**row) for row in rows)


def get_latest(
    group_id: GroupID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission | None:
    """Get the most recently uploaded submission of a group."""
    found = find(group_id=group_id, session=session)
    return found[0] if found else None


def create(
    *,
    group_id: GroupID,
    filename: str,
    document_url: str,
    uploaded_at: datetime.datetime | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission:
    """Record a received submission."""
    submission_id = SubmissionID()
    values: dict[str, t.Any] = dict(
        submission_id=submission_id,
        group_id=group_id,
        filename=filename,
        document_url=document_url,
        status=SubmissionStatus.Received,
    )
    if uploaded_at is not None:
        values["uploaded_at"] = uploaded_at
    session.execute(sqla.insert(submissions).values(**values))
    session.flush()
    result = get(submission_id, session=session)
    assert result is not None
    return result


def update(
    submission_id: SubmissionID,
    *,
    status: SubmissionStatus | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update a submission.

    Raises:
        KeyError: If submission_id does not correspond to a submission
    """
    values: dict[str, t.Any] = {}
    if not isinstance(status, NotSet):
        values["status"] = status

    values = values or {"submission_id": submission_id}
    stmt = sqla.update(submissions).where(submissions.submission_id == submission_id).values(**values)
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Submission {submission_id} not found")

    session.flush()
