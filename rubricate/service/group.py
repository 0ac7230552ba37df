"""Group management: groups, their submissions and their recommendations."""

from __future__ import annotations

import datetime
import logging

from sqlalchemy.exc import IntegrityError

from rubricate.core import di
from rubricate.core.provider import TimestampProvider
from rubricate.document import check_document
from rubricate.errors import NotFoundError, PersistenceError
from rubricate.lib.util import sanitize_filename
from rubricate.model import BaseModel, EvaluationID, Group, GroupID, Recommendation, Submission
from rubricate.storage import analysis as analysis_storage
from rubricate.storage import evaluation as evaluation_storage
from rubricate.storage import group as group_storage
from rubricate.storage import Session
from rubricate.storage import submission as submission_storage
from rubricate.storage.object import ObjectStore

from .evaluation import transaction

logger = logging.getLogger(__name__)


class GroupRecommendations(BaseModel):
    group: Group
    recommendations: list[Recommendation] = []


@di.inject
def create_group(
    evaluation_id: EvaluationID,
    *,
    code: str,
    name: str,
    student_count: int = 0,
    session: Session = di.Provide["storage.persistent.session"],
) -> Group:
    """Register a group for an evaluation; codes are unique within an evaluation.

    Raises:
        NotFoundError: the evaluation does not exist
        PersistenceError: the code is already taken
    """
    with transaction(session):
        if evaluation_storage.get(evaluation_id, session=session) is None:
            raise NotFoundError(f"evaluation {evaluation_id} not found")
        try:
            group = group_storage.create(
                evaluation_id=evaluation_id, code=code, name=name, student_count=student_count, session=session
            )
        except IntegrityError as e:
            raise PersistenceError(f"group {code!r} already exists in evaluation {evaluation_id}") from e
    logger.info("created group", extra={"group_id": str(group.group_id), "code": code})
    return group


@di.inject
def update_group(
    group_id: GroupID,
    *,
    name: str | None = None,
    student_count: int | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Group:
    """Raises NotFoundError for an unknown group."""
    with transaction(session):
        try:
            if name is not None:
                group_storage.update(group_id, name=name, session=session)
            if student_count is not None:
                group_storage.update(group_id, student_count=student_count, session=session)
        except KeyError as e:
            raise NotFoundError(f"group {group_id} not found") from e
        group = group_storage.get(group_id, session=session)
    if group is None:
        raise NotFoundError(f"group {group_id} not found")
    return group


@di.inject
def delete_group(
    group_id: GroupID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Raises NotFoundError for an unknown group."""
    with transaction(session):
        deleted = group_storage.delete(group_id, session=session)
    if not deleted:
        raise NotFoundError(f"group {group_id} not found")


@di.inject
def create_submission(
    group_id: GroupID,
    *,
    filename: str,
    document_url: str,
    uploaded_at: datetime.datetime | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission:
    """Record a received document for a group; the newest one is what gets analyzed.

    Raises:
        NotFoundError: the group does not exist
    """
    with transaction(session):
        if group_storage.get(group_id, session=session) is None:
            raise NotFoundError(f"group {group_id} not found")
        submission = submission_storage.create(
            group_id=group_id, filename=filename, document_url=document_url, uploaded_at=uploaded_at, session=session
        )
    logger.info(
        "received submission",
        extra={
            "group_id": str(group_id),
            "submission_id": str(submission.submission_id),
            "submission_filename": filename,
        },
    )
    return submission


@di.inject
async def upload_submission_document(
    group: Group,
    filename: str,
    data: bytes,
    *,
    store: ObjectStore = di.Provide["storage.object.store"],
    bucket: str = di.Provide["config.storage.object.bucket"],
    max_size: int = di.Provide["config.analysis.max_document_bytes"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> str:
    """Store a group's PDF under its evaluation's prefix and return the reference."""
    check_document(data, max_size)
    timestamp = int(utcnow().timestamp() * 1000)
    key = f"evaluations/{group.evaluation_id}/groups/{group.code}/{timestamp}_{sanitize_filename(filename)}"
    reference = await store.put(bucket, key, data, content_type="application/pdf")
    logger.info("uploaded submission document", extra={"group_id": str(group.group_id), "reference": reference})
    return reference


@di.inject
def get_group(
    group_id: GroupID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Group:
    with session.begin():
        group = group_storage.get(group_id, session=session)
    if group is None:
        raise NotFoundError(f"group {group_id} not found")
    return group


@di.inject
def find_group_recommendations(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> list[GroupRecommendations]:
    """Groups of an evaluation with the recommendations of its most recent analysis.

    Raises:
        NotFoundError: the evaluation does not exist
    """
    with session.begin():
        if evaluation_storage.get(evaluation_id, session=session) is None:
            raise NotFoundError(f"evaluation {evaluation_id} not found")
        groups = group_storage.find(evaluation_id=evaluation_id, session=session)
        latest = analysis_storage.get_latest(evaluation_id, session=session)
        recommendations = (
            analysis_storage.find_recommendations(analysis_id=latest.analysis_id, session=session) if latest else ()
        )

    by_group: dict[GroupID, list[Recommendation]] = {}
    for recommendation in recommendations:
        by_group.setdefault(recommendation.group_id, []).append(recommendation)
    return [GroupRecommendations(group=g, recommendations=by_group.get(g.group_id, [])) for g in groups]
