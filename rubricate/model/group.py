import datetime

from .base import BaseModel
from .enum import SubmissionStatus
from .id import EvaluationID, GroupID, SubmissionID


class Submission(BaseModel):
    submission_id: SubmissionID
    group_id: GroupID

    filename: str
    document_url: str
    status: SubmissionStatus = SubmissionStatus.Received
    uploaded_at: datetime.datetime


class Group(BaseModel):
    group_id: GroupID
    evaluation_id: EvaluationID

    code: str
    name: str
    student_count: int = 0


class GroupWithLatestSubmission(Group):
    latest_submission: Submission | None = None
