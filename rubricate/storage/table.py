import datetime
import enum

from sqlalchemy import ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, MappedAsDataclass
from sqlalchemy.types import DateTime, Text

from rubricate.model import AnalysisID, AnalysisResultID, AnalysisState, AnalysisStatus, CriterionScore, \
    EvaluationID, GroupID, RecommendationID, RubricID, RubricItemID, SubmissionID, SubmissionStatus

from .type import PydanticListType, ShortUUIDKeyType, ValueEnumMapper


class base(MappedAsDataclass, DeclarativeBase):
    type_annotation_map = {
        EvaluationID: ShortUUIDKeyType(EvaluationID),
        RubricID: ShortUUIDKeyType(RubricID),
        RubricItemID: ShortUUIDKeyType(RubricItemID),
        GroupID: ShortUUIDKeyType(GroupID),
        SubmissionID: ShortUUIDKeyType(SubmissionID),
        AnalysisID: ShortUUIDKeyType(AnalysisID),
        AnalysisResultID: ShortUUIDKeyType(AnalysisResultID),
        RecommendationID: ShortUUIDKeyType(RecommendationID),
        datetime.datetime: DateTime(timezone=True),
        list[CriterionScore]: PydanticListType(),
        enum.Enum: ValueEnumMapper,
    }


# Evaluations & rubrics


class evaluations(base):
    __tablename__ = "evaluations"

    evaluation_id: Mapped[EvaluationID] = mapped_column(primary_key=True)
    title: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text, default=None)
    group_count: Mapped[int] = mapped_column(default=0)
    owner: Mapped[str | None] = mapped_column(default=None)
    archived: Mapped[bool] = mapped_column(default=False)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())


class rubrics(base):
    __tablename__ = "rubrics"

    rubric_id: Mapped[RubricID] = mapped_column(primary_key=True)
    evaluation_id: Mapped[EvaluationID] = mapped_column(
        ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str]
    document_url: Mapped[str | None] = mapped_column(default=None)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())


class rubric_items(base):
    __tablename__ = "rubric_items"
    __table_args__ = (UniqueConstraint("rubric_id", "order_index"),)

    item_id: Mapped[RubricItemID] = mapped_column(primary_key=True)
    rubric_id: Mapped[RubricID] = mapped_column(ForeignKey("rubrics.rubric_id", ondelete="CASCADE"), index=True)
    order_index: Mapped[int]
    title: Mapped[str]
    conditions: Mapped[str | None] = mapped_column(Text, default=None)
    max_score: Mapped[float] = mapped_column(default=1.0)


# Groups & submissions


class groups(base):
    __tablename__ = "groups"
    __table_args__ = (UniqueConstraint("evaluation_id", "code"),)

    group_id: Mapped[GroupID] = mapped_column(primary_key=True)
    evaluation_id: Mapped[EvaluationID] = mapped_column(
        ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"), index=True
    )
    code: Mapped[str]
    name: Mapped[str]
    student_count: Mapped[int] = mapped_column(default=0)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())


class submissions(base):
    __tablename__ = "submissions"

    submission_id: Mapped[SubmissionID] = mapped_column(primary_key=True)
    group_id: Mapped[GroupID] = mapped_column(ForeignKey("groups.group_id", ondelete="CASCADE"), index=True)
    filename: Mapped[str]
    document_url: Mapped[str]
    status: Mapped[SubmissionStatus]
    uploaded_at: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())


# Analyses


class analyses(base):
    __tablename__ = "analyses"

    analysis_id: Mapped[AnalysisID] = mapped_column(primary_key=True)
    evaluation_id: Mapped[EvaluationID] = mapped_column(
        ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"), index=True
    )
    engine: Mapped[str]
    state: Mapped[AnalysisState]
    started_at: Mapped[datetime.datetime]
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    ended_at: Mapped[datetime.datetime | None] = mapped_column(default=None)


class analysis_results(base):
    __tablename__ = "analysis_results"

    result_id: Mapped[AnalysisResultID] = mapped_column(primary_key=True)
    analysis_id: Mapped[AnalysisID] = mapped_column(
        ForeignKey("analyses.analysis_id", ondelete="CASCADE"), index=True
    )
    rubric_id: Mapped[RubricID] = mapped_column(ForeignKey("rubrics.rubric_id", ondelete="CASCADE"))
    group_id: Mapped[GroupID | None] = mapped_column(ForeignKey("groups.group_id", ondelete="CASCADE"))
    status: Mapped[AnalysisStatus]
    score: Mapped[float]
    feedback: Mapped[str] = mapped_column(Text)
    max_score: Mapped[float | None] = mapped_column(default=None)
    criteria: Mapped[list[CriterionScore]] = mapped_column(default_factory=list)


class recommendations(base):
    __tablename__ = "recommendations"

    recommendation_id: Mapped[RecommendationID] = mapped_column(primary_key=True)
    analysis_id: Mapped[AnalysisID] = mapped_column(
        ForeignKey("analyses.analysis_id", ondelete="CASCADE"), index=True
    )
    group_id: Mapped[GroupID] = mapped_column(ForeignKey("groups.group_id", ondelete="CASCADE"), index=True)
    priority: Mapped[int]
    summary: Mapped[str] = mapped_column(Text)
    details: Mapped[str] = mapped_column(Text)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
