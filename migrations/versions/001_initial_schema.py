"""Initial schema for evaluations, group submissions and analyses

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

import typing as t

from alembic import op
from sqlalchemy import func as f
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.schema import Column, ForeignKey, UniqueConstraint
from sqlalchemy.types import Boolean, DateTime, Float, Integer, JSON, String, Text

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | t.Sequence[str] | None = None
depends_on: str | t.Sequence[str] | None = None


def upgrade() -> None:
    # Evaluations
    op.create_table(
        "evaluations",
        Column("evaluation_id", String(22), primary_key=True),
        Column("title", String, nullable=False),
        Column("description", Text, nullable=True),
        Column("group_count", Integer, server_default="0", nullable=False),
        Column("owner", String, nullable=True),
        Column("archived", Boolean, server_default="false", nullable=False),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    # Rubrics
    op.create_table(
        "rubrics",
        Column("rubric_id", String(22), primary_key=True),
        Column(
            "evaluation_id",
            String(22),
            ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"),
            nullable=False,
        ),
        Column("title", String, nullable=False),
        Column("document_url", String, nullable=True),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    # Rubric items
    op.create_table(
        "rubric_items",
        Column("item_id", String(22), primary_key=True),
        Column("rubric_id", String(22), ForeignKey("rubrics.rubric_id", ondelete="CASCADE"), nullable=False),
        Column("order_index", Integer, nullable=False),
        Column("title", String, nullable=False),
        Column("conditions", Text, nullable=True),
        Column("max_score", Float, server_default="1.0", nullable=False),
        UniqueConstraint("rubric_id", "order_index"),
    )

    # Groups
    op.create_table(
        "groups",
        Column("group_id", String(22), primary_key=True),
        Column(
            "evaluation_id",
            String(22),
            ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"),
            nullable=False,
        ),
        Column("code", String, nullable=False),
        Column("name", String, nullable=False),
        Column("student_count", Integer, server_default="0", nullable=False),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
        UniqueConstraint("evaluation_id", "code"),
    )

    # Submissions
    op.create_table(
        "submissions",
        Column("submission_id", String(22), primary_key=True),
        Column("group_id", String(22), ForeignKey("groups.group_id", ondelete="CASCADE"), nullable=False),
        Column("filename", String, nullable=False),
        Column("document_url", String, nullable=False),
        Column("status", String(32), server_default="received", nullable=False),
        Column("uploaded_at", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    # Analyses
    op.create_table(
        "analyses",
        Column("analysis_id", String(22), primary_key=True),
        Column(
            "evaluation_id",
            String(22),
            ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"),
            nullable=False,
        ),
        Column("engine", String, nullable=False),
        Column("state", String(32), nullable=False),
        Column("notes", Text, nullable=True),
        Column("started_at", DateTime(timezone=True), nullable=False),
        Column("ended_at", DateTime(timezone=True), nullable=True),
    )

    # Analysis results
    op.create_table(
        "analysis_results",
        Column("result_id", String(22), primary_key=True),
        Column("analysis_id", String(22), ForeignKey("analyses.analysis_id", ondelete="CASCADE"), nullable=False),
        Column("rubric_id", String(22), ForeignKey("rubrics.rubric_id", ondelete="CASCADE"), nullable=False),
        Column("group_id", String(22), ForeignKey("groups.group_id", ondelete="CASCADE"), nullable=True),
        Column("status", String(32), nullable=False),
        Column("score", Float, nullable=False),
        Column("max_score", Float, nullable=True),
        Column("feedback", Text, nullable=False),
        Column("criteria", JSON().with_variant(JSONB(), "postgresql"), nullable=False),
    )

    # Recommendations
    op.create_table(
        "recommendations",
        Column("recommendation_id", String(22), primary_key=True),
        Column("analysis_id", String(22), ForeignKey("analyses.analysis_id", ondelete="CASCADE"), nullable=False),
        Column("group_id", String(22), ForeignKey("groups.group_id", ondelete="CASCADE"), nullable=False),
        Column("priority", Integer, nullable=False),
        Column("summary", Text, nullable=False),
        Column("details", Text, nullable=False),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    # Indexes
    op.create_index("ix_rubrics_evaluation_id", "rubrics", ["evaluation_id"])
    op.create_index("ix_rubric_items_rubric_id", "rubric_items", ["rubric_id"])
    op.create_index("ix_groups_evaluation_id", "groups", ["evaluation_id"])
    op.create_index("ix_submissions_group_id", "submissions", ["group_id"])
    op.create_index("ix_analyses_evaluation_id", "analyses", ["evaluation_id"])
    op.create_index("ix_analysis_results_analysis_id", "analysis_results", ["analysis_id"])
    op.create_index("ix_recommendations_analysis_id", "recommendations", ["analysis_id"])
    op.create_index("ix_recommendations_group_id", "recommendations", ["group_id"])


def downgrade() -> None:
    op.drop_index("ix_recommendations_group_id")
    op.drop_index("ix_recommendations_analysis_id")
    op.drop_index("ix_analysis_results_analysis_id")
    op.drop_index("ix_analyses_evaluation_id")
    op.drop_index("ix_submissions_group_id")
    op.drop_index("ix_groups_evaluation_id")
    op.drop_index("ix_rubric_items_rubric_id")
    op.drop_index("ix_rubrics_evaluation_id")

    op.drop_table("recommendations")
    op.drop_table("analysis_results")
    op.drop_table("analyses")
    op.drop_table("submissions")
    op.drop_table("groups")
    op.drop_table("rubric_items")
    op.drop_table("rubrics")
    op.drop_table("evaluations")
