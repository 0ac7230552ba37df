"""Pytest fixtures for rubricate tests.

Database tests run against an in-memory SQLite database built from the table
metadata, one fresh database per test. Sessions are created with
``autobegin=False`` like the production session provider, so tests wrap
their reads and writes in ``with db_session.begin():`` blocks.

Usage:
    def test_get_evaluation(db_session: Session, evaluation_factory):
        evaluation = evaluation_factory(title="Midterm project")
"""

from __future__ import annotations

import datetime
import os
import typing as t
from pathlib import Path

import pydantic as p
import pytest
import sqlalchemy
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import rubricate
from rubricate.core import RubricateContainer, TimestampProvider
from rubricate.model import DeploymentEnvironment, Evaluation, EvaluationAggregate, Group, Submission
from rubricate.storage import evaluation as evaluation_storage
from rubricate.storage import group as group_storage
from rubricate.storage import rubric as rubric_storage
from rubricate.storage import submission as submission_storage
from rubricate.storage.object import LocalObjectStore
from rubricate.storage.rubric import RubricItemCreateParams
from rubricate.storage.table import base


def _escape_pdf_text(s: str) -> str:
    return s.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(*pages: str, title: str | None = None) -> bytes:
    """Build a small, valid PDF with one text page per argument.

    Lines of a page become separate text lines, so extracted text keeps the
    page's line breaks.
    """
    objects: list[bytes] = []
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{i} 0 R" for i in page_ids)

    objects.append(b"<< /Type /Catalog /Pages 2 0 R >>")
    objects.append(f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode("latin-1"))
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")
    for page_id, text in zip(page_ids, pages):
        ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
        ops += [f"({_escape_pdf_text(line)}) Tj T*" for line in text.split("\n")]
        ops.append("ET")
        stream = "\n".join(ops).encode("latin-1")
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>"
            ).encode("latin-1")
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    info_id = None
    if title is not None:
        objects.append(f"<< /Title ({_escape_pdf_text(title)}) >>".encode("latin-1"))
        info_id = len(objects)

    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset

    trailer = b"<< /Size %d /Root 1 0 R" % (len(objects) + 1)
    if info_id is not None:
        trailer += b" /Info %d 0 R" % info_id
    trailer += b" >>"
    out += b"trailer\n" + trailer + b"\nstartxref\n%d\n%%%%EOF\n" % xref
    return bytes(out)


@pytest.fixture
def pdf_factory() -> t.Callable[..., bytes]:
    """Provide the PDF builder; call it with one string per page."""
    return build_pdf


@pytest.fixture(scope="session")
def container() -> t.Generator[RubricateContainer]:
    """Boot the DI container for the test session.

    Uses the Test environment, so configuration is read from config/ with
    config/env.d/test/ merged over it.
    """
    ct = RubricateContainer()
    root = Path(os.path.dirname(rubricate.__file__)).parent

    RubricateContainer.boot(
        ct,
        debug=True,
        env=DeploymentEnvironment.Test,
        config_root=p.FileUrl(f"file://{root}/config"),
        override=(),
    )

    yield ct

    ct.shutdown_resources()


@pytest.fixture
def engine() -> t.Generator[sqlalchemy.Engine]:
    """A fresh in-memory SQLite database with every table created."""
    engine = sqlalchemy.create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @sqlalchemy.event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_conn: t.Any, _: t.Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine: sqlalchemy.Engine) -> t.Generator[Session]:
    """Provide a database session configured like the production provider."""
    session = Session(bind=engine, autobegin=False, expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def object_store(tmp_path: Path) -> LocalObjectStore:
    """An object store rooted in the test's temporary directory."""
    return LocalObjectStore(tmp_path / "objects")


@pytest.fixture
def utcnow() -> TimestampProvider:
    """Provide a timestamp provider for tests."""
    return lambda: datetime.datetime.now(datetime.UTC)


@pytest.fixture
def evaluation_factory(db_session: Session) -> t.Callable[..., EvaluationAggregate]:
    """Factory fixture creating an evaluation with one rubric and its items.

    Usage:
        def test_something(evaluation_factory):
            aggregate = evaluation_factory(items=[("Structure", 5.0), ("Content", 15.0)])
    """

    def create_evaluation(
        title: str = "Final Project",
        items: t.Sequence[tuple[str, float]] = (("Structure", 5.0), ("Content", 15.0)),
        rubric_title: str = "Final Project Rubric",
        document_url: str | None = None,
        group_count: int = 0,
    ) -> EvaluationAggregate:
        with db_session.begin():
            evaluation = evaluation_storage.create(title=title, group_count=group_count, session=db_session)
            rubric_storage.create(
                evaluation_id=evaluation.evaluation_id,
                title=rubric_title,
                document_url=document_url,
                items=[RubricItemCreateParams(title=name, max_score=score) for name, score in items],
                session=db_session,
            )
            aggregate = evaluation_storage.get_aggregate(evaluation.evaluation_id, session=db_session)
        assert aggregate is not None
        return aggregate

    return create_evaluation


@pytest.fixture
def test_evaluation(evaluation_factory: t.Callable[..., EvaluationAggregate]) -> Evaluation:
    """Provide a pre-created evaluation with a two-item rubric."""
    return evaluation_factory().evaluation


@pytest.fixture
def group_factory(db_session: Session, test_evaluation: Evaluation) -> t.Callable[..., Group]:
    """Factory fixture creating groups, by default in the test evaluation."""

    def create_group(
        code: str = "G1",
        name: str = "Group One",
        evaluation: Evaluation | None = None,
        student_count: int = 3,
    ) -> Group:
        evaluation = evaluation or test_evaluation
        with db_session.begin():
            return group_storage.create(
                evaluation_id=evaluation.evaluation_id,
                code=code,
                name=name,
                student_count=student_count,
                session=db_session,
            )

    return create_group


@pytest.fixture
def submission_factory(db_session: Session) -> t.Callable[..., Submission]:
    """Factory fixture recording a submission for a group."""

    def create_submission(
        group: Group,
        document_url: str,
        filename: str = "report.pdf",
        uploaded_at: datetime.datetime | None = None,
    ) -> Submission:
        with db_session.begin():
            return submission_storage.create(
                group_id=group.group_id,
                filename=filename,
                document_url=document_url,
                uploaded_at=uploaded_at or datetime.datetime.now(datetime.UTC),
                session=db_session,
            )

    return create_submission
