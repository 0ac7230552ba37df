"""CLI commands for managing groups and their submissions."""

from __future__ import annotations

import asyncio
import posixpath
from pathlib import Path

import pydantic as p

import rubricate.lib.cli as click
from rubricate.model import EvaluationID, GroupID
from rubricate.service import group as group_service


@click.group("group")
def group():
    """Manage the groups of an evaluation."""
    ...


@group.command("create")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
@click.argument("code")
@click.argument("name")
@click.option("--students", "-n", "student_count", type=int, default=0, help="number of students in the group")
def group_create(evaluation_id: EvaluationID, code: str, name: str, student_count: int) -> None:
    """Register group CODE, named NAME, for an evaluation."""
    created = group_service.create_group(evaluation_id, code=code, name=name, student_count=student_count)
    click.echo(f"Created group: {created.name}")
    click.echo(f"  ID: {created.group_id}")
    click.echo(f"  Code: {created.code}")


@group.command("submit")
@click.argument("group_id", type=click.KeyParamType(GroupID))
@click.argument("document", type=click.URIParamType())
def group_submit(group_id: GroupID, document: p.AnyUrl) -> None:
    """Record DOCUMENT as the group's latest submission.

    DOCUMENT is a local PDF, which is uploaded to object storage, or a
    reference to one already stored (s3://bucket/key or an S3 https URL).
    """
    if document.scheme == "file":
        assert document.path is not None
        path = Path(document.path)
        target = group_service.get_group(group_id)
        filename = path.name
        document_url = asyncio.run(group_service.upload_submission_document(target, filename, path.read_bytes()))
    else:
        filename = posixpath.basename(document.path or "") or str(document)
        document_url = str(document)

    submission = group_service.create_submission(group_id, filename=filename, document_url=document_url)
    click.echo(f"Received submission {submission.submission_id}")
    click.echo(f"  File: {submission.filename}")
    click.echo(f"  Stored at: {submission.document_url}")


@group.command("recommendations")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
def group_recommendations(evaluation_id: EvaluationID) -> None:
    """List each group's recommendations from the latest analysis."""
    for entry in group_service.find_group_recommendations(evaluation_id):
        click.echo(f"Group {entry.group.code}: {entry.group.name}")
        if not entry.recommendations:
            click.echo("  (none)")
        for recommendation in entry.recommendations:
            click.echo(f"  [{recommendation.priority}] {recommendation.summary}")
            click.echo(f"      {recommendation.details}")
