"""CLI commands for managing evaluations and their rubrics."""

from __future__ import annotations

import asyncio
from pathlib import Path

import rubricate.lib.cli as click
from rubricate.lib.util import format_score
from rubricate.model import EvaluationAggregate, EvaluationID
from rubricate.service import evaluation as evaluation_service
from rubricate.service.evaluation import RubricDocument
from rubricate.storage.rubric import RubricItemCreateParams


class RubricItemParamType(click.ParamType):
    """rubric items written as TITLE[:MAX_SCORE[:CONDITIONS]]"""

    name = "ITEM"

    def convert(
        self, value: str | RubricItemCreateParams, param: click.Parameter | None, ctx: click.Context | None
    ) -> RubricItemCreateParams:
        if isinstance(value, RubricItemCreateParams):
            return value

        title, *rest = [s.strip() for s in value.split(":", 2)]
        if not title:
            self.fail("item title is empty", param, ctx)
        params: dict[str, str | float] = {"title": title}
        if rest:
            try:
                params["max_score"] = float(rest[0])
            except ValueError:
                self.fail(f"{rest[0]!r} is not a score", param, ctx)
        if len(rest) > 1 and rest[1]:
            params["conditions"] = rest[1]
        return RubricItemCreateParams.model_validate(params)


def echo_evaluation(aggregate: EvaluationAggregate) -> None:
    evaluation = aggregate.evaluation
    click.echo(f"Evaluation: {evaluation.title}")
    click.echo(f"  ID: {evaluation.evaluation_id}")
    if evaluation.description:
        click.echo(f"  Description: {evaluation.description}")
    click.echo(f"  Groups expected: {evaluation.group_count}")
    for rubric in aggregate.rubrics:
        click.echo(f"  Rubric: {rubric.title} ({rubric.rubric_id})")
        if rubric.document_url:
            click.echo(f"    Document: {rubric.document_url}")
        for item in rubric.items:
            click.echo(f"    {item.order_index}. {item.title} (max score: {format_score(item.max_score)})")
    for group in aggregate.groups:
        latest = group.latest_submission
        received = f"{latest.filename} [{latest.status.value}]" if latest else "no submission"
        click.echo(f"  Group {group.code}: {group.name} ({group.group_id}), {received}")


@click.group("evaluation")
def evaluation():
    """Manage evaluations and their rubrics."""
    ...


@evaluation.command("create")
@click.argument("title")
@click.option("--description", "-d", help="free-text description of the evaluation")
@click.option("--groups", "-g", "group_count", type=int, default=0, help="number of groups expected to submit")
@click.option("--owner", help="name or email of the educator who owns the evaluation")
@click.option("--item", "-i", "items", type=RubricItemParamType(), multiple=True, help="rubric item to add")
@click.option(
    "--rubric",
    "-r",
    "rubric_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="rubric PDF to upload",
)
def evaluation_create(
    title: str,
    description: str | None,
    group_count: int,
    owner: str | None,
    items: tuple[RubricItemCreateParams, ...],
    rubric_path: Path | None,
) -> None:
    """Create an evaluation titled TITLE with its primary rubric."""
    document = RubricDocument(filename=rubric_path.name, data=rubric_path.read_bytes()) if rubric_path else None
    aggregate = asyncio.run(
        evaluation_service.create_evaluation(
            title=title,
            description=description,
            group_count=group_count,
            owner=owner,
            items=items,
            rubric_document=document,
        )
    )
    echo_evaluation(aggregate)


@evaluation.command("show")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
def evaluation_show(evaluation_id: EvaluationID) -> None:
    """Show an evaluation with its rubric and groups."""
    echo_evaluation(evaluation_service.get_evaluation(evaluation_id))


@evaluation.command("add-items")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
@click.argument("items", type=RubricItemParamType(), nargs=-1, required=True)
def evaluation_add_items(evaluation_id: EvaluationID, items: tuple[RubricItemCreateParams, ...]) -> None:
    """Append ITEMS to the primary rubric of an evaluation."""
    echo_evaluation(evaluation_service.update_evaluation(evaluation_id, additional_items=items))


@evaluation.command("delete")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
@click.confirmation_option(prompt="Delete the evaluation with all its groups and analyses?")
def evaluation_delete(evaluation_id: EvaluationID) -> None:
    evaluation_service.delete_evaluation(evaluation_id)
    click.echo(f"Deleted evaluation {evaluation_id}")
