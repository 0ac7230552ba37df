"""CLI commands for running and reading evaluation analyses."""

from __future__ import annotations

import asyncio

import rubricate.lib.cli as click
from rubricate.core import di
from rubricate.lib.util import format_score
from rubricate.llm.grading import EvaluationOrchestrator
from rubricate.model import AnalysisID, EvaluationID, GroupID, ProviderType


def provider_options(fn):
    fn = click.option("--notes", help="free-text notes stored with the analysis")(fn)
    fn = click.option("--model", "-m", help="model name overriding the configured one")(fn)
    fn = click.option("--provider", "-p", type=click.EnumType(ProviderType), help="model provider")(fn)
    return fn


@click.group("analysis")
def analysis():
    """Grade group submissions against an evaluation's rubric."""
    ...


@analysis.command("run")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
@provider_options
@di.inject
def analysis_run(
    evaluation_id: EvaluationID,
    provider: ProviderType | None,
    model: str | None,
    notes: str | None,
    orchestrator: EvaluationOrchestrator = di.Provide["analysis.orchestrator"],
) -> None:
    """Grade the latest submission of every group of an evaluation."""
    outcome = asyncio.run(
        orchestrator.analyze_evaluation(evaluation_id, provider=provider, model=model, notes=notes)
    )
    click.echo(outcome.message)
    click.echo(f"  Analysis ID: {outcome.analysis_id}")
    if outcome.failed:
        raise SystemExit(1)


@analysis.command("group")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
@click.argument("group_id", type=click.KeyParamType(GroupID))
@provider_options
@di.inject
def analysis_group(
    evaluation_id: EvaluationID,
    group_id: GroupID,
    provider: ProviderType | None,
    model: str | None,
    notes: str | None,
    orchestrator: EvaluationOrchestrator = di.Provide["analysis.orchestrator"],
) -> None:
    """Grade a single group's latest submission."""
    outcome = asyncio.run(
        orchestrator.analyze_group(evaluation_id, group_id, provider=provider, model=model, notes=notes)
    )
    click.echo(outcome.message)
    click.echo(f"  Analysis ID: {outcome.analysis_id}")


@analysis.command("show")
@click.argument("analysis_id", type=click.KeyParamType(AnalysisID))
@di.inject
def analysis_show(
    analysis_id: AnalysisID,
    orchestrator: EvaluationOrchestrator = di.Provide["analysis.orchestrator"],
) -> None:
    """Show the results and recommendations of an analysis."""
    report = orchestrator.get_analysis_report(analysis_id)
    a = report.analysis
    click.echo(f"Analysis {a.analysis_id} [{a.state.value}]")
    click.echo(f"  Engine: {a.engine}")
    click.echo(f"  Started: {a.started_at.isoformat()}")
    if a.ended_at:
        click.echo(f"  Ended: {a.ended_at.isoformat()}")
    if a.notes:
        click.echo(f"  Notes: {a.notes}")

    for result in report.results:
        max_score = format_score(result.max_score) if result.max_score is not None else "?"
        click.echo(f"  Group {result.group_id}: {format_score(result.score)}/{max_score} [{result.status.value}]")
        for criterion in result.criteria:
            click.echo(
                f"    - {criterion.criterion_name}: {format_score(criterion.score)}/"
                f"{format_score(criterion.max_score)} ({criterion.level.value})"
            )
        recommendations = [r for r in report.recommendations if r.group_id == result.group_id]
        for recommendation in recommendations:
            click.echo(f"    [{recommendation.priority}] {recommendation.summary}")
