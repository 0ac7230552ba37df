"""CLI commands for inspecting and analyzing standalone PDF documents."""

from __future__ import annotations

import asyncio
import posixpath

import pydantic as p

import rubricate.lib.cli as click
from rubricate.core import di
from rubricate.document import clean, DocumentLocator, split, TextExtractor
from rubricate.llm import estimate_tokens
from rubricate.llm.grading import EvaluationOrchestrator
from rubricate.model import ProviderType

DefaultInstruction = "Summarize the document and assess the quality of its content."


def document_name(document: p.AnyUrl) -> str:
    return posixpath.basename(document.path or "") or str(document)


@click.group("document")
def document():
    """Extract and analyze PDF documents outside of an evaluation."""
    ...


@document.command("info")
@click.argument("reference", type=click.URIParamType())
@di.inject
def document_info(
    reference: p.AnyUrl,
    locator: DocumentLocator = di.Provide["analysis.locator"],
    extractor: TextExtractor = di.Provide["analysis.extractor"],
) -> None:
    """Show the size, pages and metadata of the PDF at REFERENCE."""
    data = asyncio.run(locator.fetch_bytes(str(reference)))
    extracted = extractor.extract(data)
    text = clean(extracted.text)
    click.echo(f"Document: {document_name(reference)}")
    click.echo(f"  Size: {len(data)} bytes")
    click.echo(f"  Pages: {extracted.page_count}")
    click.echo(f"  PDF version: {extracted.metadata.get('version', 'unknown')}")
    click.echo(f"  Characters: {len(text)} (~{estimate_tokens(text)} tokens)")
    for key, value in sorted(extracted.info.items()):
        click.echo(f"  {key}: {value}")


@document.command("analyze")
@click.argument("reference", type=click.URIParamType())
@click.option("--instruction", "-i", default=DefaultInstruction, show_default=True)
@click.option("--provider", "-p", type=click.EnumType(ProviderType), help="model provider")
@click.option("--model", "-m", help="model name overriding the configured one")
@di.inject
def document_analyze(
    reference: p.AnyUrl,
    instruction: str,
    provider: ProviderType | None,
    model: str | None,
    locator: DocumentLocator = di.Provide["analysis.locator"],
    orchestrator: EvaluationOrchestrator = di.Provide["analysis.orchestrator"],
) -> None:
    """Analyze the PDF at REFERENCE with one model call."""

    async def run():
        data = await locator.fetch_bytes(str(reference))
        return await orchestrator.analyze_document(
            data, document_name=document_name(reference), instruction=instruction, provider=provider, model=model
        )

    result = asyncio.run(run())
    click.echo(f"Document: {result.document_name} ({result.page_count} pages, ~{result.estimated_tokens} tokens)")
    click.echo()
    click.echo(result.response)


@document.command("chunks")
@click.argument("reference", type=click.URIParamType())
@click.option("--instruction", "-i", default=DefaultInstruction, show_default=True)
@click.option("--chunk-size", "-n", type=click.IntRange(min=1), help="characters per chunk")
@click.option("--provider", "-p", type=click.EnumType(ProviderType), help="model provider")
@click.option("--model", "-m", help="model name overriding the configured one")
@click.option("--dry-run", is_flag=True, default=False, help="only show how the text would be split")
@di.inject
def document_chunks(
    reference: p.AnyUrl,
    instruction: str,
    chunk_size: int | None,
    provider: ProviderType | None,
    model: str | None,
    dry_run: bool,
    locator: DocumentLocator = di.Provide["analysis.locator"],
    extractor: TextExtractor = di.Provide["analysis.extractor"],
    orchestrator: EvaluationOrchestrator = di.Provide["analysis.orchestrator"],
) -> None:
    """Analyze the PDF at REFERENCE part by part, one model call per chunk."""
    data = asyncio.run(locator.fetch_bytes(str(reference)))
    if dry_run:
        chunks = split(clean(extractor.extract(data).text), chunk_size or orchestrator.chunk_size)
        for i, chunk in enumerate(chunks, 1):
            click.echo(f"Part {i} of {len(chunks)}: {len(chunk)} characters")
        return

    result = asyncio.run(
        orchestrator.analyze_in_chunks(
            data,
            document_name=document_name(reference),
            instruction=instruction,
            chunk_size=chunk_size,
            provider=provider,
            model=model,
        )
    )
    for response in result.responses:
        click.echo(click.style(f"Part {response.chunk_index} of {response.total_chunks}", bold=True))
        click.echo(response.response)
        click.echo()
