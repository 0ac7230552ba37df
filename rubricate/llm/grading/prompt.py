"""Prompt assembly for rubric grading and document analysis."""

from __future__ import annotations

import asyncio
import logging
import re
import typing as t

import jinja2
import pydantic as p

from rubricate.document import clean, DocumentLocator, TextExtractor
from rubricate.model import RubricWithItems

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCORE = 20.0

# the leading number of the run of digits and dots; "2.5." reads as 2.5 and "..." as nothing
_MAX_SCORE_PATTERN = re.compile(r"max score:\s*(?=[\d.])(\d+(?:\.\d+)?|\.\d+)?", re.IGNORECASE)


class GroupPrompt(p.BaseModel):
    model_config = p.ConfigDict(frozen=True)

    system: str
    user: str


def compute_max_score(rubric_context: str, default: float = DEFAULT_MAX_SCORE) -> float:
    """Sum every ``max score: N`` in a rubric context; ``default`` when there is none."""
    matches = _MAX_SCORE_PATTERN.findall(rubric_context)
    if not matches:
        return default
    return float(sum(float(match) for match in matches if match))


def render_template(env: jinja2.Environment, template_name: str, **context: t.Any) -> str:
    """Render a prompt template, dropping the template's trailing whitespace."""
    return env.get_template(template_name).render(**context).strip()


class PromptAssembler(object):
    """Builds the prompts sent to the model.

    Rubric contexts embed the text of any rubric source document, which is
    located and extracted on demand.
    """

    def __init__(self, env: jinja2.Environment, locator: DocumentLocator, extractor: TextExtractor) -> None:
        self.env = env
        self.locator = locator
        self.extractor = extractor

    async def _rubric_document_text(self, rubric: RubricWithItems) -> str | None:
        if not rubric.document_url:
            return None
        try:
            data = await self.locator.fetch_bytes(rubric.document_url)
            document = await asyncio.to_thread(self.extractor.extract, data)
        except Exception:
            logger.exception(
                "could not read rubric document, omitting it",
                extra={"rubric_id": str(rubric.rubric_id), "reference": rubric.document_url},
            )
            return None
        return clean(document.text)

    async def build_rubric_context(self, rubrics: t.Sequence[RubricWithItems]) -> str:
        """Describe the rubrics of an evaluation, in order, for the grading prompt."""
        sections: list[dict[str, t.Any]] = []
        for rubric in rubrics:
            sections.append({
                "title": rubric.title,
                "document_text": await self._rubric_document_text(rubric),
                "criteria": sorted(rubric.items, key=lambda item: item.order_index),
            })
        return render_template(self.env, "grading/rubric_context.j2", rubrics=sections)

    def build_group_prompt(
        self,
        *,
        evaluation_title: str,
        rubric_context: str,
        group_code: str,
        group_name: str,
        document_text: str,
        max_score: float,
    ) -> GroupPrompt:
        """Build the system and user prompts grading one group's document."""
        return GroupPrompt(
            system=render_template(self.env, "grading/system.j2", max_score=max_score),
            user=render_template(
                self.env,
                "grading/group.j2",
                evaluation_title=evaluation_title,
                rubric_context=rubric_context,
                max_score=max_score,
                group_code=group_code,
                group_name=group_name,
                document_text=document_text,
            ),
        )

    def build_document_prompt(self, *, document_name: str, text: str, instruction: str) -> str:
        return render_template(
            self.env, "document/analyze.j2", document_name=document_name, text=text, instruction=instruction
        )

    def build_chunk_prompt(self, *, document_name: str, index: int, total: int, chunk: str, instruction: str) -> str:
        """Build the prompt for part ``index`` (1-based) of ``total``."""
        return render_template(
            self.env,
            "document/chunk.j2",
            document_name=document_name,
            index=index,
            total=total,
            chunk=chunk,
            instruction=instruction,
        )
