import pydantic as p

from .base import BaseSettings

MiB = 1024 * 1024


class AnalysisSettings(BaseSettings):
    """Limits applied by the analysis pipeline."""

    # simultaneous group analyses (and so provider calls) per evaluation run
    concurrency: int = p.Field(default=4, ge=1)
    max_document_bytes: int = 10 * MiB
    # document text budget for a single prompt, at ~4 characters per token
    max_document_tokens: int = 100_000
    chunk_size: int = p.Field(default=10_000, ge=1)
    default_max_score: float = 20.0
