from __future__ import annotations

import typing as t
from pathlib import Path

import pydantic as p

from .base import BaseSettings


class ObjectSettings(BaseSettings):
    """Object storage for submissions and rubric documents."""

    backend: t.Literal["local", "s3"] = "local"
    # default bucket for uploads; references name their own bucket
    bucket: str = "rubricate"
    # relative paths are resolved against the project root
    local_path: Path = Path("var/objects")
    s3_region: str | None = None
    s3_endpoint_url: p.HttpUrl | None = None


class PostgresqlSettings(BaseSettings):
    host: p.IPvAnyAddress | str | None = None
    port: int = 5432
    database: str
    driver: t.Literal["postgresql+psycopg"] = "postgresql+psycopg"


class PersistentSettings(BaseSettings):
    postgresql: PostgresqlSettings


class StorageSettings(BaseSettings):
    persistent: PersistentSettings
    object: ObjectSettings = p.Field(default_factory=ObjectSettings)
