"""Object storage for submitted and rubric documents."""

from .reference import ObjectReference, resolve_reference
from .store import LocalObjectStore, ObjectInfo, ObjectStore, S3ObjectStore

__all__ = [
    "LocalObjectStore",
    "ObjectInfo",
    "ObjectReference",
    "ObjectStore",
    "S3ObjectStore",
    "resolve_reference",
]
