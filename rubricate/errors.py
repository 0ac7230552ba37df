"""Exceptions raised by the analysis pipeline and its collaborators."""

from __future__ import annotations


class RubricateError(Exception):
    """Base class for pipeline errors."""

    pass


class InvalidReferenceError(RubricateError):
    """A storage reference matches none of the accepted forms."""

    def __init__(self, reference: str):
        super().__init__(f"invalid storage reference: {reference!r}")
        self.reference = reference


class NotFoundError(RubricateError):
    """An evaluation, group, analysis, object, key or bucket does not exist."""

    pass


class PayloadTooLargeError(RubricateError):
    """A document exceeds the size ceiling."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"document is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


class InvalidFormatError(RubricateError):
    """Document content does not start with the PDF magic marker."""

    pass


class CorruptDocumentError(RubricateError):
    """The PDF parser could not read a document."""

    pass


class ProviderError(RubricateError):
    """A model provider call failed or timed out."""

    def __init__(self, message: str, *, cause: BaseException):
        super().__init__(message)
        self.cause = cause


class SchemaParseError(RubricateError):
    """A structured model response did not validate against its schema."""

    pass


class PersistenceError(RubricateError):
    """A storage-layer write failed."""

    pass
