"""PDF documents: locating, extracting and preparing their text."""

__all__ = [
    "DocumentLocator",
    "ExtractedDocument",
    "TextExtractor",
    "TRUNCATION_MARKER",
    "check_document",
    "clean",
    "split",
    "truncate",
]

from .extract import check_document, ExtractedDocument, TextExtractor
from .locate import DocumentLocator
from .text import clean, split, truncate, TRUNCATION_MARKER
