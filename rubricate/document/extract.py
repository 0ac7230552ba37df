"""PDF text extraction."""

from __future__ import annotations

import io
import logging
import typing as t

import pydantic as p
from pypdf import PdfReader
from pypdf.generic import PdfObject

from rubricate.errors import CorruptDocumentError, InvalidFormatError, PayloadTooLargeError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
MAX_DOCUMENT_BYTES = 10 * 1024 * 1024


class ExtractedDocument(p.BaseModel):
    model_config = p.ConfigDict(frozen=True)

    text: str
    page_count: int
    # document information dictionary, keys without the leading slash
    info: dict[str, str] = {}
    metadata: dict[str, t.Any] = {}


def check_document(data: bytes, max_size: int = MAX_DOCUMENT_BYTES) -> None:
    """Reject documents over the size ceiling or without the PDF magic bytes.

    Raises:
        PayloadTooLargeError: ``data`` is larger than ``max_size``
        InvalidFormatError: ``data`` does not start with ``%PDF-``
    """
    if len(data) > max_size:
        raise PayloadTooLargeError(len(data), max_size)
    if data[: len(PDF_MAGIC)] != PDF_MAGIC:
        raise InvalidFormatError("document is not a PDF")


class TextExtractor(object):
    """Turns PDF bytes into plain text, one page per line block."""

    def __init__(self, max_size: int = MAX_DOCUMENT_BYTES) -> None:
        self.max_size = max_size

    def extract(self, data: bytes) -> ExtractedDocument:
        """Extract the text, page count and document information of a PDF.

        Raises:
            PayloadTooLargeError: the document exceeds the size ceiling
            InvalidFormatError: the document is not a PDF
            CorruptDocumentError: the parser could not read the document
        """
        check_document(data, self.max_size)

        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages]
            info = {
                str(key).lstrip("/"): str(value.get_object() if isinstance(value, PdfObject) else value)
                for key, value in (reader.metadata or {}).items()
            }
            metadata: dict[str, t.Any] = {
                "version": reader.pdf_header.removeprefix("%PDF-"),
                "encrypted": reader.is_encrypted,
            }
        except Exception as e:
            # pypdf surfaces malformed input as a range of exception types
            raise CorruptDocumentError(f"could not parse document: {e}") from e

        logger.debug("extracted document text", extra={"pages": len(pages), "size": len(data)})
        return ExtractedDocument(text="\n".join(pages), page_count=len(pages), info=info, metadata=metadata)
