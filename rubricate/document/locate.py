"""Resolution of stored-document references to bytes."""

from __future__ import annotations

import logging
import mimetypes
import urllib.parse
import urllib.request
from pathlib import Path

from rubricate.errors import NotFoundError, PayloadTooLargeError
from rubricate.storage.object import ObjectInfo, ObjectStore, resolve_reference

from .extract import check_document, MAX_DOCUMENT_BYTES

logger = logging.getLogger(__name__)


def local_path(reference: str) -> Path | None:
    """The filesystem path a reference names, or None when it names a stored object."""
    if reference.startswith("file://"):
        parsed = urllib.parse.urlparse(reference)
        return Path(urllib.request.url2pathname(parsed.path))
    if Path(reference).is_absolute():
        return Path(reference)
    return None


class DocumentLocator(object):
    """Fetches documents named by a local path or a storage reference.

    Storage references are anything ``resolve_reference`` accepts; they are
    read from the configured object store regardless of the bucket they name.
    """

    def __init__(self, store: ObjectStore, max_size: int = MAX_DOCUMENT_BYTES) -> None:
        self.store = store
        self.max_size = max_size

    async def fetch_bytes(self, reference: str) -> bytes:
        """Read a document and check it is an acceptably sized PDF.

        Raises:
            InvalidReferenceError: the reference is neither a path nor a storage reference
            NotFoundError: the file, bucket or key does not exist
            PayloadTooLargeError: the document exceeds the size ceiling
            InvalidFormatError: the document is not a PDF
        """
        if (path := local_path(reference)) is not None:
            data = self._read_file(path)
        else:
            ref = resolve_reference(reference)
            data = await self.store.fetch(ref.bucket, ref.key, limit=self.max_size)

        check_document(data, self.max_size)
        return data

    def _read_file(self, path: Path) -> bytes:
        if not path.is_file():
            raise NotFoundError(f"file {str(path)!r} does not exist")

        size = path.stat().st_size
        if size > self.max_size:
            raise PayloadTooLargeError(size, self.max_size)
        return path.read_bytes()

    async def describe(self, reference: str) -> ObjectInfo:
        """Probe a document without reading it."""
        if (path := local_path(reference)) is not None:
            if not path.is_file():
                return ObjectInfo(exists=False)
            content_type, _ = mimetypes.guess_type(path.name)
            return ObjectInfo(exists=True, size=path.stat().st_size, content_type=content_type)

        ref = resolve_reference(reference)
        return await self.store.head(ref.bucket, ref.key)

    async def discard(self, reference: str) -> None:
        """Delete a processed upload; failures are logged, never raised."""
        try:
            if (path := local_path(reference)) is not None:
                path.unlink(missing_ok=True)
            else:
                ref = resolve_reference(reference)
                await self.store.delete(ref.bucket, ref.key)
        except Exception:
            logger.exception("could not discard document", extra={"reference": reference})
        else:
            logger.debug("discarded document", extra={"reference": reference})
