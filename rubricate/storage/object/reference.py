"""Parsing of textual storage references into a bucket and a key."""

from __future__ import annotations

import re
import urllib.parse

import pydantic as p

from rubricate.errors import InvalidReferenceError

# https://bucket.s3.us-east-1.amazonaws.com/key/with/slashes
VirtualHostedPattern = re.compile(r"^https://(?P<bucket>[^/]+?)\.s3\.(?P<region>[a-z0-9-]+)\.amazonaws\.com/(?P<key>.+)$")
# https://s3.us-east-1.amazonaws.com/bucket/key/with/slashes
PathStylePattern = re.compile(r"^https://s3\.(?P<region>[a-z0-9-]+)\.amazonaws\.com/(?P<bucket>[^/]+)/(?P<key>.+)$")
# s3://bucket/key/with/slashes, local://bucket/key, ...
SchemePattern = re.compile(r"^(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*)://(?P<bucket>[^/]+)/(?P<key>.+)$")

NonStorageSchemes = frozenset({"http", "https", "file"})


class ObjectReference(p.BaseModel):
    model_config = p.ConfigDict(frozen=True)

    bucket: str
    key: str

    def uri(self, scheme: str = "s3") -> str:
        return f"{scheme}://{self.bucket}/{self.key}"


def resolve_reference(reference: str) -> ObjectReference:
    """Resolve a storage reference to its bucket and key.

    Three forms are accepted and resolve identically for the same target: a
    scheme-prefixed ``scheme://bucket/key``, an S3 virtual-hosted HTTPS URL and
    an S3 path-style HTTPS URL. Keys of HTTPS forms are percent-decoded.

    Raises:
        InvalidReferenceError: the reference matches none of the forms
    """
    for pattern in (PathStylePattern, VirtualHostedPattern):
        if match := pattern.match(reference):
            return ObjectReference(bucket=match["bucket"], key=urllib.parse.unquote(match["key"]))

    if (match := SchemePattern.match(reference)) and match["scheme"].lower() not in NonStorageSchemes:
        return ObjectReference(bucket=match["bucket"], key=match["key"])

    raise InvalidReferenceError(reference)
