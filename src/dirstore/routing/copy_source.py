"""Parsing of the ``x-amz-copy-source`` request header."""

import urllib.parse
from dataclasses import dataclass


@dataclass(frozen=True)
class CopySource:
    """Source object named by a copy-source header."""

    bucket: str
    key: str

    @property
    def uri(self) -> str:
        return f"{self.bucket}/{self.key}"


def parse_copy_source(value: str | None) -> CopySource | None:
    """Parse a copy-source header value into a source bucket and key.

    Accepts both ``/bucket/key`` and ``bucket/key``. The value is
    percent-decoded first since SDKs URL-encode it.

    Args:
        value: The raw header value, or None when the header is absent.

    Returns:
        The parsed CopySource, or None for an absent or blank header.
    """
    if value is None or not value.strip():
        return None

    elts = urllib.parse.unquote(value.strip()).split("/")
    if elts[0] == "":
        elts = elts[1:]
    return CopySource(bucket=elts[0], key="/".join(elts[1:]))
