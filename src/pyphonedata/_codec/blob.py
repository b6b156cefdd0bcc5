"""gzip + base64 wrapping for payloads embedded in text transports."""

from __future__ import annotations

import base64
import binascii
import gzip
import zlib

from pyphonedata.exceptions import CorruptEncodingError


def pack_blob(data: bytes) -> str:
    """Compress *data* and return it as base64 text.

    The gzip header timestamp is pinned to zero so identical input always
    yields identical output.
    """
    compressed = gzip.compress(data, mtime=0)
    return base64.b64encode(compressed).decode("ascii")


def unpack_blob(blob: str | bytes) -> bytes:
    """Reverse :func:`pack_blob`."""
    try:
        compressed = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CorruptEncodingError(f"invalid base64 in blob: {exc}") from exc
    try:
        return gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as exc:
        raise CorruptEncodingError(f"invalid gzip stream in blob: {exc}") from exc
