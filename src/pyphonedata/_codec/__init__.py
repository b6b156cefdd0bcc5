"""Prefix map codec: interning, delta/varint keys, gzip + base64 framing."""

from __future__ import annotations

from pyphonedata._codec.blob import pack_blob, unpack_blob
from pyphonedata._codec.prefix_map import (
    PrefixMapCodec,
    PrefixMapKind,
    build_intern_table,
    decode_prefix_map,
    decode_single_prefix_map,
    encode_prefix_map,
    encode_single_prefix_map,
)
from pyphonedata._codec.varint import decode_uvarint, encode_uvarint

__all__ = [
    "PrefixMapCodec",
    "PrefixMapKind",
    "build_intern_table",
    "decode_prefix_map",
    "decode_single_prefix_map",
    "decode_uvarint",
    "encode_prefix_map",
    "encode_single_prefix_map",
    "encode_uvarint",
    "pack_blob",
    "unpack_blob",
]
