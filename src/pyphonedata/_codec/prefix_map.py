"""Compact binary codec for integer-prefix → string maps.

Blob layout before compression (all integers little-endian):

    uint32      length of the value block
    bytes       value block: distinct values, sorted, joined with ``\\n``
    uint32      number of keys
    entries     one per key, ascending by key:
                  uvarint   key minus the previous key (first key is absolute)
                  MULTI:    uint8 value count, then that many uint16 indices
                  SINGLE:   one uint16 index

Indices refer to positions in the sorted value block. The serialized
bytes are gzip-compressed and base64-encoded (see :mod:`._codec.blob`).
"""

from __future__ import annotations

import struct
from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum

from pyphonedata._codec.blob import pack_blob, unpack_blob
from pyphonedata._codec.varint import decode_uvarint, encode_uvarint
from pyphonedata._constants import MAX_INTERN_VALUES, MAX_VALUES_PER_KEY, VALUE_SEPARATOR
from pyphonedata.exceptions import CorruptEncodingError, InvalidPrefixMapError, TooManyValuesError

_U32 = struct.Struct("<I")
_U16 = struct.Struct("<H")
_MAX_KEY = 1 << 64


class PrefixMapKind(StrEnum):
    """Entry shape of an encoded prefix map."""

    MULTI = "multi"
    SINGLE = "single"


def build_intern_table(values: Iterable[str]) -> list[str]:
    """Return the sorted distinct *values*.

    Raises :class:`TooManyValuesError` when the table cannot be addressed
    with a 16-bit index.
    """
    table = sorted(set(values))
    if len(table) > MAX_INTERN_VALUES:
        raise TooManyValuesError(len(table), MAX_INTERN_VALUES)
    return table


def _check_entry(key: int, values: Sequence[str], kind: PrefixMapKind) -> None:
    if isinstance(key, bool) or not isinstance(key, int) or not 0 <= key < _MAX_KEY:
        raise InvalidPrefixMapError(f"prefix must be an int in [0, 2**64), got {key!r}")
    if not values:
        raise InvalidPrefixMapError(f"prefix {key} has no values")
    if kind is PrefixMapKind.MULTI and len(values) > MAX_VALUES_PER_KEY:
        raise InvalidPrefixMapError(f"prefix {key} has {len(values)} values, limit is {MAX_VALUES_PER_KEY}")
    for value in values:
        if not isinstance(value, str) or not value:
            raise InvalidPrefixMapError(f"prefix {key} has an empty or non-string value: {value!r}")
        if VALUE_SEPARATOR in value:
            raise InvalidPrefixMapError(f"prefix {key} value contains a line break: {value!r}")


def _serialize(entries: Mapping[int, Sequence[str]], kind: PrefixMapKind) -> bytes:
    for key, values in entries.items():
        _check_entry(key, values, kind)

    table = build_intern_table(v for values in entries.values() for v in values)
    index = {value: i for i, value in enumerate(table)}

    out = bytearray()
    joined = VALUE_SEPARATOR.join(table).encode("utf-8")
    out += _U32.pack(len(joined))
    out += joined
    out += _U32.pack(len(entries))

    last = 0
    for key in sorted(entries):
        out += encode_uvarint(key - last)
        values = entries[key]
        if kind is PrefixMapKind.MULTI:
            out.append(len(values))
        # Per-key order is kept as given; only the intern table is sorted.
        for value in values:
            out += _U16.pack(index[value])
        last = key
    return bytes(out)


class _Reader:
    """Bounds-checked cursor over a decompressed prefix map."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self._data):
            raise CorruptEncodingError(f"need {size} bytes at offset {self.offset}, only {len(self._data) - self.offset} left")
        chunk = self._data[self.offset : end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int(_U16.unpack(self.take(2))[0])

    def u32(self) -> int:
        return int(_U32.unpack(self.take(4))[0])

    def uvarint(self) -> int:
        value, self.offset = decode_uvarint(self._data, self.offset)
        return value

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset


def _deserialize(data: bytes, kind: PrefixMapKind) -> dict[int, list[str]]:
    reader = _Reader(data)

    block = reader.take(reader.u32())
    try:
        text = block.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptEncodingError(f"value block is not valid UTF-8: {exc}") from exc
    table = text.split(VALUE_SEPARATOR) if text else []

    def resolve(idx: int) -> str:
        if idx >= len(table):
            raise CorruptEncodingError(f"value index {idx} out of range for intern table of size {len(table)}")
        return table[idx]

    count = reader.u32()
    result: dict[int, list[str]] = {}
    key = 0
    for position in range(count):
        delta = reader.uvarint()
        if position > 0 and delta == 0:
            raise CorruptEncodingError(f"repeated prefix {key} at entry {position}")
        key += delta
        if kind is PrefixMapKind.MULTI:
            n = reader.u8()
            if n == 0:
                raise CorruptEncodingError(f"prefix {key} has zero values")
            result[key] = [resolve(reader.u16()) for _ in range(n)]
        else:
            result[key] = [resolve(reader.u16())]

    if reader.remaining:
        raise CorruptEncodingError(f"{reader.remaining} trailing bytes after {count} entries")
    return result


def encode_prefix_map(mapping: Mapping[int, Sequence[str]]) -> str:
    """Encode a multi-value prefix map (region and timezone maps)."""
    return pack_blob(_serialize(mapping, PrefixMapKind.MULTI))


def decode_prefix_map(blob: str | bytes) -> dict[int, list[str]]:
    """Decode a blob produced by :func:`encode_prefix_map`."""
    return _deserialize(unpack_blob(blob), PrefixMapKind.MULTI)


def encode_single_prefix_map(mapping: Mapping[int, str]) -> str:
    """Encode a single-value prefix map (carrier and geocoding maps)."""
    return pack_blob(_serialize({key: [value] for key, value in mapping.items()}, PrefixMapKind.SINGLE))


def decode_single_prefix_map(blob: str | bytes) -> dict[int, str]:
    """Decode a blob produced by :func:`encode_single_prefix_map`."""
    return {key: values[0] for key, values in _deserialize(unpack_blob(blob), PrefixMapKind.SINGLE).items()}


class PrefixMapCodec:
    """Codec bound to one entry shape.

    ``MULTI`` codecs take and return ``dict[int, list[str]]``; ``SINGLE``
    codecs take and return ``dict[int, str]``.
    """

    def __init__(self, kind: PrefixMapKind = PrefixMapKind.MULTI) -> None:
        self.kind = PrefixMapKind(kind)

    def encode(self, mapping: Mapping[int, Sequence[str]] | Mapping[int, str]) -> str:
        if self.kind is PrefixMapKind.MULTI:
            return encode_prefix_map(mapping)  # type: ignore[arg-type]
        return encode_single_prefix_map(mapping)  # type: ignore[arg-type]

    def decode(self, blob: str | bytes) -> dict[int, list[str]] | dict[int, str]:
        if self.kind is PrefixMapKind.MULTI:
            return decode_prefix_map(blob)
        return decode_single_prefix_map(blob)
