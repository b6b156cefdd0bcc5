"""Unsigned LEB128 ("varint") encoding of non-negative integers."""

from __future__ import annotations

from pyphonedata.exceptions import CorruptEncodingError

# A uint64 never needs more than ten 7-bit groups.
_MAX_VARINT_BYTES = 10


def encode_uvarint(value: int) -> bytes:
    """Encode *value* as unsigned LEB128, least significant group first."""
    if value < 0:
        raise ValueError(f"uvarint value must be non-negative, got {value}")
    out = bytearray()
    while True:
        group = value & 0x7F
        value >>= 7
        if value:
            out.append(group | 0x80)
        else:
            out.append(group)
            return bytes(out)


def decode_uvarint(data: bytes | memoryview, offset: int = 0) -> tuple[int, int]:
    """Decode one uvarint starting at *offset*.

    Returns ``(value, next_offset)``. Raises :class:`CorruptEncodingError`
    if the input ends mid-varint or the varint exceeds 64 bits.
    """
    value = 0
    shift = 0
    for i in range(_MAX_VARINT_BYTES):
        pos = offset + i
        if pos >= len(data):
            raise CorruptEncodingError(f"truncated varint at offset {offset}")
        byte = data[pos]
        if i == _MAX_VARINT_BYTES - 1 and byte > 1:
            raise CorruptEncodingError(f"varint at offset {offset} overflows 64 bits")
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos + 1
        shift += 7
    raise CorruptEncodingError(f"varint at offset {offset} overflows 64 bits")
