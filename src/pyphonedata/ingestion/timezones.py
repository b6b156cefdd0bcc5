"""Strict parser for the ``<prefix>|<zone>&<zone>...`` timezone map."""

from __future__ import annotations

from pyphonedata.exceptions import ParseError


def _parse_prefix(raw: str, line: str, source: str) -> int:
    text = raw.strip()
    if not (text.isascii() and text.isdigit()):
        raise ParseError(f"invalid prefix in timezone line: {line!r}", source=source, line=line)
    return int(text)


def parse_timezone_map(text: str, *, source: str = "") -> dict[int, list[str]]:
    """Parse the timezone map.

    ``#`` comments and blank lines are ignored. Any other line that is not
    exactly two ``|``-separated fields, has a non-numeric prefix, lists no
    zone, or repeats a prefix fails the whole input with :class:`ParseError`.
    """
    prefix_map: dict[int, list[str]] = {}
    for line in text.splitlines():
        if line.startswith("#") or not line.strip():
            continue

        fields = line.split("|")
        if len(fields) != 2:
            raise ParseError(f"invalid format in timezone line: {line!r}", source=source, line=line)

        prefix = _parse_prefix(fields[0], line, source)
        zones = [zone.strip() for zone in fields[1].split("&")]
        if not all(zones):
            raise ParseError(f"empty timezone in line: {line!r}", source=source, line=line)
        if prefix in prefix_map:
            raise ParseError(f"repeated prefix {prefix} in timezone line: {line!r}", source=source, line=line)
        prefix_map[prefix] = zones
    return prefix_map
