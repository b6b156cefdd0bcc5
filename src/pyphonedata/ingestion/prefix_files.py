"""Reader for per-language ``<prefix>|<value>`` trees (carrier, geocoding)."""

from __future__ import annotations

import logging
from pathlib import Path

from pyphonedata.exceptions import ParseError

_logger = logging.getLogger(__name__)


def parse_prefix_lines(
    text: str,
    mappings: dict[int, str],
    *,
    source: str = "",
) -> int:
    """Add the entries of one prefix file to *mappings*. Returns the number added.

    Comments, blank lines and lines that are not a numeric prefix plus one
    value are skipped. A prefix already present in *mappings* is fatal,
    since files of one language share a single map.
    """
    added = 0
    for line in text.splitlines():
        if line.startswith("#") or not line.strip():
            continue

        fields = line.split("|")
        if len(fields) != 2:
            _logger.debug("Skipping malformed line in %s: %r", source, line)
            continue

        prefix_text = fields[0].strip()
        if not (prefix_text.isascii() and prefix_text.isdigit()):
            _logger.debug("Skipping line with invalid prefix in %s: %r", source, line)
            continue
        prefix = int(prefix_text)

        value = fields[1].strip()
        if not value:
            _logger.warning("Ignoring empty value in %s: %r", source, line)
            continue

        if prefix in mappings:
            raise ParseError(f"repeated prefix {prefix} for line: {line!r}", source=source, line=line)
        mappings[prefix] = value
        added += 1
    return added


def read_language_dir(directory: Path) -> dict[int, str]:
    """Merge every ``*.txt`` file of one language directory into one map."""
    _logger.debug("Building map for: %s", directory)
    mappings: dict[int, str] = {}
    for path in sorted(directory.glob("*.txt")):
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"prefix file is not UTF-8: {exc}", source=str(path)) from exc
        parse_prefix_lines(text, mappings, source=str(path))
    _logger.debug("Read %d mappings in %s", len(mappings), directory)
    return mappings


def read_prefix_tree(root: Path) -> dict[str, dict[int, str]]:
    """Read a tree with one subdirectory per language code.

    Plain files at the top level are ignored.
    """
    languages: dict[str, dict[int, str]] = {}
    for entry in sorted(root.iterdir()):
        if not entry.is_dir():
            _logger.debug("Ignoring non-directory entry: %s", entry)
            continue
        languages[entry.name] = read_language_dir(entry)
    return languages
