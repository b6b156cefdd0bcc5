"""Boundary to the phone-number metadata schema.

The metadata document itself is opaque to this library: a
:class:`MetadataBuilder` turns the fetched bytes into the payload that is
shipped inside the snapshot, plus the country-code → region map that is
derived from it.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Protocol

from pyphonedata.exceptions import ParseError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltMetadata:
    """Result of a metadata build."""

    payload: bytes
    region_map: dict[int, list[str]]


class MetadataBuilder(Protocol):
    """Structural interface for metadata builders.

    Implementations may serialize the document into any binary schema;
    the payload is only compressed and base64-wrapped afterwards.
    """

    def build(self, raw: bytes) -> BuiltMetadata: ...


def build_country_code_to_region_map(document: bytes) -> dict[int, list[str]]:
    """Map each country calling code to its region ids.

    The territory flagged ``mainCountryForCode="true"`` comes first; the
    others keep document order.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise ParseError(f"metadata is not well-formed XML: {exc}", source="metadata") from exc

    region_map: dict[int, list[str]] = {}
    for territory in root.iter("territory"):
        region = territory.get("id")
        raw_code = territory.get("countryCode")
        if not region or raw_code is None:
            raise ParseError(
                f"territory without id/countryCode: {ET.tostring(territory, encoding='unicode')[:120]!r}",
                source="metadata",
            )
        try:
            code = int(raw_code)
        except ValueError as exc:
            raise ParseError(f"invalid countryCode {raw_code!r} for territory {region}", source="metadata") from exc

        regions = region_map.setdefault(code, [])
        if region in regions:
            continue
        if territory.get("mainCountryForCode") == "true":
            regions.insert(0, region)
        else:
            regions.append(region)

    if not region_map:
        raise ParseError("metadata contains no territories", source="metadata")
    _logger.debug("Built region map with %d country codes", len(region_map))
    return region_map


class TerritoryMetadataBuilder:
    """Default builder: ships the XML document verbatim as the payload."""

    def build(self, raw: bytes) -> BuiltMetadata:
        return BuiltMetadata(payload=raw, region_map=build_country_code_to_region_map(raw))
