"""The immutable bundle of encoded data sets published to readers.

A :class:`Snapshot` is also the on-disk cache envelope: its JSON form is
exactly what :mod:`pyphonedata.cache` persists.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def version_token(now: datetime | None = None) -> str:
    """Build an ISO-8601 version token (UTC, second precision, ``Z`` suffix)."""
    moment = (now or datetime.now(UTC)).astimezone(UTC).replace(microsecond=0)
    return moment.isoformat().replace("+00:00", "Z")


class Snapshot(BaseModel):
    """All encoded data sets from one refresh cycle.

    Every blob is base64 text as produced by :mod:`pyphonedata._codec`.
    Instances are frozen; the per-language maps are read-only views.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    metadata_data: str
    region_map_data: str
    timezone_map_data: str
    carrier_map_data: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    geocoding_map_data: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    version: str

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        value = value.strip()
        try:
            datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"version must be an ISO-8601 timestamp, got {value!r}") from exc
        return value

    @field_validator("carrier_map_data", "geocoding_map_data")
    @classmethod
    def _freeze_language_map(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("carrier_map_data", "geocoding_map_data")
    def _dump_language_map(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)

    @property
    def issued_at(self) -> datetime:
        """The version token as an aware datetime; naive tokens are taken as UTC."""
        moment = datetime.fromisoformat(self.version)
        return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)

    @property
    def languages(self) -> list[str]:
        """Languages present in either the carrier or geocoding data."""
        return sorted(set(self.carrier_map_data) | set(self.geocoding_map_data))

    def blob_sizes(self) -> dict[str, int]:
        """Size in characters of every blob, keyed by a dotted field name."""
        sizes = {
            "metadata_data": len(self.metadata_data),
            "region_map_data": len(self.region_map_data),
            "timezone_map_data": len(self.timezone_map_data),
        }
        for lang, blob in sorted(self.carrier_map_data.items()):
            sizes[f"carrier_map_data.{lang}"] = len(blob)
        for lang, blob in sorted(self.geocoding_map_data.items()):
            sizes[f"geocoding_map_data.{lang}"] = len(blob)
        return sizes
