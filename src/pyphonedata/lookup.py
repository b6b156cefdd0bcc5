"""Decoded, read-only view of a published snapshot."""

from __future__ import annotations

import threading
from functools import cached_property

from pyphonedata._codec.blob import unpack_blob
from pyphonedata._codec.prefix_map import decode_prefix_map, decode_single_prefix_map
from pyphonedata.models.snapshot import Snapshot
from pyphonedata.state.store import SnapshotStore


def _digits(number: str) -> str:
    return "".join(ch for ch in number if ch.isascii() and ch.isdigit())


def longest_prefix_match(mapping: dict[int, str] | dict[int, list[str]], number: str) -> int | None:
    """Return the longest key of *mapping* that prefixes the digits of *number*."""
    digits = _digits(number)
    for length in range(len(digits), 0, -1):
        candidate = digits[:length]
        # Leading zeros would collapse into a different key.
        if candidate[0] == "0":
            break
        key = int(candidate)
        if key in mapping:
            return key
    return None


class PhoneDataView:
    """Lazily decodes the blobs of one :class:`Snapshot`.

    Blobs are decoded on first use and kept for the lifetime of the view;
    views are safe to share between threads. Numbers are given as digit strings including the
    country calling code (``"+1 212 555 0100"`` and ``"12125550100"`` are
    equivalent).
    """

    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self._lock = threading.Lock()
        self._carrier: dict[str, dict[int, str]] = {}
        self._geocoding: dict[str, dict[int, str]] = {}

    @classmethod
    def from_store(cls, store: SnapshotStore) -> PhoneDataView:
        return cls(store.read())

    @property
    def version(self) -> str:
        return self.snapshot.version

    def metadata_payload(self) -> bytes:
        """The metadata document as built by the metadata builder."""
        return unpack_blob(self.snapshot.metadata_data)

    @cached_property
    def region_map(self) -> dict[int, list[str]]:
        return decode_prefix_map(self.snapshot.region_map_data)

    @cached_property
    def timezone_map(self) -> dict[int, list[str]]:
        return decode_prefix_map(self.snapshot.timezone_map_data)

    def _language_map(
        self,
        cache: dict[str, dict[int, str]],
        blobs: dict[str, str],
        lang: str,
    ) -> dict[int, str]:
        with self._lock:
            decoded = cache.get(lang)
            if decoded is None:
                blob = blobs.get(lang)
                decoded = decode_single_prefix_map(blob) if blob is not None else {}
                cache[lang] = decoded
            return decoded

    def carrier_map(self, lang: str) -> dict[int, str]:
        return self._language_map(self._carrier, self.snapshot.carrier_map_data, lang)

    def geocoding_map(self, lang: str) -> dict[int, str]:
        return self._language_map(self._geocoding, self.snapshot.geocoding_map_data, lang)

    def preload(self) -> None:
        """Decode every blob now; raises on the first corrupt one."""
        self.metadata_payload()
        _ = self.region_map
        _ = self.timezone_map
        for lang in self.snapshot.carrier_map_data:
            self.carrier_map(lang)
        for lang in self.snapshot.geocoding_map_data:
            self.geocoding_map(lang)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def regions_for_country_code(self, country_code: int) -> list[str]:
        return list(self.region_map.get(country_code, []))

    def timezones_for_number(self, number: str) -> list[str]:
        key = longest_prefix_match(self.timezone_map, number)
        return list(self.timezone_map[key]) if key is not None else []

    def carrier_for_number(self, number: str, lang: str = "en") -> str | None:
        mapping = self.carrier_map(lang)
        key = longest_prefix_match(mapping, number)
        return mapping[key] if key is not None else None

    def description_for_number(self, number: str, lang: str = "en") -> str | None:
        mapping = self.geocoding_map(lang)
        key = longest_prefix_match(mapping, number)
        return mapping[key] if key is not None else None
