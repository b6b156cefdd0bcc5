"""Custom exception hierarchy for pyphonedata."""

from __future__ import annotations


class PhoneDataError(Exception):
    """Base exception for all pyphonedata errors."""


class ConfigError(PhoneDataError):
    """Invalid configuration value."""


class FetchError(PhoneDataError):
    """Remote input could not be retrieved (network, non-200, timeout, export failure)."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ParseError(PhoneDataError):
    """Upstream text does not match the format this library requires."""

    def __init__(
        self,
        message: str,
        *,
        source: str = "",
        line: str | None = None,
    ) -> None:
        self.source = source
        self.line = line
        super().__init__(message)


class PrefixMapError(PhoneDataError):
    """Base class for prefix map codec failures."""


class InvalidPrefixMapError(PrefixMapError):
    """The mapping handed to the encoder cannot be represented."""


class TooManyValuesError(PrefixMapError):
    """More distinct values than a 16-bit intern index can address."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"{count} distinct values exceed the intern table limit of {limit}")


class CorruptEncodingError(PrefixMapError):
    """An encoded blob violates the prefix map layout."""


class PersistError(PhoneDataError):
    """The durable cache could not be written."""


class LoadError(PhoneDataError):
    """The durable cache could not be read or failed validation."""


class SnapshotStoreError(PhoneDataError):
    """Base class for snapshot store state errors."""


class SnapshotNotReadyError(SnapshotStoreError):
    """``read()`` was called before any snapshot was published."""


class StoreClosedError(SnapshotStoreError):
    """``publish()`` was called after the store was shut down."""
