"""Durable snapshot cache.

The cache file holds one JSON-encoded :class:`Snapshot`. Writes go to a
temporary file in the same directory which is fsynced and then renamed
over the cache file, so readers only ever see the old or the new file.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from pyphonedata.exceptions import LoadError, PersistError, PrefixMapError
from pyphonedata.lookup import PhoneDataView
from pyphonedata.models.snapshot import Snapshot

_logger = logging.getLogger(__name__)


class SnapshotCache:
    """Read and atomically replace the cache file at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self, *, verify: bool = True) -> Snapshot:
        """Read the cached snapshot.

        With *verify*, every blob is decoded once so a truncated or
        corrupted cache is rejected here rather than by the first reader.
        Raises :class:`LoadError` on any failure.
        """
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise LoadError(f"failed to read cache {self.path}: {exc}") from exc

        try:
            snapshot = Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise LoadError(f"invalid cache {self.path}: {exc.error_count()} validation error(s)") from exc

        if verify:
            try:
                PhoneDataView(snapshot).preload()
            except PrefixMapError as exc:
                raise LoadError(f"corrupt blob in cache {self.path}: {exc}") from exc

        _logger.debug("Loaded cache %s version=%s", self.path, snapshot.version)
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Persist *snapshot*, replacing the previous cache file atomically.

        Raises :class:`PersistError`; the previous file is left untouched.
        """
        data = snapshot.model_dump_json().encode("utf-8")
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistError(f"failed to write cache {self.path}: {exc}") from exc

        _logger.debug("Stored cache %s (%d bytes) version=%s", self.path, len(data), snapshot.version)
