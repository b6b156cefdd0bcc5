"""Bulk retrieval of per-language prefix trees.

A :class:`BulkFetcher` materializes a remote directory (one subdirectory
per language, each holding ``*.txt`` prefix files) on the local disk. How
it gets there is up to the implementation:

* :class:`ArchiveBulkFetcher` downloads a tarball of the upstream
  repository and extracts one subtree of it.
* :class:`ExportBulkFetcher` runs an external export command (``svn export``
  by default) inside the target directory.
"""

from __future__ import annotations

import asyncio
import io
import logging
import shutil
import tarfile
from collections.abc import Sequence
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import urlsplit

from pyphonedata._transport import Transport
from pyphonedata.exceptions import FetchError

_logger = logging.getLogger(__name__)


class BulkFetcher(Protocol):
    """Structural interface for tree materialization."""

    async def fetch(self, source: str, destination: Path) -> Path:
        """Materialize *source* under *destination* and return the tree root."""
        ...

    async def fetch_many(self, requests: Sequence[tuple[str, Path]]) -> list[Path]:
        """Materialize several ``(source, destination)`` pairs from one upstream revision.

        Returns the tree roots in request order.
        """
        ...


def _reset_dir(destination: Path) -> None:
    shutil.rmtree(destination, ignore_errors=True)
    destination.mkdir(parents=True, exist_ok=True)


def extract_subtree(archive: bytes, subpath: str, destination: Path) -> int:
    """Extract the regular files below *subpath* into *destination*.

    The archive's single top-level directory (``<repo>-<branch>/`` for
    GitHub tarballs) is ignored when matching *subpath*. Returns the number
    of files written.
    """
    wanted = PurePosixPath(subpath.strip("/")).parts
    written = 0
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:*") as tar:
            for member in tar:
                if not member.isfile():
                    continue
                parts = PurePosixPath(member.name).parts[1:]
                if parts[: len(wanted)] != wanted:
                    continue
                inner = parts[len(wanted) :]
                if not inner or any(part in ("", ".", "..") for part in inner):
                    continue
                handle = tar.extractfile(member)
                if handle is None:
                    continue
                target = destination.joinpath(*inner)
                target.parent.mkdir(parents=True, exist_ok=True)
                with handle:
                    target.write_bytes(handle.read())
                written += 1
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise FetchError(f"failed to extract {subpath!r} from archive: {exc}") from exc
    return written


class ArchiveBulkFetcher:
    """Fetch trees out of a (gzip) tarball of the upstream repository."""

    def __init__(self, transport: Transport, archive_url: str) -> None:
        self._transport = transport
        self._archive_url = archive_url

    async def fetch(self, source: str, destination: Path) -> Path:
        (root,) = await self.fetch_many([(source, destination)])
        return root

    async def fetch_many(self, requests: Sequence[tuple[str, Path]]) -> list[Path]:
        """Download the archive once and extract every requested subtree from it."""
        _logger.info("Fetching %s from %s", ", ".join(source for source, _ in requests), self._archive_url)
        archive = await self._transport.fetch(self._archive_url)

        def _extract(source: str, destination: Path) -> int:
            _reset_dir(destination)
            return extract_subtree(archive, source, destination)

        roots: list[Path] = []
        for source, destination in requests:
            written = await asyncio.to_thread(_extract, source, destination)
            if written == 0:
                raise FetchError(f"{source!r} not found in archive", url=self._archive_url)
            _logger.debug("Extracted %d files for %s to %s", written, source, destination)
            roots.append(destination)
        return roots


class ExportBulkFetcher:
    """Run an export command inside the destination directory.

    ``{source}`` in any command argument is replaced with the remote
    location. If the command creates a directory named after the last
    path segment of the source, that directory is the tree root.
    """

    def __init__(self, command: Sequence[str], *, timeout: float) -> None:
        self._command = tuple(command)
        self._timeout = timeout

    async def fetch(self, source: str, destination: Path) -> Path:
        await asyncio.to_thread(_reset_dir, destination)
        argv = [arg.replace("{source}", source) for arg in self._command]
        _logger.info("Exporting %s to %s", source, destination)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=destination,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise FetchError(f"could not start {argv[0]!r}: {exc}", url=source) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise FetchError(f"export of {source} timed out after {self._timeout}s", url=source) from exc
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        for line in stdout.decode("utf-8", errors="replace").splitlines():
            _logger.debug("[export] %s", line)
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise FetchError(
                f"export of {source} exited with {proc.returncode}: {detail[-200:]}",
                url=source,
            )

        name = PurePosixPath(urlsplit(source).path).name
        candidate = destination / name if name else destination
        return candidate if candidate.is_dir() else destination

    async def fetch_many(self, requests: Sequence[tuple[str, Path]]) -> list[Path]:
        return [await self.fetch(source, destination) for source, destination in requests]
