"""Refresh orchestration: fetch, encode, persist and publish snapshots."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

import aiohttp

from pyphonedata import _constants
from pyphonedata._codec.blob import pack_blob
from pyphonedata._codec.prefix_map import encode_prefix_map, encode_single_prefix_map
from pyphonedata._transport import HttpTransport, Transport
from pyphonedata.bulk import ArchiveBulkFetcher, BulkFetcher, ExportBulkFetcher
from pyphonedata.cache import SnapshotCache
from pyphonedata.config import UpdaterConfig
from pyphonedata.exceptions import FetchError, LoadError, ParseError, PhoneDataError, StoreClosedError
from pyphonedata.ingestion.metadata import MetadataBuilder, TerritoryMetadataBuilder
from pyphonedata.ingestion.prefix_files import read_prefix_tree
from pyphonedata.ingestion.timezones import parse_timezone_map
from pyphonedata.models.snapshot import Snapshot, version_token
from pyphonedata.state.store import SnapshotStore

_logger = logging.getLogger(__name__)

RefreshErrorHook = Callable[[BaseException], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RefreshState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    BUILDING = "building"
    PERSISTING = "persisting"
    PUBLISHING = "publishing"


@dataclass(frozen=True)
class RawInputs:
    """Everything one refresh cycle fetched, before any parsing."""

    metadata: bytes
    timezones: bytes
    carrier_root: Path
    geocoding_root: Path


def _encode_language_tree(root: Path, label: str) -> dict[str, str]:
    try:
        languages = read_prefix_tree(root)
    except OSError as exc:
        raise FetchError(f"failed to read {label} tree at {root}: {exc}") from exc
    blobs: dict[str, str] = {}
    for lang, mappings in languages.items():
        blobs[lang] = encode_single_prefix_map(mappings)
        _logger.debug("Encoded %s/%s: %d prefixes", label, lang, len(mappings))
    return blobs


class SnapshotUpdater:
    """Keeps a :class:`SnapshotStore` up to date.

    Usage::

        store = SnapshotStore()
        async with SnapshotUpdater(store, UpdaterConfig.from_env()) as updater:
            await updater.start()
            ...

    ``start()`` publishes the cached snapshot if one is usable (falling back
    to a synchronous refresh) and then refreshes every
    ``config.update_interval`` seconds. ``update()`` runs a refresh on
    demand. Only one refresh runs at a time; a request made while one is in
    flight waits for it and shares its outcome.

    A refresh either publishes a complete snapshot or changes nothing:
    every fetch, parse, encode and persist step runs before the store is
    touched.
    """

    def __init__(
        self,
        store: SnapshotStore,
        config: UpdaterConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        bulk_fetcher: BulkFetcher | None = None,
        metadata_builder: MetadataBuilder | None = None,
        cache: SnapshotCache | None = None,
        clock: Callable[[], datetime] = _utcnow,
        on_refresh_error: RefreshErrorHook | None = None,
    ) -> None:
        self._store = store
        self._config = config or UpdaterConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._bulk_fetcher = bulk_fetcher
        self._metadata_builder = metadata_builder or TerritoryMetadataBuilder()
        self._cache = cache or SnapshotCache(self._config.cache_file)
        self._clock = clock
        self._on_refresh_error = on_refresh_error
        self._state = RefreshState.IDLE
        self._inflight: asyncio.Task[Snapshot] | None = None
        self._task: asyncio.Task[None] | None = None
        self.last_error: BaseException | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SnapshotUpdater:
        if self._transport is None or self._bulk_fetcher is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            if self._transport is None:
                self._transport = HttpTransport(self._http_session, timeout=self._config.fetch_timeout)
            if self._bulk_fetcher is None:
                self._bulk_fetcher = self._default_bulk_fetcher(self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _default_bulk_fetcher(self, http_session: aiohttp.ClientSession) -> BulkFetcher:
        if self._config.bulk_fetch_mode == "export":
            return ExportBulkFetcher(self._config.export_command, timeout=self._config.bulk_fetch_timeout)
        archive_transport = HttpTransport(http_session, timeout=self._config.bulk_fetch_timeout)
        return ArchiveBulkFetcher(archive_transport, self._config.archive_url)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Whether the background refresh loop is active."""
        return self._task is not None and not self._task.done()

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise PhoneDataError("Updater not initialized. Use 'async with SnapshotUpdater(...) as updater:'")
        return self._transport

    def _require_bulk_fetcher(self) -> BulkFetcher:
        if self._bulk_fetcher is None:
            raise PhoneDataError("Updater not initialized. Use 'async with SnapshotUpdater(...) as updater:'")
        return self._bulk_fetcher

    # ------------------------------------------------------------------
    # Startup and background loop
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Publish the cached snapshot, or build one if the cache is unusable.

        Returns whether a snapshot was published. Failures are logged and
        reported through ``on_refresh_error`` but not raised.
        """
        try:
            await asyncio.to_thread(self._config.cache_dir.mkdir, parents=True, exist_ok=True)
        except OSError:
            _logger.error("Failed to create cache dir %s", self._config.cache_dir, exc_info=True)

        try:
            snapshot = await asyncio.to_thread(self._cache.load)
        except LoadError as exc:
            _logger.warning("Failed to init from cache: %s; forcing update", exc)
        else:
            try:
                self._store.publish(snapshot)
            except StoreClosedError:
                _logger.info("Snapshot store closed; skipping cached snapshot")
                return False
            _logger.info("Initialized from cache, version=%s", snapshot.version)
            return True

        try:
            snapshot = await self.update()
        except StoreClosedError:
            _logger.info("Snapshot store closed; skipping forced update")
            return False
        except PhoneDataError as exc:
            _logger.error("Forced update failed: %s", exc)
            self._report(exc)
            return False
        _logger.info("Forced update of phone data, version=%s", snapshot.version)
        return True

    async def start(self) -> None:
        """Initialize the store and start the background refresh loop."""
        if self.is_running:
            return
        await self.initialize()
        if self._store.closed:
            return
        self._task = asyncio.get_running_loop().create_task(self._run_periodic(), name="pyphonedata-updater")
        _logger.info("Background refresh started, interval=%ss", self._config.update_interval)

    async def stop(self) -> None:
        """Stop the background loop and abandon any in-flight refresh."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            _logger.info("Background refresh stopped")

        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            inflight.cancel()
            with contextlib.suppress(asyncio.CancelledError, PhoneDataError):
                await inflight

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self._config.update_interval)
            if self._store.closed:
                _logger.info("Snapshot store closed; background refresh exiting")
                return
            try:
                snapshot = await self.update()
            except asyncio.CancelledError:
                raise
            except StoreClosedError:
                _logger.info("Snapshot store closed; background refresh exiting")
                return
            except PhoneDataError as exc:
                _logger.error("Failed to update phone data: %s", exc)
                self._report(exc)
            except Exception as exc:
                _logger.exception("Unexpected error while updating phone data")
                self._report(exc)
            else:
                _logger.info("Updated phone data, version=%s", snapshot.version)

    def _report(self, exc: BaseException) -> None:
        self.last_error = exc
        if self._on_refresh_error is None:
            return
        try:
            self._on_refresh_error(exc)
        except Exception:
            _logger.warning("on_refresh_error hook failed", exc_info=True)

    # ------------------------------------------------------------------
    # Refresh pipeline
    # ------------------------------------------------------------------

    async def update(self) -> Snapshot:
        """Run a full refresh and return the published snapshot.

        Raises the error that aborted the cycle; the store is unchanged in
        that case.
        """
        if self._store.closed:
            raise StoreClosedError("snapshot store is shut down")

        task = self._inflight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._refresh(), name="pyphonedata-refresh")
            task.add_done_callback(_consume_result)
            self._inflight = task
        else:
            _logger.info("Refresh already in flight; joining it")
        return await asyncio.shield(task)

    async def _refresh(self) -> Snapshot:
        try:
            snapshot = await self.build_snapshot()

            self._state = RefreshState.PERSISTING
            await asyncio.to_thread(self._cache.save, snapshot)

            self._state = RefreshState.PUBLISHING
            self._store.publish(snapshot)
            self.last_error = None
            return snapshot
        finally:
            self._state = RefreshState.IDLE

    async def fetch_inputs(self) -> RawInputs:
        """Fetch every upstream input for one cycle."""
        transport = self._require_transport()
        bulk_fetcher = self._require_bulk_fetcher()
        self._state = RefreshState.FETCHING

        _logger.info("Fetching metadata from %s", self._config.metadata_url)
        metadata = await transport.fetch(self._config.metadata_url)
        _logger.info("Fetching timezone map from %s", self._config.timezone_url)
        timezones = await transport.fetch(self._config.timezone_url)

        cache_dir = self._config.cache_dir
        carrier_root, geocoding_root = await bulk_fetcher.fetch_many(
            [
                (self._config.carrier_source, cache_dir / _constants.CARRIER_TREE_DIR),
                (self._config.geocoding_source, cache_dir / _constants.GEOCODING_TREE_DIR),
            ]
        )
        return RawInputs(
            metadata=metadata,
            timezones=timezones,
            carrier_root=carrier_root,
            geocoding_root=geocoding_root,
        )

    def encode_inputs(self, raw: RawInputs) -> Snapshot:
        """Parse and encode *raw* into a new snapshot. Runs in a worker thread."""
        _logger.info("Building new metadata collection")
        built = self._metadata_builder.build(raw.metadata)
        metadata_data = pack_blob(built.payload)
        region_map_data = encode_prefix_map(built.region_map)

        _logger.info("Building timezone map")
        try:
            tz_text = raw.timezones.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"timezone map is not UTF-8: {exc}", source=self._config.timezone_url) from exc
        timezone_map_data = encode_prefix_map(parse_timezone_map(tz_text, source=self._config.timezone_url))

        _logger.info("Building carrier and geocoding maps")
        carrier_map_data = _encode_language_tree(raw.carrier_root, "carrier")
        geocoding_map_data = _encode_language_tree(raw.geocoding_root, "geocoding")

        return Snapshot(
            metadata_data=metadata_data,
            region_map_data=region_map_data,
            timezone_map_data=timezone_map_data,
            carrier_map_data=carrier_map_data,
            geocoding_map_data=geocoding_map_data,
            version=version_token(self._clock()),
        )

    async def build_snapshot(self) -> Snapshot:
        """Fetch and encode a complete snapshot without persisting or publishing it."""
        raw = await self.fetch_inputs()
        self._state = RefreshState.BUILDING
        return await asyncio.to_thread(self.encode_inputs, raw)


def _consume_result(task: asyncio.Task[Snapshot]) -> None:
    # Retrieve the outcome so abandoned joiners never leave it unobserved.
    if not task.cancelled():
        task.exception()
