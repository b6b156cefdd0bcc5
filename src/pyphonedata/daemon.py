"""Thread-hosted auto-update daemon for programs without an event loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from pathlib import Path
from typing import Any

from pyphonedata.config import UpdaterConfig
from pyphonedata.exceptions import PhoneDataError
from pyphonedata.models.snapshot import Snapshot
from pyphonedata.state.store import SnapshotStore
from pyphonedata.updater import SnapshotUpdater

_logger = logging.getLogger(__name__)


class AutoUpdateDaemon:
    """Run a :class:`SnapshotUpdater` on its own event loop in a background thread.

    Readers use :attr:`store` from any thread. ``start()`` returns once the
    startup load (cache or forced refresh) has finished, so the store is
    populated from then on unless both paths failed.
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        config: UpdaterConfig | None = None,
        **updater_kwargs: Any,
    ) -> None:
        self.store = store if store is not None else SnapshotStore()
        self._config = config or UpdaterConfig()
        self._updater_kwargs = updater_kwargs
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._updater: SnapshotUpdater | None = None
        self._stop_event: asyncio.Event | None = None
        self._ready = threading.Event()
        self._error: BaseException | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, timeout: float | None = None) -> bool:
        """Start the daemon thread. Returns whether the store holds a snapshot."""
        if self.is_running:
            return self.store.is_ready
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(target=self._run, name="pyphonedata-daemon", daemon=True)
        self._thread.start()
        self._ready.wait(timeout)
        if self._error is not None:
            raise PhoneDataError(f"auto-update daemon failed to start: {self._error}") from self._error
        return self.store.is_ready

    def _run(self) -> None:
        try:
            asyncio.run(self._main())
        except Exception as exc:
            _logger.exception("Auto-update daemon stopped with an error")
            self._error = exc
        finally:
            self._loop = None
            self._updater = None
            self._ready.set()

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        async with SnapshotUpdater(self.store, self._config, **self._updater_kwargs) as updater:
            self._updater = updater
            await updater.start()
            self._ready.set()
            await self._stop_event.wait()

    def update(self, timeout: float | None = None) -> Snapshot:
        """Run a manual refresh on the daemon loop and wait for its outcome."""
        loop, updater = self._loop, self._updater
        if loop is None or updater is None:
            raise PhoneDataError("auto-update daemon is not running")
        future = asyncio.run_coroutine_threadsafe(updater.update(), loop)
        return future.result(timeout)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background refresh and join the thread."""
        loop, event, thread = self._loop, self._stop_event, self._thread
        if loop is not None and event is not None:
            # The loop may close between the check and the call.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(event.set)
        if thread is not None:
            thread.join(timeout)
        self._thread = None


def init_auto_update_daemon(
    interval: float = 0,
    cache_dir: str | Path = "",
    *,
    store: SnapshotStore | None = None,
    **updater_kwargs: Any,
) -> AutoUpdateDaemon:
    """Start a daemon refreshing every *interval* seconds into *cache_dir*.

    Zero/empty arguments select the defaults (one day, the default cache dir).
    """
    config_kwargs: dict[str, Any] = {"update_interval": interval}
    if str(cache_dir).strip():
        config_kwargs["cache_dir"] = Path(cache_dir)
    config = UpdaterConfig(**config_kwargs)
    daemon = AutoUpdateDaemon(store, config, **updater_kwargs)
    daemon.start()
    return daemon
