"""Atomic in-memory snapshot store.

This is the only component allowed to change which snapshot readers see.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from pyphonedata.exceptions import SnapshotNotReadyError, StoreClosedError
from pyphonedata.models.snapshot import Snapshot

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]


class SnapshotStore:
    """Holder of the current :class:`Snapshot`.

    Readers get the whole snapshot through one attribute load and never
    take a lock, so a read can never mix fields from two refresh cycles.
    Publishers replace the reference in a single assignment; the lock
    only orders concurrent publishers against each other and against
    :meth:`shutdown`.
    """

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._current: Snapshot | None = initial
        self._publish_lock = threading.Lock()
        self._closed = False
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    # Read side (lock-free)
    # ------------------------------------------------------------------

    def read(self) -> Snapshot:
        """Return the published snapshot.

        Raises :class:`SnapshotNotReadyError` before the first publish.
        """
        snapshot = self._current
        if snapshot is None:
            raise SnapshotNotReadyError("no snapshot has been published yet")
        return snapshot

    def get(self) -> Snapshot | None:
        """Like :meth:`read`, but returns ``None`` before the first publish."""
        return self._current

    @property
    def is_ready(self) -> bool:
        return self._current is not None

    @property
    def version(self) -> str | None:
        snapshot = self._current
        return snapshot.version if snapshot is not None else None

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def publish(self, snapshot: Snapshot) -> Snapshot | None:
        """Make *snapshot* the current one. Returns the snapshot it replaced."""
        with self._publish_lock:
            if self._closed:
                raise StoreClosedError("snapshot store is shut down")
            previous = self._current
            if previous is not None and snapshot.issued_at < previous.issued_at:
                _logger.warning(
                    "Publishing snapshot %s older than current %s",
                    snapshot.version,
                    previous.version,
                )
            self._current = snapshot
            listeners = list(self._listeners)

        _logger.debug("Published snapshot version=%s", snapshot.version)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                _logger.warning("Snapshot listener %r failed", listener, exc_info=True)
        return previous

    def shutdown(self) -> None:
        """Reject further publishes. Reads keep returning the last snapshot."""
        with self._publish_lock:
            self._closed = True

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* after every successful publish.

        Returns a callable that removes the listener again.
        """
        with self._publish_lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._publish_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove
