from __future__ import annotations

import logging
import threading

import pytest

from pyphonedata.exceptions import SnapshotNotReadyError, StoreClosedError
from pyphonedata.models.snapshot import Snapshot
from pyphonedata.state.store import SnapshotStore


def _tagged(n: int) -> Snapshot:
    """A snapshot whose every field carries the same marker."""
    tag = f"cycle-{n}"
    return Snapshot(
        metadata_data=tag,
        region_map_data=tag,
        timezone_map_data=tag,
        carrier_map_data={"en": tag, "de": tag},
        geocoding_map_data={"en": tag},
        version=f"2026-01-01T00:{n // 60 % 60:02d}:{n % 60:02d}Z",
    )


def _markers(snapshot: Snapshot) -> set[str]:
    return {
        snapshot.metadata_data,
        snapshot.region_map_data,
        snapshot.timezone_map_data,
        *snapshot.carrier_map_data.values(),
        *snapshot.geocoding_map_data.values(),
    }


def test_read_before_publish_signals_not_ready() -> None:
    store = SnapshotStore()

    assert store.get() is None
    assert store.is_ready is False
    assert store.version is None
    with pytest.raises(SnapshotNotReadyError):
        store.read()


def test_publish_replaces_and_returns_previous() -> None:
    store = SnapshotStore()
    first, second = _tagged(1), _tagged(2)

    assert store.publish(first) is None
    assert store.publish(second) is first
    assert store.read() is second
    assert store.version == second.version


def test_initial_snapshot_is_readable() -> None:
    snapshot = _tagged(3)
    assert SnapshotStore(snapshot).read() is snapshot


def test_shutdown_rejects_publish_but_keeps_reads() -> None:
    store = SnapshotStore()
    snapshot = _tagged(1)
    store.publish(snapshot)

    store.shutdown()

    assert store.closed is True
    with pytest.raises(StoreClosedError):
        store.publish(_tagged(2))
    assert store.read() is snapshot


def test_listeners_are_notified_and_failures_isolated() -> None:
    store = SnapshotStore()
    seen: list[str] = []

    def broken(_snapshot: Snapshot) -> None:
        raise RuntimeError("boom")

    store.add_listener(broken)
    remove = store.add_listener(lambda snapshot: seen.append(snapshot.version))

    store.publish(_tagged(1))
    remove()
    store.publish(_tagged(2))

    assert seen == [_tagged(1).version]
    assert store.read().version == _tagged(2).version


def test_concurrent_readers_never_observe_mixed_snapshots() -> None:
    store = SnapshotStore(_tagged(0))
    stop = threading.Event()
    mixed: list[set[str]] = []
    reads = [0]

    def reader() -> None:
        while not stop.is_set():
            markers = _markers(store.read())
            if len(markers) != 1:
                mixed.append(markers)
            reads[0] += 1

    def publisher(offset: int) -> None:
        for n in range(offset, 2000, 2):
            store.publish(_tagged(n))

    readers = [threading.Thread(target=reader) for _ in range(4)]
    publishers = [threading.Thread(target=publisher, args=(offset,)) for offset in (1, 2)]
    for thread in readers + publishers:
        thread.start()
    for thread in publishers:
        thread.join()
    stop.set()
    for thread in readers:
        thread.join()

    assert mixed == []
    assert reads[0] > 0
    assert _markers(store.read()) <= {"cycle-1998", "cycle-1999"}


def test_published_language_maps_are_read_only() -> None:
    store = SnapshotStore(_tagged(1))

    with pytest.raises(TypeError):
        store.read().carrier_map_data["en"] = "TAMPERED"  # type: ignore[index]
    with pytest.raises(TypeError):
        del store.read().geocoding_map_data["en"]  # type: ignore[attr-defined]

    assert store.read().carrier_map_data == {"en": "cycle-1", "de": "cycle-1"}
    assert store.read().model_dump()["carrier_map_data"] == {"en": "cycle-1", "de": "cycle-1"}


def _versioned(version: str) -> Snapshot:
    return _tagged(0).model_copy(update={"version": version})


def test_version_regression_compares_instants(caplog: pytest.LogCaptureFixture) -> None:
    store = SnapshotStore(_versioned("2026-03-01T12:00:00+02:00"))

    with caplog.at_level(logging.WARNING, logger="pyphonedata.state.store"):
        store.publish(_versioned("2026-03-01T11:00:00Z"))
    assert "older than" not in caplog.text

    with caplog.at_level(logging.WARNING, logger="pyphonedata.state.store"):
        store.publish(_versioned("2026-03-01T12:30:00+02:00"))
    assert "older than" in caplog.text
    assert store.version == "2026-03-01T12:30:00+02:00"
