from __future__ import annotations

from pathlib import Path

import pytest

from pyphonedata.config import UpdaterConfig
from pyphonedata.daemon import AutoUpdateDaemon, init_auto_update_daemon
from pyphonedata.exceptions import FetchError, PhoneDataError
from pyphonedata.lookup import PhoneDataView
from pyphonedata.state.store import SnapshotStore

_METADATA_URL = "https://upstream.test/PhoneNumberMetadata.xml"
_TIMEZONE_URL = "https://upstream.test/map_data.txt"


class StaticUpstream:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.requests = 0

    async def fetch(self, url: str) -> bytes:
        self.requests += 1
        if self.fail:
            raise FetchError(f"HTTP 500 fetching {url}", url=url, status_code=500)
        if url.endswith("PhoneNumberMetadata.xml"):
            return b'<phoneNumberMetadata><territory id="JP" countryCode="81"/></phoneNumberMetadata>'
        return b"81|Asia/Tokyo\n"


class StaticTrees:
    async def fetch(self, source: str, destination: Path) -> Path:
        (destination / "en").mkdir(parents=True, exist_ok=True)
        (destination / "en" / "81.txt").write_text(f"8190|{source.rsplit('/', 1)[-1]}\n", encoding="utf-8")
        return destination

    async def fetch_many(self, requests: list[tuple[str, Path]]) -> list[Path]:
        return [await self.fetch(source, destination) for source, destination in requests]


def _config(tmp_path: Path, interval: float = 3600) -> UpdaterConfig:
    return UpdaterConfig(
        cache_dir=tmp_path,
        update_interval=interval,
        metadata_url=_METADATA_URL,
        timezone_url=_TIMEZONE_URL,
    )


def test_daemon_start_populates_store(tmp_path: Path) -> None:
    daemon = AutoUpdateDaemon(config=_config(tmp_path), transport=StaticUpstream(), bulk_fetcher=StaticTrees())
    try:
        assert daemon.start(timeout=10) is True
        assert daemon.is_running

        view = PhoneDataView.from_store(daemon.store)
        assert view.regions_for_country_code(81) == ["JP"]
        assert view.carrier_for_number("819012345678") == "carrier"
        assert view.description_for_number("819012345678") == "geocoding"
    finally:
        daemon.stop(timeout=10)

    assert not daemon.is_running


def test_daemon_manual_update_from_caller_thread(tmp_path: Path) -> None:
    upstream = StaticUpstream()
    daemon = AutoUpdateDaemon(config=_config(tmp_path), transport=upstream, bulk_fetcher=StaticTrees())
    try:
        daemon.start(timeout=10)
        before = upstream.requests

        snapshot = daemon.update(timeout=10)

        assert daemon.store.read() is snapshot
        assert upstream.requests == before + 2
    finally:
        daemon.stop(timeout=10)


def test_daemon_without_data_still_runs(tmp_path: Path) -> None:
    store = SnapshotStore()
    daemon = AutoUpdateDaemon(store, _config(tmp_path), transport=StaticUpstream(fail=True), bulk_fetcher=StaticTrees())
    try:
        assert daemon.start(timeout=10) is False
        assert daemon.is_running
        assert store.get() is None
    finally:
        daemon.stop(timeout=10)


def test_update_before_start_is_rejected(tmp_path: Path) -> None:
    daemon = AutoUpdateDaemon(config=_config(tmp_path))
    with pytest.raises(PhoneDataError, match="not running"):
        daemon.update()


def test_init_auto_update_daemon_uses_given_cache_dir(tmp_path: Path) -> None:
    daemon = init_auto_update_daemon(
        0,
        tmp_path / "phonedata",
        transport=StaticUpstream(),
        bulk_fetcher=StaticTrees(),
    )
    try:
        assert daemon.store.is_ready
        assert (tmp_path / "phonedata" / "phonenumbers_metadataCache.cache").exists()
    finally:
        daemon.stop(timeout=10)
