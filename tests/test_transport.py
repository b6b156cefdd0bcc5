from __future__ import annotations

import asyncio
import io
import sys
import tarfile
from pathlib import Path

import aiohttp
import pytest
from aiohttp import test_utils, web

from pyphonedata._transport import HttpTransport
from pyphonedata.bulk import ArchiveBulkFetcher, ExportBulkFetcher, extract_subtree
from pyphonedata.exceptions import FetchError


def _tarball(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, text in files.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


_ARCHIVE = _tarball(
    {
        "libphonenumber-master/resources/carrier/en/44.txt": "447700|Vodafone\n",
        "libphonenumber-master/resources/carrier/de/49.txt": "49151|Telekom\n",
        "libphonenumber-master/resources/geocoding/en/1.txt": "1212|New York, NY\n",
        "libphonenumber-master/README.md": "readme\n",
    }
)


def _app() -> web.Application:
    async def ok(_request: web.Request) -> web.Response:
        return web.Response(body=b"1|America/New_York\n")

    async def missing(_request: web.Request) -> web.Response:
        return web.Response(status=404, text="no such file")

    async def slow(_request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.Response(text="late")

    async def archive(_request: web.Request) -> web.Response:
        return web.Response(body=_ARCHIVE)

    app = web.Application()
    app.router.add_get("/tz", ok)
    app.router.add_get("/missing", missing)
    app.router.add_get("/slow", slow)
    app.router.add_get("/archive.tar.gz", archive)
    return app


@pytest.mark.asyncio
async def test_fetch_returns_body() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        body = await HttpTransport(session).fetch(str(server.make_url("/tz")))
    assert body == b"1|America/New_York\n"


@pytest.mark.asyncio
async def test_non_200_is_fetch_error() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        url = str(server.make_url("/missing"))
        with pytest.raises(FetchError) as exc_info:
            await HttpTransport(session).fetch(url)
    assert exc_info.value.status_code == 404
    assert exc_info.value.url == url


@pytest.mark.asyncio
async def test_timeout_is_fetch_error() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        with pytest.raises(FetchError, match="Timed out"):
            await HttpTransport(session, timeout=0.1).fetch(str(server.make_url("/slow")))


@pytest.mark.asyncio
async def test_connection_error_is_fetch_error() -> None:
    async with aiohttp.ClientSession() as session:
        with pytest.raises(FetchError):
            await HttpTransport(session, timeout=5).fetch("http://127.0.0.1:1/unreachable")


# ── bulk fetchers ────────────────────────────────────────────


def test_extract_subtree_strips_archive_root(tmp_path: Path) -> None:
    written = extract_subtree(_ARCHIVE, "resources/carrier", tmp_path)

    assert written == 2
    assert (tmp_path / "en" / "44.txt").read_text(encoding="utf-8") == "447700|Vodafone\n"
    assert (tmp_path / "de" / "49.txt").exists()
    assert not (tmp_path / "README.md").exists()


def test_extract_subtree_skips_parent_references(tmp_path: Path) -> None:
    archive = _tarball({"repo/resources/carrier/../../evil.txt": "x", "repo/resources/carrier/en/1.txt": "1|a\n"})

    assert extract_subtree(archive, "resources/carrier", tmp_path / "out") == 1
    assert not (tmp_path / "evil.txt").exists()


def test_extract_subtree_rejects_garbage(tmp_path: Path) -> None:
    with pytest.raises(FetchError):
        extract_subtree(b"definitely not a tarball", "resources/carrier", tmp_path)


@pytest.mark.asyncio
async def test_archive_fetcher_materializes_tree(tmp_path: Path) -> None:
    destination = tmp_path / "carrier"
    destination.mkdir()
    (destination / "stale.txt").write_text("old", encoding="utf-8")

    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        fetcher = ArchiveBulkFetcher(HttpTransport(session), str(server.make_url("/archive.tar.gz")))
        root = await fetcher.fetch("resources/carrier", destination)

    assert root == destination
    assert sorted(p.name for p in root.iterdir()) == ["de", "en"]


@pytest.mark.asyncio
async def test_archive_fetcher_missing_subtree_is_fetch_error(tmp_path: Path) -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        fetcher = ArchiveBulkFetcher(HttpTransport(session), str(server.make_url("/archive.tar.gz")))
        with pytest.raises(FetchError, match="not found"):
            await fetcher.fetch("resources/nothing", tmp_path / "nothing")


_EXPORT_SCRIPT = """
import pathlib, sys
root = pathlib.Path(sys.argv[1].rsplit("/", 1)[-1])
(root / "en").mkdir(parents=True)
(root / "en" / "1.txt").write_text("1201|Verizon\\n")
print("Exported", root)
"""


@pytest.mark.asyncio
async def test_export_fetcher_returns_created_directory(tmp_path: Path) -> None:
    fetcher = ExportBulkFetcher([sys.executable, "-c", _EXPORT_SCRIPT, "{source}"], timeout=30)

    root = await fetcher.fetch("https://example.invalid/trunk/resources/carrier", tmp_path / "carrier")

    assert root == tmp_path / "carrier" / "carrier"
    assert (root / "en" / "1.txt").read_text(encoding="utf-8") == "1201|Verizon\n"


@pytest.mark.asyncio
async def test_export_fetcher_nonzero_exit_is_fetch_error(tmp_path: Path) -> None:
    fetcher = ExportBulkFetcher([sys.executable, "-c", "import sys; sys.exit('svn: E170013')"], timeout=30)

    with pytest.raises(FetchError, match="E170013"):
        await fetcher.fetch("https://example.invalid/carrier", tmp_path / "carrier")


@pytest.mark.asyncio
async def test_export_fetcher_missing_command_is_fetch_error(tmp_path: Path) -> None:
    fetcher = ExportBulkFetcher(["definitely-not-an-installed-command-xyz"], timeout=30)

    with pytest.raises(FetchError, match="could not start"):
        await fetcher.fetch("https://example.invalid/carrier", tmp_path / "carrier")


@pytest.mark.asyncio
async def test_export_fetcher_timeout_is_fetch_error(tmp_path: Path) -> None:
    fetcher = ExportBulkFetcher([sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.2)

    with pytest.raises(FetchError, match="timed out"):
        await fetcher.fetch("https://example.invalid/carrier", tmp_path / "carrier")
