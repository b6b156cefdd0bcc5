"""HTTP transport for fetching upstream inputs."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from pyphonedata._constants import DEFAULT_FETCH_TIMEOUT, USER_AGENT
from pyphonedata.exceptions import FetchError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the updater.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def fetch(self, url: str) -> bytes: ...


class HttpTransport:
    """GET-only transport with a bounded total timeout per request."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self, url: str) -> bytes:
        """Return the body of ``GET url``.

        Raises :class:`FetchError` on transport errors, timeouts and any
        status other than 200.
        """
        _logger.debug("GET %s", url)
        headers = {"user-agent": USER_AGENT}
        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                if resp.status != 200:
                    text = await resp.text(errors="replace")
                    raise FetchError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        url=url,
                        status_code=resp.status,
                    )
                body = await resp.read()
        except FetchError:
            raise
        except asyncio.TimeoutError as exc:
            raise FetchError(f"Timed out fetching {url}", url=url) from exc
        except aiohttp.ClientError as exc:
            raise FetchError(f"Request to {url} failed: {exc}", url=url) from exc

        _logger.debug("Fetched %d bytes from %s", len(body), url)
        return body
