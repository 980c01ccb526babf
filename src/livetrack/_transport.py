"""HTTP transport used by feed providers."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

import aiohttp

from livetrack._constants import USER_AGENT
from livetrack.exceptions import LiveTrackTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by providers.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def get_text(self, url: str, params: Mapping[str, str] | None = None) -> str: ...


class HttpTransport:
    """aiohttp-backed transport. The session is owned by the caller."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float = 30.0) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_text(self, url: str, params: Mapping[str, str] | None = None) -> str:
        headers = {
            "accept-encoding": "gzip, deflate",
            "user-agent": USER_AGENT,
        }

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise LiveTrackTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
                return text
        except LiveTrackTransportError:
            raise
        except TimeoutError as exc:
            raise LiveTrackTransportError(f"Request to {url} timed out", url=url) from exc
        except aiohttp.ClientError as exc:
            raise LiveTrackTransportError(f"Request to {url} failed: {exc}", url=url) from exc
