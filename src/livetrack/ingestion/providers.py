"""Provider capability and a generic feed-based implementation.

Every provider is an independent variant of one capability: given the due
accounts, return per-account points (plus an error or an account correction).
Vendor feed grammars are plugged in as a parser callable.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection, Sequence
from typing import Protocol

from livetrack._transport import Transport
from livetrack.exceptions import LiveTrackParseError, LiveTrackProviderError, LiveTrackTransportError
from livetrack.models.fix import LivePoint, Provider
from livetrack.models.update import AccountFetch, DueAccount

_logger = logging.getLogger(__name__)

FeedParser = Callable[[str], list[LivePoint]]
"""Turns a raw feed body into points. Raises :class:`LiveTrackParseError`."""

UrlBuilder = Callable[[DueAccount], str | None]
"""Returns the feed URL of an account, ``None`` when the account is unusable."""


class TrackerProvider(Protocol):
    """What the fetch coordinator needs from a provider."""

    @property
    def provider(self) -> Provider: ...

    async def fetch(self, accounts: Sequence[DueAccount]) -> dict[int, AccountFetch]:
        """Fetch *accounts*, keyed by entity id.

        Raising means the provider failed as a whole; per-account failures
        are reported through :attr:`AccountFetch.error`.
        """
        ...


class FeedProvider:
    """Fetch one HTTP feed per account and parse it.

    Parameters
    ----------
    provider : Provider
        Provider tag stamped on the results.
    transport : Transport
        HTTP transport.
    url_for : UrlBuilder
        Builds the feed URL of an account.
    parse : FeedParser
        Vendor-specific feed parser.
    concurrency : int
        Maximum number of concurrent requests.
    disable_on_status : collection of int
        HTTP statuses meaning the account no longer exists; the account is
        then disabled.
    """

    def __init__(
        self,
        provider: Provider,
        transport: Transport,
        *,
        url_for: UrlBuilder,
        parse: FeedParser,
        concurrency: int = 8,
        disable_on_status: Collection[int] = (),
    ) -> None:
        self._provider = provider
        self._transport = transport
        self._url_for = url_for
        self._parse = parse
        self._semaphore = asyncio.Semaphore(concurrency)
        self._disable_on_status = frozenset(disable_on_status)

    @property
    def provider(self) -> Provider:
        return self._provider

    async def _fetch_one(self, account: DueAccount) -> tuple[AccountFetch, bool]:
        """Return the account result and whether the endpoint was unreachable."""
        url = self._url_for(account)
        if url is None:
            return AccountFetch(error=f"Invalid account {account.account!r}", account=False), False
        async with self._semaphore:
            try:
                body = await self._transport.get_text(url)
            except LiveTrackTransportError as exc:
                if exc.status_code in self._disable_on_status:
                    return AccountFetch(error=str(exc), account=False), False
                return AccountFetch(error=str(exc)), exc.status_code is None
        try:
            points = self._parse(body)
        except LiveTrackParseError as exc:
            return AccountFetch(error=str(exc)), False
        return AccountFetch(points=[self._stamp(point) for point in points]), False

    def _stamp(self, point: LivePoint) -> LivePoint:
        if point.device is self._provider:
            return point
        return point.model_copy(update={"device": self._provider})

    async def fetch(self, accounts: Sequence[DueAccount]) -> dict[int, AccountFetch]:
        results = await asyncio.gather(*(self._fetch_one(account) for account in accounts))
        if results and all(unreachable for _, unreachable in results):
            # Every request failed at the network level: the endpoint is down,
            # not the accounts.
            raise LiveTrackProviderError(
                f"{self._provider.display_name} unreachable: {results[0][0].error}",
                provider=self._provider.display_name,
            )
        fetched = {account.entity_id: result for account, (result, _) in zip(accounts, results, strict=True)}
        _logger.debug(
            "[%s] fetched %d accounts, %d errors",
            self._provider.display_name,
            len(fetched),
            sum(1 for result in fetched.values() if result.error is not None),
        )
        return fetched
