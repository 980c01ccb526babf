"""Refresh/serve facade with an explicit lifecycle."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Collection, Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp

from livetrack._cache import SnapshotCache
from livetrack._constants import (
    INCREMENTAL_MARGIN_SEC,
    KEY_FULL_PROTO,
    KEY_INCREMENTAL_PROTO,
    KEY_LOG_DURATION,
    KEY_LOG_ERRORS,
    KEY_LOG_ERRORS_BY_ID,
    KEY_LOG_SIZE,
    KEY_LOG_TIME,
    KEY_REQUEST_TIMESTAMP,
    KEY_UPDATE_SEC,
)
from livetrack._transport import HttpTransport, Transport
from livetrack.config import LiveTrackConfig
from livetrack.exceptions import LiveTrackError
from livetrack.ingestion.fetch import FetchCoordinator, FetchOutcome
from livetrack.ingestion.providers import FeedParser, FeedProvider, TrackerProvider, UrlBuilder
from livetrack.models.fix import Provider
from livetrack.snapshot import SnapshotBuilder, Snapshots
from livetrack.state.persist import PersistenceCoordinator, PersistResult
from livetrack.state.store import DocumentStore

_logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Transport, LiveTrackConfig], TrackerProvider]
"""Builds a provider on top of the service-owned transport."""
PostProcessor = Callable[[int], Awaitable[None]]


def feed_provider_factory(
    provider: Provider,
    *,
    url_for: UrlBuilder,
    parse: FeedParser,
    disable_on_status: Collection[int] = (),
) -> ProviderFactory:
    """Factory of a :class:`FeedProvider` limited to ``config.fetch_concurrency`` requests."""

    def build(transport: Transport, config: LiveTrackConfig) -> TrackerProvider:
        return FeedProvider(
            provider,
            transport,
            url_for=url_for,
            parse=parse,
            concurrency=config.fetch_concurrency,
            disable_on_status=disable_on_status,
        )

    return build


@dataclass(frozen=True, slots=True)
class RefreshResult:
    outcomes: list[FetchOutcome]
    persist: PersistResult
    snapshots: Snapshots


class LiveTrackService:
    """Fetch, persist and publish live tracks.

    Usage::

        async with LiveTrackService(config, store, cache, provider_factories=[...]) as service:
            await service.refresh()
            blob = await service.snapshot_for(since_sec)

    Storage, cache and HTTP session are passed in or created here and
    released on exit; nothing is a process-wide singleton.
    """

    def __init__(
        self,
        config: LiveTrackConfig,
        store: DocumentStore,
        cache: SnapshotCache,
        *,
        providers: Sequence[TrackerProvider] = (),
        provider_factories: Sequence[ProviderFactory] = (),
        session: aiohttp.ClientSession | None = None,
        post_processor: PostProcessor | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._cache = cache
        self._static_providers = list(providers)
        self._provider_factories = list(provider_factories)
        self._external_session = session is not None
        self._http_session = session
        self._post_processor = post_processor
        self._clock = clock
        self._fetcher: FetchCoordinator | None = None
        self._persister = PersistenceCoordinator(config, store, clock=clock)
        self._snapshots = SnapshotBuilder(config, store, cache, clock=clock)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LiveTrackService:
        providers = list(self._static_providers)
        if self._provider_factories:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = HttpTransport(self._http_session, timeout=self._config.http_timeout)
            providers.extend(factory(transport, self._config) for factory in self._provider_factories)
        self._fetcher = FetchCoordinator(self._config, self._store, providers, clock=self._clock)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._fetcher = None

    def _require_fetcher(self) -> FetchCoordinator:
        if self._fetcher is None:
            raise LiveTrackError("Service not started. Use 'async with LiveTrackService(...) as service:'")
        return self._fetcher

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def _recently_requested(self) -> bool:
        raw = await self._cache.get(KEY_REQUEST_TIMESTAMP)
        try:
            requested = float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            _logger.warning("Ignoring malformed request timestamp %r", raw)
            return False
        return requested > self._clock() - self._config.request_freshness_sec

    async def refresh(self, *, force: bool = False) -> RefreshResult | None:
        """Run one fetch/persist/publish cycle.

        Skipped (returns ``None``) unless a client asked for data within
        ``request_freshness_sec`` or *force* is set.
        """
        fetcher = self._require_fetcher()
        start = self._clock()
        if not force and not await self._recently_requested():
            _logger.debug("No recent client request, skipping refresh")
            return None

        await self._cache.set(KEY_UPDATE_SEC, round(start))
        outcomes = await fetcher.refresh()
        await self._log_outcomes(outcomes, start)

        updates = [outcome.update for outcome in outcomes if outcome.update is not None]
        persisted = await self._persister.save(updates)
        snapshots = await self._snapshots.build_and_publish()

        _logger.info("Refresh total time: %.1fs", self._clock() - start)
        return RefreshResult(outcomes=outcomes, persist=persisted, snapshots=snapshots)

    async def _log_outcomes(self, outcomes: Sequence[FetchOutcome], start: float) -> None:
        """Push per-provider stats to the capped operator logs."""
        capacity = self._config.log_capacity
        for outcome in outcomes:
            name = outcome.provider.prop_name
            try:
                if outcome.update is None:
                    await self._cache.push_capped(KEY_LOG_ERRORS.format(name=name), [outcome.error or "?"], capacity)
                    continue
                update = outcome.update
                await self._cache.push_capped(KEY_LOG_TIME.format(name=name), [round(start)], capacity)
                await self._cache.push_capped(KEY_LOG_SIZE.format(name=name), [len(update.tracks)], capacity)
                await self._cache.push_capped(KEY_LOG_DURATION.format(name=name), [update.duration_sec], capacity)
                if update.errors:
                    await self._cache.push_capped(KEY_LOG_ERRORS_BY_ID.format(name=name), update.errors, capacity)
            except LiveTrackError as exc:
                _logger.warning("Could not log %s stats: %s", name, exc)

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------

    async def snapshot_for(self, since_sec: float = 0) -> bytes | None:
        """Return the snapshot a client should get.

        Records the request (which keeps refreshes running) and returns the
        incremental group when the client's previous fetch at *since_sec* is
        covered by it, the full group otherwise.
        """
        now = self._clock()
        await self._cache.set(KEY_REQUEST_TIMESTAMP, now)
        incremental_after = now - self._config.incremental_sec + INCREMENTAL_MARGIN_SEC
        key = KEY_INCREMENTAL_PROTO if since_sec > incremental_after else KEY_FULL_PROTO
        value = await self._cache.get(key)
        if value is None:
            return None
        return value if isinstance(value, bytes) else str(value).encode("utf-8")

    async def post_process(self, entity_id: int) -> None:
        """Forward a post-process request; failures are logged, not raised."""
        if self._post_processor is None:
            _logger.debug("No post-processor configured, ignoring id=%s", entity_id)
            return
        _logger.info("Post processing id = %s", entity_id)
        try:
            await self._post_processor(entity_id)
        except Exception:
            _logger.exception("Error processing id = %s", entity_id)
