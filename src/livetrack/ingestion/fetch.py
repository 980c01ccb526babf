"""Concurrent fetch of every provider with per-provider failure isolation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from livetrack.config import LiveTrackConfig
from livetrack.ingestion.providers import TrackerProvider
from livetrack.models.fix import Provider
from livetrack.models.update import TrackerUpdate, TrackUpdate
from livetrack.state.store import DocumentStore
from livetrack.state.track import make_live_track

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Result of one provider: an update, or the error that aborted it."""

    provider: Provider
    update: TrackerUpdate | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.update is not None


class FetchCoordinator:
    """Run all provider fetchers concurrently.

    A provider raising never affects the others: it is reported as a failed
    :class:`FetchOutcome` and contributes no updates this cycle.
    """

    def __init__(
        self,
        config: LiveTrackConfig,
        store: DocumentStore,
        providers: Sequence[TrackerProvider],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._providers = sorted(providers, key=lambda p: p.provider)
        self._clock = clock

    async def refresh_provider(self, provider: TrackerProvider) -> TrackerUpdate:
        """Fetch the due accounts of one provider and build its update."""
        tag = provider.provider
        settings = self._config.provider(tag)
        start = self._clock()
        update = TrackerUpdate(provider=tag)

        due_before_us = int((start - settings.interval_sec) * 1_000_000)
        due = await self._store.query_due(tag, due_before_us, settings.batch_limit)
        if not due:
            update.duration_sec = round(self._clock() - start, 3)
            return update

        fetched = await provider.fetch(due)
        updated_us = int(self._clock() * 1_000_000)

        for account in due:
            result = fetched.get(account.entity_id)
            if result is None:
                _logger.debug("[%s] no result for id=%s", tag.display_name, account.entity_id)
                continue
            track = make_live_track(result.points) if result.points else None
            update.tracks[account.entity_id] = TrackUpdate(updated=updated_us, track=track, error=result.error)
            if result.error is not None:
                update.errors.append(f"{account.entity_id}: {result.error}")
            if result.account is not None:
                update.accounts[account.entity_id] = result.account

        update.duration_sec = round(self._clock() - start, 3)
        return update

    async def refresh(self) -> list[FetchOutcome]:
        """Fetch every enabled provider, one outcome per provider."""
        providers = [p for p in self._providers if self._config.provider(p.provider).enabled]
        start = self._clock()
        results = await asyncio.gather(
            *(self.refresh_provider(provider) for provider in providers),
            return_exceptions=True,
        )

        outcomes: list[FetchOutcome] = []
        for provider, result in zip(providers, results, strict=True):
            name = provider.provider.display_name
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                _logger.error("[%s] Update error: %s", name, result, exc_info=result)
                outcomes.append(FetchOutcome(provider=provider.provider, error=str(result) or type(result).__name__))
                continue
            _logger.info("[%s] Update %d devices in %.1fs", name, len(result.tracks), result.duration_sec)
            if result.errors:
                _logger.warning("[%s] %d account errors: %s", name, len(result.errors), ", ".join(result.errors))
            outcomes.append(FetchOutcome(provider=provider.provider, update=result))

        _logger.info("Updates fetched in %.1fs", self._clock() - start)
        return outcomes
