"""Apply provider updates to stored entities under optimistic transactions.

Entities are written in batches. Each batch runs its own retry loop::

    ATTEMPTING -> COMMITTED
               -> CONFLICTED -> ATTEMPTING      (budget left)
                             -> EXHAUSTED       (budget spent)

Every attempt starts from a fresh read and a conflicted attempt is rolled
back as a whole, so nothing from it (tally increments included) survives.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from livetrack._codec.tally import error_rate, increment_requests
from livetrack._codec.wire import decode_track, encode_track
from livetrack.config import LiveTrackConfig
from livetrack.exceptions import LiveTrackStoreError, TrackDecodeError
from livetrack.models.entity import LiveTrackEntity
from livetrack.models.track import LiveTrack
from livetrack.models.update import TrackerUpdate
from livetrack.state.store import DocumentStore
from livetrack.state.track import merge_live_tracks, remove_before

_logger = logging.getLogger(__name__)


class SaveState(enum.Enum):
    ATTEMPTING = "attempting"
    COMMITTED = "committed"
    CONFLICTED = "conflicted"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class BatchResult:
    ids: tuple[int, ...]
    state: SaveState
    attempts: int

    @property
    def committed(self) -> bool:
        return self.state is SaveState.COMMITTED


@dataclass(slots=True)
class PersistResult:
    batches: list[BatchResult] = field(default_factory=list)
    errors: int = 0
    duration_sec: float = 0.0

    @property
    def saved_ids(self) -> list[int]:
        return [entity_id for batch in self.batches if batch.committed for entity_id in batch.ids]


def load_track(entity: LiveTrackEntity) -> LiveTrack:
    """Decode the canonical track of *entity*.

    A corrupt blob is replaced with an empty track: the entity recovers on
    the next fetch instead of being stuck.
    """
    if entity.track:
        try:
            track = decode_track(entity.track)
        except TrackDecodeError as exc:
            _logger.warning("Dropping unreadable track of id=%s: %s", entity.id, exc)
        else:
            return track.model_copy(update={"id": entity.id, "name": entity.name})
    return LiveTrack(id=entity.id, name=entity.name)


def _batches(ids: Sequence[int], size: int) -> list[tuple[int, ...]]:
    return [tuple(ids[i : i + size]) for i in range(0, len(ids), size)]


class PersistenceCoordinator:
    """Merge fetched deltas into canonical tracks and write them back."""

    def __init__(
        self,
        config: LiveTrackConfig,
        store: DocumentStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._clock = clock

    def apply_updates(self, entity: LiveTrackEntity, updates: Sequence[TrackerUpdate], now_sec: float) -> None:
        """Apply every provider update for *entity*, in provider order.

        *entity* must be a transactional copy: it is modified in place.
        """
        track = load_track(entity)

        for update in sorted(updates, key=lambda u: u.provider):
            tracker = entity.tracker(update.provider)

            delta = update.tracks.get(entity.id)
            if delta is not None:
                tracker.updated = delta.updated
                tracker.errors_requests = increment_requests(tracker.errors_requests, is_error=delta.error is not None)
                if delta.error is not None:
                    _logger.info(
                        "[%s] id=%s error (%.0f%% of requests): %s",
                        update.provider.display_name,
                        entity.id,
                        100 * error_rate(tracker.errors_requests),
                        delta.error,
                    )
                if delta.track is not None:
                    track = merge_live_tracks(track, delta.track)

            correction = update.accounts.get(entity.id)
            if correction is False:
                tracker.enabled = False
            elif correction is not None:
                tracker.account = correction

        track = remove_before(track, now_sec - self._config.retention_sec)
        entity.track = encode_track(track)
        if track.last_time_sec is not None:
            entity.last_fix_sec = max(entity.last_fix_sec, track.last_time_sec)

    async def _attempt(self, ids: tuple[int, ...], updates: Sequence[TrackerUpdate]) -> SaveState:
        transaction = self._store.transaction()
        try:
            entities = await transaction.get(ids)
            now_sec = self._clock()
            for entity in entities:
                self.apply_updates(entity, updates, now_sec)
                transaction.save(entity)
            committed = await transaction.commit()
        except LiveTrackStoreError as exc:
            _logger.warning("Transaction error on batch %s..%s: %s", ids[0], ids[-1], exc)
            committed = False
        except Exception:
            await transaction.rollback()
            raise

        if committed:
            return SaveState.COMMITTED
        await transaction.rollback()
        return SaveState.CONFLICTED

    async def save_batch(self, ids: tuple[int, ...], updates: Sequence[TrackerUpdate]) -> BatchResult:
        """Write one batch, retrying on conflict up to ``max_attempts``."""
        state = SaveState.ATTEMPTING
        attempts = 0
        while state is SaveState.ATTEMPTING:
            attempts += 1
            state = await self._attempt(ids, updates)
            if state is SaveState.CONFLICTED:
                retries_left = self._config.max_attempts - attempts
                _logger.warning("Batch %s..%s conflicted, retries = %d", ids[0], ids[-1], retries_left)
                state = SaveState.ATTEMPTING if retries_left > 0 else SaveState.EXHAUSTED
        return BatchResult(ids=ids, state=state, attempts=attempts)

    async def save(self, updates: Sequence[TrackerUpdate]) -> PersistResult:
        """Persist all updates. Batch failures are logged, never raised."""
        start = self._clock()
        id_set: set[int] = set()
        for update in updates:
            id_set.update(update.tracks)
            id_set.update(update.accounts)

        batches = _batches(sorted(id_set), self._config.batch_size)
        results = await asyncio.gather(
            *(self.save_batch(batch, updates) for batch in batches),
            return_exceptions=True,
        )

        result = PersistResult()
        for batch, outcome in zip(batches, results, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                # Rolled back attempt that raised something other than a store error.
                _logger.error("Batch transactions failure: %s", outcome, exc_info=outcome)
                result.batches.append(BatchResult(ids=batch, state=SaveState.EXHAUSTED, attempts=0))
                result.errors += 1
                continue
            result.batches.append(outcome)
            if not outcome.committed:
                result.errors += 1

        if result.errors:
            _logger.error("%d batch save errors", result.errors)
        result.duration_sec = round(self._clock() - start, 3)
        _logger.info("Trackers updated in %.1fs (%d entities)", result.duration_sec, len(id_set))
        return result
