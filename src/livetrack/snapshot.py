"""Full and incremental snapshot groups built from canonical tracks."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from livetrack._cache import SnapshotCache
from livetrack._codec.wire import encode_differential_track, encode_track_group
from livetrack._constants import KEY_FULL_PROTO, KEY_FULL_SIZE, KEY_INCREMENTAL_PROTO, KEY_INCREMENTAL_SIZE
from livetrack.config import LiveTrackConfig
from livetrack.state.persist import load_track
from livetrack.state.store import DocumentStore
from livetrack.state.track import remove_before

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Snapshots:
    full: bytes
    incremental: bytes
    full_size: int
    incremental_size: int


class SnapshotBuilder:
    """Encode every live entity into the two client-facing groups."""

    def __init__(
        self,
        config: LiveTrackConfig,
        store: DocumentStore,
        cache: SnapshotCache,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._cache = cache
        self._clock = clock

    async def build(self) -> Snapshots:
        now = self._clock()
        incremental_start = round(now - self._config.incremental_sec)
        # Only entities with a recent fix, not a full scan.
        entities = await self._store.query_active(round(now - self._config.retention_sec))

        full: list[bytes] = []
        incremental: list[bytes] = []
        for entity in entities:
            track = load_track(entity)
            full.append(encode_differential_track(track))
            recent = remove_before(track, incremental_start)
            if recent.size > 0:
                incremental.append(encode_differential_track(recent))

        return Snapshots(
            full=encode_track_group(full, incremental=False),
            incremental=encode_track_group(incremental, incremental=True),
            full_size=len(full),
            incremental_size=len(incremental),
        )

    async def publish(self, snapshots: Snapshots) -> None:
        """Replace the cached snapshots. Each write is attempted independently."""
        results = await asyncio.gather(
            self._cache.set(KEY_FULL_PROTO, snapshots.full),
            self._cache.set(KEY_FULL_SIZE, snapshots.full_size),
            self._cache.set(KEY_INCREMENTAL_PROTO, snapshots.incremental),
            self._cache.set(KEY_INCREMENTAL_SIZE, snapshots.incremental_size),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                _logger.error("Snapshot publish failed: %s", result, exc_info=result)
            elif isinstance(result, BaseException):
                raise result

    async def build_and_publish(self) -> Snapshots:
        start = self._clock()
        snapshots = await self.build()
        await self.publish(snapshots)
        _logger.info(
            "Response prepared in %.1fs (%d full, %d incremental)",
            self._clock() - start,
            snapshots.full_size,
            snapshots.incremental_size,
        )
        return snapshots
