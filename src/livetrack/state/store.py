"""Document store seam and an in-memory implementation.

The store is the single source of truth for tracked entities. Writers use
optimistic transactions: every record carries a version, a transaction
remembers the versions it read and :meth:`Transaction.commit` refuses to
write when any of them moved in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from livetrack.exceptions import LiveTrackStoreError
from livetrack.models.entity import LiveTrackEntity
from livetrack.models.fix import Provider
from livetrack.models.update import DueAccount

_logger = logging.getLogger(__name__)


class Transaction(Protocol):
    """One optimistic transaction attempt."""

    async def get(self, ids: Sequence[int]) -> list[LiveTrackEntity]:
        """Read entities (missing ids are skipped). Returns private copies."""
        ...

    def save(self, entity: LiveTrackEntity) -> None:
        """Stage a write, applied on commit."""
        ...

    async def commit(self) -> bool:
        """Apply staged writes. ``False`` on a write-write conflict."""
        ...

    async def rollback(self) -> None: ...


class DocumentStore(Protocol):
    """Structural store interface used by the coordinators.

    Only key access and two range filters are needed, which keeps the
    interface easy to back with any document database (and with test doubles).
    """

    def transaction(self) -> Transaction: ...

    async def get(self, ids: Sequence[int]) -> list[LiveTrackEntity]: ...

    async def put(self, entity: LiveTrackEntity) -> LiveTrackEntity: ...

    async def query_due(
        self,
        provider: Provider,
        updated_before_us: int,
        limit: int | None = None,
    ) -> list[DueAccount]: ...

    async def query_active(self, last_fix_after_sec: int) -> list[LiveTrackEntity]: ...


class _MemoryTransaction:
    def __init__(self, store: MemoryDocumentStore) -> None:
        self._store = store
        self._read_versions: dict[int, int] = {}
        self._writes: dict[int, LiveTrackEntity] = {}
        self._done = False

    def _check_open(self) -> None:
        if self._done:
            raise LiveTrackStoreError("transaction already finished")

    async def get(self, ids: Sequence[int]) -> list[LiveTrackEntity]:
        self._check_open()
        await asyncio.sleep(0)
        entities: list[LiveTrackEntity] = []
        for entity_id in ids:
            record = self._store._records.get(entity_id)  # noqa: SLF001
            if record is None:
                continue
            version, entity = record
            self._read_versions.setdefault(entity_id, version)
            entities.append(entity.model_copy(deep=True))
        return entities

    def save(self, entity: LiveTrackEntity) -> None:
        self._check_open()
        self._writes[entity.id] = entity.model_copy(deep=True)

    async def commit(self) -> bool:
        self._check_open()
        await asyncio.sleep(0)
        self._done = True
        # No await between the check and the writes: commit is atomic.
        records = self._store._records  # noqa: SLF001
        for entity_id, version in self._read_versions.items():
            current = records.get(entity_id)
            if current is None or current[0] != version:
                _logger.debug("Conflict on entity %s (read v%s)", entity_id, version)
                return False
        for entity_id in self._writes:
            if entity_id not in self._read_versions and entity_id in records:
                _logger.debug("Blind write on existing entity %s", entity_id)
                return False
        for entity_id, entity in self._writes.items():
            previous = records.get(entity_id)
            records[entity_id] = ((previous[0] if previous else 0) + 1, entity)
        return True

    async def rollback(self) -> None:
        self._done = True
        self._writes.clear()
        self._read_versions.clear()


class MemoryDocumentStore:
    """In-process :class:`DocumentStore`.

    Suitable for tests and single-process deployments. Reads return deep
    copies so callers can never mutate stored state outside a transaction.
    """

    def __init__(self) -> None:
        self._records: dict[int, tuple[int, LiveTrackEntity]] = {}
        self._next_id = 1

    def transaction(self) -> _MemoryTransaction:
        return _MemoryTransaction(self)

    def version(self, entity_id: int) -> int:
        record = self._records.get(entity_id)
        return record[0] if record else 0

    async def get(self, ids: Sequence[int]) -> list[LiveTrackEntity]:
        await asyncio.sleep(0)
        return [self._records[i][1].model_copy(deep=True) for i in ids if i in self._records]

    async def put(self, entity: LiveTrackEntity) -> LiveTrackEntity:
        """Non-transactional upsert, as used by account configuration.

        An entity with ``id == 0`` gets a fresh id.
        """
        await asyncio.sleep(0)
        if entity.id == 0:
            entity = entity.model_copy(update={"id": self._next_id})
        self._next_id = max(self._next_id, entity.id + 1)
        previous = self._records.get(entity.id)
        stored = entity.model_copy(deep=True)
        self._records[entity.id] = ((previous[0] if previous else 0) + 1, stored)
        return stored.model_copy(deep=True)

    async def query_due(
        self,
        provider: Provider,
        updated_before_us: int,
        limit: int | None = None,
    ) -> list[DueAccount]:
        await asyncio.sleep(0)
        due: list[DueAccount] = []
        for _, entity in self._records.values():
            tracker = entity.trackers.get(provider)
            if not entity.enabled or tracker is None or not tracker.enabled or not tracker.account:
                continue
            if tracker.updated < updated_before_us:
                due.append(DueAccount(entity_id=entity.id, account=tracker.account, updated=tracker.updated))
        due.sort(key=lambda item: (item.updated, item.entity_id))
        return due[:limit] if limit is not None else due

    async def query_active(self, last_fix_after_sec: int) -> list[LiveTrackEntity]:
        await asyncio.sleep(0)
        return [
            entity.model_copy(deep=True)
            for _, entity in sorted(self._records.values(), key=lambda record: record[1].id)
            if entity.last_fix_sec > last_fix_after_sec
        ]
