"""Shared cache seam for snapshots, request markers and operator logs.

The cache is scratch space: snapshots are rebuilt wholesale from the document
store on every refresh, so concurrent writers simply overwrite each other.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Protocol

from livetrack._constants import LOG_MAX_LENGTH

CacheValue = bytes | str | int | float


class SnapshotCache(Protocol):
    async def get(self, key: str) -> CacheValue | None: ...

    async def set(self, key: str, value: CacheValue) -> None: ...

    async def push_capped(
        self,
        key: str,
        values: Iterable[CacheValue],
        capacity: int,
        max_length: int = LOG_MAX_LENGTH,
    ) -> None:
        """Push to the head of a list and trim it to *capacity*."""
        ...

    async def get_list(self, key: str) -> list[str]: ...


def _as_log_value(value: CacheValue, max_length: int) -> str:
    text = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)
    return text[:max_length]


class MemorySnapshotCache:
    """In-process :class:`SnapshotCache`."""

    def __init__(self) -> None:
        self._values: dict[str, CacheValue] = {}
        self._lists: dict[str, list[str]] = {}

    async def get(self, key: str) -> CacheValue | None:
        await asyncio.sleep(0)
        return self._values.get(key)

    async def set(self, key: str, value: CacheValue) -> None:
        await asyncio.sleep(0)
        self._values[key] = value

    async def push_capped(
        self,
        key: str,
        values: Iterable[CacheValue],
        capacity: int,
        max_length: int = LOG_MAX_LENGTH,
    ) -> None:
        await asyncio.sleep(0)
        items = self._lists.setdefault(key, [])
        for value in list(values)[:capacity]:
            items.insert(0, _as_log_value(value, max_length))
        del items[max(0, capacity) :]

    async def get_list(self, key: str) -> list[str]:
        await asyncio.sleep(0)
        return list(self._lists.get(key, []))
