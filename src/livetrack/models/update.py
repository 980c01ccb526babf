"""Ephemeral fetch/update records.

These never hit storage: a fetch pass produces them and the persistence
coordinator consumes them once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from livetrack.models.fix import LivePoint, Provider
from livetrack.models.track import LiveTrack

#: Account correction: a new account string, or ``False`` to disable it.
AccountCorrection = str | Literal[False]


@dataclass(frozen=True, slots=True)
class DueAccount:
    """An account whose last fetch is older than its provider interval."""

    entity_id: int
    account: str
    updated: int


@dataclass(slots=True)
class AccountFetch:
    """What a provider returns for one account."""

    points: list[LivePoint] = field(default_factory=list)
    error: str | None = None
    account: AccountCorrection | None = None


@dataclass(frozen=True, slots=True)
class TrackUpdate:
    """Update of a single entity by a single provider.

    There must be an ``error`` when the fetch failed.
    """

    updated: int
    track: LiveTrack | None = None
    error: str | None = None


@dataclass(slots=True)
class TrackerUpdate:
    """All updates produced by one provider in one fetch pass."""

    provider: Provider
    tracks: dict[int, TrackUpdate] = field(default_factory=dict)
    accounts: dict[int, AccountCorrection] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_sec: float = 0.0
