"""Stored entity models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from livetrack.models.fix import TRACKER_PROVIDERS, Provider


class TrackerAccount(BaseModel):
    """Per-entity configuration of one provider.

    Parameters
    ----------
    account : str
        Opaque provider account (feed id, share URL, user name...).
    enabled : bool
        Whether the account is polled.
    updated : int
        Last fetch time in epoch microseconds. Used to pick due accounts.
    errors_requests : int
        Packed error/request tally, see :mod:`livetrack._codec.tally`.
    """

    model_config = ConfigDict(extra="forbid")

    account: str = ""
    enabled: bool = False
    updated: int = 0
    errors_requests: int = 0


def _default_trackers() -> dict[Provider, TrackerAccount]:
    return {provider: TrackerAccount() for provider in TRACKER_PROVIDERS}


class LiveTrackEntity(BaseModel):
    """A tracked entity as persisted in the document store.

    ``track`` holds the wire-encoded canonical track and is only rewritten by
    the persistence coordinator inside a transaction.
    """

    model_config = ConfigDict(extra="forbid")

    id: int
    name: str = ""
    enabled: bool = True
    track: bytes = b""
    last_fix_sec: int = 0
    trackers: dict[Provider, TrackerAccount] = Field(default_factory=_default_trackers)

    def tracker(self, provider: Provider) -> TrackerAccount:
        """Return the sub-record for *provider*, creating it when missing."""
        account = self.trackers.get(provider)
        if account is None:
            account = TrackerAccount()
            self.trackers[provider] = account
        return account
