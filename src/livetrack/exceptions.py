"""Custom exception hierarchy for livetrack."""

from __future__ import annotations


class LiveTrackError(Exception):
    """Base exception for all livetrack errors."""


class LiveTrackConfigError(LiveTrackError):
    """Invalid or missing configuration."""


class LiveTrackTransportError(LiveTrackError):
    """HTTP-level failure (network, non-200, unreadable body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class LiveTrackParseError(LiveTrackError):
    """A provider feed could not be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"[Parse Error]: {message}")


class LiveTrackProviderError(LiveTrackError):
    """A provider failed as a whole (not a single account)."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        self.provider = provider
        super().__init__(message)


class TrackEncodingError(LiveTrackError, ValueError):
    """Data violates the encoding contract (e.g. decreasing unsigned series).

    This is a programming error, never a runtime condition to recover from.
    """


class TrackDecodeError(LiveTrackError):
    """A binary track or group could not be decoded."""


class LiveTrackStoreError(LiveTrackError):
    """Document store failure other than a write conflict."""
