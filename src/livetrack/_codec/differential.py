"""Differential encoding of ordered numeric sequences.

A sequence is scaled, rounded to integers and stored as its first value
followed by successive differences. Small deltas keep the packed protobuf
columns dense. Decoding runs an integer cumulative sum and divides each absolute
value once, so the error never accumulates with the sequence length.
"""

from __future__ import annotations

from collections.abc import Sequence

from livetrack.exceptions import TrackEncodingError
from livetrack.models.track import LiveTrack

#: Coordinates are kept with 5 decimals (~1 m).
COORD_SCALE = 1e5


def _to_int(value: float, scale: float) -> int:
    return round(value * scale)


def diff_encode_array(values: Sequence[float], scale: float = 1, *, signed_delta: bool = True) -> list[int]:
    """Encode *values* as a base value followed by deltas.

    With ``signed_delta=False`` the series must be non-decreasing once
    scaled; a negative delta raises :class:`TrackEncodingError`.
    """
    if scale <= 0:
        raise TrackEncodingError(f"scale must be positive, got {scale}")
    encoded: list[int] = []
    previous = 0
    for index, value in enumerate(values):
        current = _to_int(value, scale)
        delta = current - previous
        if index > 0 and not signed_delta and delta < 0:
            raise TrackEncodingError(f"unsigned series decreases at index {index}: {previous} -> {current}")
        encoded.append(delta)
        previous = current
    return encoded


def diff_decode_array(values: Sequence[int], scale: float = 1) -> list[float]:
    """Reverse :func:`diff_encode_array`."""
    if scale <= 0:
        raise TrackEncodingError(f"scale must be positive, got {scale}")
    decoded: list[float] = []
    total = 0
    for delta in values:
        total += delta
        decoded.append(total / scale)
    return decoded


def diff_encode_track(track: LiveTrack) -> LiveTrack:
    """Differentially encode every numeric column of *track*.

    ``flags`` and ``extra`` are carried unchanged.
    """
    return track.model_copy(
        update={
            "lat": diff_encode_array(track.lat, COORD_SCALE),
            "lon": diff_encode_array(track.lon, COORD_SCALE),
            "alt": diff_encode_array(track.alt),
            "time_sec": diff_encode_array(track.time_sec, signed_delta=False),
            "flags": list(track.flags),
            "extra": dict(track.extra),
        }
    )


def diff_decode_track(track: LiveTrack) -> LiveTrack:
    return track.model_copy(
        update={
            "lat": diff_decode_array(track.lat, COORD_SCALE),
            "lon": diff_decode_array(track.lon, COORD_SCALE),
            "alt": [int(v) for v in diff_decode_array(track.alt)],
            "time_sec": [int(v) for v in diff_decode_array(track.time_sec)],
            "flags": list(track.flags),
            "extra": dict(track.extra),
        }
    )
