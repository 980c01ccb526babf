"""Pure operations on live tracks.

Nothing here mutates its inputs, so these functions are safe to call on
copies read inside a transaction: discarding the transaction discards the
result.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from livetrack._codec.flags import encode_flags
from livetrack.ingestion.normalize import round_to
from livetrack.models.fix import FixExtra, LivePoint
from livetrack.models.track import LiveTrack


@dataclass(frozen=True, slots=True)
class _Fix:
    lat: float
    lon: float
    alt: int
    time_sec: int
    flags: int
    extra: FixExtra | None


def _fixes(track: LiveTrack) -> Iterable[_Fix]:
    for index in range(track.size):
        yield _Fix(
            lat=track.lat[index],
            lon=track.lon[index],
            alt=track.alt[index],
            time_sec=track.time_sec[index],
            flags=track.flags[index],
            extra=track.extra.get(index),
        )


def _build(fixes: Iterable[_Fix], *, track_id: int = 0, name: str = "") -> LiveTrack:
    track = LiveTrack(id=track_id, name=name)
    for fix in fixes:
        if fix.extra is not None and not fix.extra.is_empty:
            track.extra[track.size] = fix.extra
        track.lat.append(fix.lat)
        track.lon.append(fix.lon)
        track.alt.append(fix.alt)
        track.time_sec.append(fix.time_sec)
        track.flags.append(fix.flags)
    return track


def make_live_track(points: Iterable[LivePoint]) -> LiveTrack:
    """Build a track from unordered provider points.

    Points are sorted chronologically; when two points share the same second
    the one listed last wins.
    """
    by_time: dict[int, _Fix] = {}
    for point in points:
        extra = FixExtra(
            speed=round_to(point.speed, 1) if point.speed is not None else None,
            message=point.message,
        )
        time_sec = int(round_to(point.timestamp / 1000, 0))
        by_time[time_sec] = _Fix(
            lat=round_to(point.lat, 5),
            lon=round_to(point.lon, 5),
            alt=int(round_to(point.alt, 0)),
            time_sec=time_sec,
            flags=encode_flags(
                valid=point.valid,
                emergency=point.emergency,
                low_battery=point.low_battery,
                device=point.device,
            ),
            extra=None if extra.is_empty else extra,
        )
    return _build(by_time[t] for t in sorted(by_time))


def merge_live_tracks(canonical: LiveTrack, delta: LiveTrack) -> LiveTrack:
    """Union of both tracks by timestamp, *delta* winning on collisions.

    The result keeps the id and name of *canonical*.
    """
    by_time: dict[int, _Fix] = {fix.time_sec: fix for fix in _fixes(canonical)}
    by_time.update((fix.time_sec, fix) for fix in _fixes(delta))
    return _build((by_time[t] for t in sorted(by_time)), track_id=canonical.id, name=canonical.name)


def remove_before(track: LiveTrack, cutoff_sec: float) -> LiveTrack:
    """Drop the fixes strictly older than *cutoff_sec*."""
    return _build(
        (fix for fix in _fixes(track) if fix.time_sec >= cutoff_sec),
        track_id=track.id,
        name=track.name,
    )
