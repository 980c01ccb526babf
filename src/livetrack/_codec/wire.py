"""Protobuf wire format for tracks and snapshot groups.

Messages are defined in ``live_track.proto`` (see
:mod:`livetrack._codec.messages`):

* ``LiveTrack``: columnar track. Stored canonical tracks carry absolute
  values, snapshot tracks carry differential columns (see
  :mod:`livetrack._codec.differential`). Coordinates are scaled to integers
  in both cases. ``extra`` entries are sparse and keyed by fix index.
* ``LiveDifferentialTrackGroup``: the snapshot tracks plus an
  ``incremental`` flag.
* ``MetaGroups``: opaque serialized groups for batched delivery.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from google.protobuf.message import DecodeError

from livetrack._codec.differential import COORD_SCALE, diff_decode_track, diff_encode_track
from livetrack._codec.messages import (
    LiveDifferentialTrackGroupMessage,
    LiveTrackMessage,
    MetaGroupsMessage,
)
from livetrack.exceptions import TrackDecodeError, TrackEncodingError
from livetrack.models.fix import FixExtra
from livetrack.models.track import LiveTrack

# ------------------------------------------------------------------
# Track <-> message
# ------------------------------------------------------------------


def _to_message(track: LiveTrack) -> Any:
    try:
        message = LiveTrackMessage(id=track.id, name=track.name)
        message.lat.extend(int(v) for v in track.lat)
        message.lon.extend(int(v) for v in track.lon)
        message.alt.extend(int(v) for v in track.alt)
        message.time_sec.extend(int(v) for v in track.time_sec)
        message.flags.extend(track.flags)
        for index in sorted(track.extra):
            extra = track.extra[index]
            entry = message.extra.add(index=index)
            if extra.speed is not None:
                entry.speed = extra.speed
            if extra.message is not None:
                entry.message = extra.message
    except ValueError as exc:
        # Out of range for the field type (e.g. a negative time).
        raise TrackEncodingError(f"track {track.id} does not fit the wire format: {exc}") from exc
    return message


def _columns(message: Any) -> dict[str, Any]:
    size = len(message.time_sec)
    extra: dict[int, FixExtra] = {}
    for entry in message.extra:
        if entry.index >= size:
            raise TrackDecodeError(f"extra index {entry.index} out of range")
        extra[entry.index] = FixExtra(
            speed=entry.speed if entry.HasField("speed") else None,
            message=entry.message if entry.HasField("message") else None,
        )
    return {
        "id": message.id,
        "name": message.name,
        "lat": list(message.lat),
        "lon": list(message.lon),
        "alt": list(message.alt),
        "time_sec": list(message.time_sec),
        "flags": list(message.flags),
        "extra": extra,
    }


def _parse(message_class: type, data: bytes, what: str) -> Any:
    try:
        return message_class.FromString(data)
    except DecodeError as exc:
        raise TrackDecodeError(f"malformed {what}: {exc}") from exc


def _from_differential(message: Any) -> LiveTrack:
    columns = _columns(message)
    for column in ("lat", "lon", "alt", "flags"):
        if len(columns[column]) != len(columns["time_sec"]):
            raise TrackDecodeError(f"column {column} has {len(columns[column])} values")
    return diff_decode_track(LiveTrack.model_construct(**columns))


# ------------------------------------------------------------------
# Track
# ------------------------------------------------------------------


def encode_track(track: LiveTrack) -> bytes:
    """Serialize a canonical (absolute-valued) track for storage."""
    scaled = track.model_copy(
        update={
            "lat": [round(v * COORD_SCALE) for v in track.lat],
            "lon": [round(v * COORD_SCALE) for v in track.lon],
        }
    )
    return _to_message(scaled).SerializeToString()


def decode_track(data: bytes) -> LiveTrack:
    """Parse a stored canonical track. Raises :class:`TrackDecodeError`."""
    columns = _columns(_parse(LiveTrackMessage, data, "track"))
    columns["lat"] = [v / COORD_SCALE for v in columns["lat"]]
    columns["lon"] = [v / COORD_SCALE for v in columns["lon"]]
    try:
        return LiveTrack.model_validate(columns)
    except ValueError as exc:
        raise TrackDecodeError(f"invalid track payload: {exc}") from exc


def encode_differential_track(track: LiveTrack) -> bytes:
    """Differentially encode and serialize a track for snapshots."""
    return _to_message(diff_encode_track(track)).SerializeToString()


def decode_differential_track(data: bytes) -> LiveTrack:
    return _from_differential(_parse(LiveTrackMessage, data, "track"))


# ------------------------------------------------------------------
# Groups
# ------------------------------------------------------------------


def encode_track_group(tracks: Iterable[bytes], *, incremental: bool) -> bytes:
    """Serialize already-encoded differential tracks as a group.

    Payloads are merged as-is, without a decode/encode round trip.
    """
    group = LiveDifferentialTrackGroupMessage(incremental=incremental)
    for payload in tracks:
        try:
            group.tracks.add().MergeFromString(payload)
        except DecodeError as exc:
            raise TrackEncodingError(f"not an encoded track: {exc}") from exc
    return group.SerializeToString()


def decode_track_group(data: bytes) -> tuple[list[LiveTrack], bool]:
    """Return ``(tracks, incremental)`` with tracks decoded to absolute values."""
    group = _parse(LiveDifferentialTrackGroupMessage, data, "group")
    return [_from_differential(track) for track in group.tracks], group.incremental


def encode_meta(groups: Iterable[bytes]) -> bytes:
    """Wrap encoded groups for batched delivery."""
    return MetaGroupsMessage(groups=list(groups)).SerializeToString()


def decode_meta(data: bytes) -> list[bytes]:
    return list(_parse(MetaGroupsMessage, data, "meta").groups)
