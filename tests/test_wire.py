from __future__ import annotations

import pytest

from google.protobuf import empty_pb2

from livetrack._codec.flags import encode_flags
from livetrack._codec.messages import LiveDifferentialTrackGroupMessage, LiveTrackMessage
from livetrack._codec.wire import (
    decode_meta,
    decode_track,
    decode_track_group,
    encode_differential_track,
    encode_meta,
    encode_track,
    encode_track_group,
)
from livetrack.exceptions import TrackDecodeError, TrackEncodingError
from livetrack.models.fix import FixExtra, Provider
from livetrack.models.track import LiveTrack


def _track() -> LiveTrack:
    return LiveTrack(
        id=42,
        name="Pilot",
        lat=[45.12345, 45.2, 45.19999],
        lon=[6.5, -6.54321, -6.6],
        alt=[1000, 1200, 950],
        time_sec=[1_700_000_000, 1_700_000_060, 1_700_000_180],
        flags=[
            encode_flags(device=Provider.INREACH),
            encode_flags(emergency=True, device=Provider.INREACH),
            encode_flags(valid=False, device=Provider.SPOT),
        ],
        extra={1: FixExtra(speed=12.3, message="need help ✈")},
    )


def test_canonical_track_round_trip() -> None:
    track = _track()

    assert decode_track(encode_track(track)) == track


def test_empty_track_round_trip() -> None:
    track = LiveTrack(id=7)

    assert decode_track(encode_track(track)) == track


def test_group_round_trip_restores_absolute_values() -> None:
    track = _track()
    recent = LiveTrack(id=3, name="Other", lat=[-33.5], lon=[151.2], alt=[12], time_sec=[1_700_000_100], flags=[1])

    blob = encode_track_group([encode_differential_track(track), encode_differential_track(recent)], incremental=True)
    tracks, incremental = decode_track_group(blob)

    assert incremental is True
    assert [t.id for t in tracks] == [42, 3]
    assert tracks[0].name == "Pilot"
    assert tracks[0].lat == track.lat
    assert tracks[0].lon == track.lon
    assert tracks[0].alt == track.alt
    assert tracks[0].time_sec == track.time_sec
    assert tracks[0].flags == track.flags
    assert tracks[0].extra == track.extra
    assert tracks[1].lat == [-33.5]


def test_differential_track_is_smaller_than_absolute() -> None:
    track = LiveTrack(
        lat=[45.0 + i * 1e-4 for i in range(100)],
        lon=[6.0 + i * 1e-4 for i in range(100)],
        alt=[1000 + i for i in range(100)],
        time_sec=[1_700_000_000 + 60 * i for i in range(100)],
        flags=[1] * 100,
    )

    assert len(encode_differential_track(track)) < len(encode_track(track)) // 2


def test_empty_group_is_not_incremental_by_default() -> None:
    tracks, incremental = decode_track_group(encode_track_group([], incremental=False))

    assert tracks == []
    assert incremental is False


def test_meta_framing_keeps_blobs_opaque() -> None:
    blobs = [b"", b"\x00\x01\x02", encode_track_group([], incremental=True)]

    assert decode_meta(encode_meta(blobs)) == blobs


def test_group_is_plain_protobuf() -> None:
    track = _track()
    blob = encode_track_group([encode_differential_track(track)], incremental=True)

    # Any protobuf parser accepts the blob, unknown fields included.
    empty_pb2.Empty().ParseFromString(blob)
    group = LiveDifferentialTrackGroupMessage.FromString(blob)

    assert group.incremental is True
    assert len(group.tracks) == 1
    assert group.tracks[0].id == 42
    assert list(group.tracks[0].time_sec) == [1_700_000_000, 60, 120]


def _mismatched_columns() -> bytes:
    return LiveTrackMessage(lat=[1, 2], time_sec=[1]).SerializeToString()


def _extra_out_of_range() -> bytes:
    message = LiveTrackMessage(time_sec=[1], lat=[0], lon=[0], alt=[0], flags=[1])
    message.extra.add(index=3, speed=1.0)
    return message.SerializeToString()


@pytest.mark.parametrize(
    "payload",
    [b"\xff", b"\x12\x05ab", _mismatched_columns(), _extra_out_of_range()],
    ids=["truncated-varint", "truncated-string", "mismatched-columns", "extra-out-of-range"],
)
def test_corrupt_track_raises_decode_error(payload: bytes) -> None:
    with pytest.raises(TrackDecodeError):
        decode_track(payload)


def test_differential_track_with_mismatched_columns_raises_decode_error() -> None:
    blob = encode_track_group([_mismatched_columns()], incremental=False)

    with pytest.raises(TrackDecodeError, match="column lat"):
        decode_track_group(blob)


def test_truncated_group_raises_decode_error() -> None:
    blob = encode_track_group([encode_differential_track(_track())], incremental=False)

    with pytest.raises(TrackDecodeError, match="malformed group"):
        decode_track_group(blob[:-3])


def test_group_rejects_payload_that_is_not_a_track() -> None:
    with pytest.raises(TrackEncodingError):
        encode_track_group([b"\xff"], incremental=False)


def test_negative_time_does_not_fit_the_wire_format() -> None:
    track = LiveTrack(lat=[1.0], lon=[2.0], alt=[3], time_sec=[-5], flags=[1])

    with pytest.raises(TrackEncodingError, match="does not fit"):
        encode_track(track)
