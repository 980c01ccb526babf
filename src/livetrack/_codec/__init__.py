"""Binary codecs: status flags, error tallies, differential arrays and the protobuf wire format."""

from livetrack._codec.differential import (
    COORD_SCALE,
    diff_decode_array,
    diff_decode_track,
    diff_encode_array,
    diff_encode_track,
)
from livetrack._codec.flags import (
    decode_flags,
    encode_flags,
    get_fix_device,
    is_emergency_fix,
    is_low_bat_fix,
    is_valid_fix,
)
from livetrack._codec.tally import error_rate, increment_requests, split_tally
from livetrack._codec.wire import (
    decode_differential_track,
    decode_meta,
    decode_track,
    decode_track_group,
    encode_differential_track,
    encode_meta,
    encode_track,
    encode_track_group,
)

__all__ = [
    "COORD_SCALE",
    "decode_differential_track",
    "decode_flags",
    "decode_meta",
    "decode_track",
    "decode_track_group",
    "diff_decode_array",
    "diff_decode_track",
    "diff_encode_array",
    "diff_encode_track",
    "encode_differential_track",
    "encode_flags",
    "encode_meta",
    "encode_track",
    "encode_track_group",
    "error_rate",
    "get_fix_device",
    "increment_requests",
    "is_emergency_fix",
    "is_low_bat_fix",
    "is_valid_fix",
    "split_tally",
]
