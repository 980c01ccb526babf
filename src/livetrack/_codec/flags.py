"""Per-fix status flags packed into one integer.

Layout (LSB first)::

    bit 0     valid fix
    bit 1     emergency
    bit 2     low battery
    bits 3-5  device (:class:`~livetrack.models.fix.Provider`)
"""

from __future__ import annotations

from livetrack.exceptions import TrackEncodingError
from livetrack.models.fix import FixFlags, Provider

_VALID = 1 << 0
_EMERGENCY = 1 << 1
_LOW_BAT = 1 << 2
_DEVICE_SHIFT = 3
_DEVICE_BITS = 3
_DEVICE_MASK = ((1 << _DEVICE_BITS) - 1) << _DEVICE_SHIFT


def encode_flags(
    *,
    valid: bool | None = None,
    emergency: bool | None = None,
    low_battery: bool | None = None,
    device: Provider | int = Provider.NONE,
) -> int:
    """Pack status bits.

    ``valid`` is true unless it is explicitly ``False``; the other booleans
    are false unless explicitly ``True``.
    """
    device_value = int(device)
    if not 0 <= device_value < (1 << _DEVICE_BITS):
        raise TrackEncodingError(f"device {device_value} does not fit in {_DEVICE_BITS} bits")
    flags = device_value << _DEVICE_SHIFT
    if valid is not False:
        flags |= _VALID
    if emergency is True:
        flags |= _EMERGENCY
    if low_battery is True:
        flags |= _LOW_BAT
    return flags


def decode_flags(flags: int) -> FixFlags:
    return FixFlags(
        valid=is_valid_fix(flags),
        emergency=is_emergency_fix(flags),
        low_battery=is_low_bat_fix(flags),
        device=get_fix_device(flags),
    )


def is_valid_fix(flags: int) -> bool:
    return bool(flags & _VALID)


def is_emergency_fix(flags: int) -> bool:
    return bool(flags & _EMERGENCY)


def is_low_bat_fix(flags: int) -> bool:
    return bool(flags & _LOW_BAT)


def get_fix_device(flags: int) -> Provider:
    return Provider((flags & _DEVICE_MASK) >> _DEVICE_SHIFT)
