"""Position report models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from livetrack.ingestion.normalize import normalize_timestamp_ms, safe_bool, safe_float, safe_str
from livetrack.models._base import FeedBaseModel, FeedEnum


class Provider(FeedEnum):
    """Supported location-sharing providers.

    The enumeration order is the order in which provider updates are applied
    to an entity, so a later provider wins timestamp collisions.
    """

    NONE = 0
    INREACH = 1
    SPOT = 2
    SKYLINES = 3
    FLYME = 4

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def prop_name(self) -> str:
        """Name of the tracker sub-record on an entity."""
        return self.name.lower()


_DISPLAY_NAMES: dict[Provider, str] = {
    Provider.NONE: "unknown",
    Provider.INREACH: "inReach",
    Provider.SPOT: "Spot",
    Provider.SKYLINES: "Skylines",
    Provider.FLYME: "FlyMe",
}

#: Providers that own an account sub-record (everything but ``NONE``).
TRACKER_PROVIDERS: tuple[Provider, ...] = tuple(p for p in Provider if p is not Provider.NONE)


class LivePoint(FeedBaseModel):
    """One fix as produced by a vendor feed parser.

    Parameters
    ----------
    lat, lon : float
        Position in degrees.
    alt : float
        Altitude in meters.
    timestamp : int
        Epoch milliseconds (seconds are accepted and converted).
    device : Provider
        Provider that reported the fix.
    valid : bool or None
        Whether the GPS fix is valid. ``None`` is considered valid, only
        ``False`` is invalid.
    emergency, low_battery : bool or None
        Status bits, ``None`` counts as ``False``.
    speed : float or None
        Ground speed in km/h.
    message : str or None
        Free-text message attached to the fix.
    """

    lat: float = Field(validation_alias=AliasChoices("lat", "latitude"))
    lon: float = Field(validation_alias=AliasChoices("lon", "lng", "longitude"))
    alt: float = Field(default=0.0, validation_alias=AliasChoices("alt", "altitude", "elevation"))
    timestamp: int = Field(validation_alias=AliasChoices("timestamp", "time", "timeMs"))
    device: Provider = Provider.NONE
    valid: bool | None = None
    emergency: bool | None = None
    low_battery: bool | None = Field(default=None, validation_alias=AliasChoices("lowBattery", "low_battery", "lowBat"))
    speed: float | None = None
    message: str | None = None

    @field_validator("lat", "lon", "alt", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float:
        parsed = safe_float(value)
        if parsed is None:
            raise ValueError(f"not a number: {value!r}")
        return parsed

    @field_validator("speed", mode="before")
    @classmethod
    def _coerce_speed(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int:
        parsed = normalize_timestamp_ms(value)
        if parsed is None:
            raise ValueError(f"invalid timestamp: {value!r}")
        return parsed

    @field_validator("valid", "emergency", "low_battery", mode="before")
    @classmethod
    def _coerce_bools(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("message", mode="before")
    @classmethod
    def _coerce_message(cls, value: Any) -> str | None:
        return safe_str(value)


class FixFlags(BaseModel):
    """Decoded status bits of one fix."""

    model_config = ConfigDict(frozen=True)

    valid: bool = True
    emergency: bool = False
    low_battery: bool = False
    device: Provider = Provider.NONE


class FixExtra(BaseModel):
    """Optional per-fix data, stored sparsely by fix index."""

    model_config = ConfigDict(frozen=True)

    speed: float | None = None
    message: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.speed is None and self.message is None
