"""Columnar live track model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from livetrack.models.fix import FixExtra


class LiveTrack(BaseModel):
    """A track stored column by column, oldest fix first.

    All per-fix lists have the same length. ``extra`` is sparse and keyed by
    fix index. Instances are treated as immutable values: every operation in
    :mod:`livetrack.state.track` returns a new track.

    Parameters
    ----------
    id : int
        Entity id the track belongs to (``0`` when not attached).
    name : str
        Display name of the entity.
    lat, lon : list of float
        Coordinates in degrees, 5 decimals.
    alt : list of int
        Altitude in meters.
    time_sec : list of int
        Epoch seconds, strictly increasing.
    flags : list of int
        Packed status flags, see :mod:`livetrack._codec.flags`.
    extra : dict of int to FixExtra
        Optional data (speed, message) by fix index.
    """

    model_config = ConfigDict(extra="forbid")

    id: int = 0
    name: str = ""
    lat: list[float] = Field(default_factory=list)
    lon: list[float] = Field(default_factory=list)
    alt: list[int] = Field(default_factory=list)
    time_sec: list[int] = Field(default_factory=list)
    flags: list[int] = Field(default_factory=list)
    extra: dict[int, FixExtra] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_columns(self) -> LiveTrack:
        size = len(self.time_sec)
        for column in ("lat", "lon", "alt", "flags"):
            if len(getattr(self, column)) != size:
                raise ValueError(f"column {column} has {len(getattr(self, column))} values, expected {size}")
        for index in self.extra:
            if not 0 <= index < size:
                raise ValueError(f"extra index {index} out of range")
        return self

    @property
    def size(self) -> int:
        return len(self.time_sec)

    @property
    def last_time_sec(self) -> int | None:
        return self.time_sec[-1] if self.time_sec else None
