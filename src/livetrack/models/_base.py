"""Base model and enum for provider-sourced data.

Every model built from a vendor payload inherits from :class:`FeedBaseModel`
which provides:

* ``alias_generator=to_camel`` so camelCase feed keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips placeholder
  values (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.

Enums inherit from :class:`FeedEnum` which resolves unmapped values to its
``NONE`` member instead of raising.
"""

from __future__ import annotations

import enum
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Placeholder strings vendors use for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan"})


class FeedEnum(enum.IntEnum):
    """Base for enums decoded from feeds and packed flags.

    Every subclass **must** define ``NONE = 0``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FeedEnum:
        if hasattr(cls, "NONE"):
            none: FeedEnum = cls.NONE  # type: ignore[attr-defined]
            return none
        return next(iter(cls))


class FeedBaseModel(BaseModel):
    """Base for models validated from vendor payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original feed dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_feed_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FeedBaseModel._clean_dict(values)
        # Keep an explicit raw= from the caller.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
