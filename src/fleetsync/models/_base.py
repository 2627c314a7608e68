"""Base model and enum for fleetsync records.

Every record and DTO inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so the camelCase wire format maps
  automatically to snake_case fields, and ``populate_by_name`` so
  Python callers can use either.
* A ``model_validator(mode="before")`` that unwraps the backend's
  ``{"data": {...}}`` envelope and strips blank strings so the field
  default is used.
* :meth:`FleetBaseModel.to_wire` which always serializes camelCase JSON.

Status and category enums inherit from :class:`FleetEnum`, a closed
``StrEnum``: unknown values are rejected rather than mapped to a
placeholder.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce ISO strings, epoch seconds/milliseconds or datetimes to aware UTC.

    Naive datetimes are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"unsupported timestamp: {value!r}")


UtcDatetime = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings and epoch numbers to aware UTC datetimes."""


def utcnow() -> datetime:
    return datetime.now(UTC)


class FleetEnum(enum.StrEnum):
    """Base for closed string enumerations shared by client and server."""

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class FleetBaseModel(BaseModel):
    """Base for fleetsync records and DTOs."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _unwrap_and_clean(cls, values: Any) -> Any:
        """Unwrap ``{"data": {...}}`` envelopes and drop blank strings."""
        if not isinstance(values, dict):
            return values
        working = values
        nested = working.get("data")
        if isinstance(nested, dict) and len(working.keys() - {"data", "success", "message"}) == 0:
            working = nested
        return {key: value for key, value in working.items() if not (isinstance(value, str) and not value.strip())}

    def to_wire(self, **kwargs: Any) -> dict[str, Any]:
        """JSON-compatible camelCase dict, ``None`` fields omitted."""
        kwargs.setdefault("exclude_none", True)
        return self.model_dump(mode="json", by_alias=True, **kwargs)
