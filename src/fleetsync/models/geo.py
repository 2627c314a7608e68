"""Geographic point model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from fleetsync.models._base import FleetBaseModel


class GeoPoint(FleetBaseModel):
    """A WGS84 coordinate with an optional street address.

    Accepts ``lat``/``lng``/``lon`` spellings and ``[lat, lng]`` pairs.
    """

    latitude: float = Field(ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon"))
    address: str | None = Field(default=None, max_length=200)

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, values: Any) -> Any:
        if isinstance(values, (list, tuple)) and len(values) == 2:
            return {"latitude": values[0], "longitude": values[1]}
        return values
