"""Vehicle reference model.

Vehicles are owned by the vehicle-registry collaborator; this library
only reads them. Registry documents arrive in several shapes: the
camelCase REST schema, the PascalCase data-hub schema
(``Registration_Number``, ``Battery_Level``) and the backend's nested
``batteryStatus``/``currentLocation`` objects. :class:`Vehicle` is the
single translation boundary: it accepts all of them and always
serializes to canonical camelCase.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from fleetsync.models._base import FleetBaseModel, UtcDatetime
from fleetsync.models.geo import GeoPoint
from fleetsync.models.status import VehicleStatus

# Legacy registry status labels mapped onto the canonical enum.
_STATUS_ALIASES: dict[str, VehicleStatus] = {
    "active": VehicleStatus.AVAILABLE,
    "idle": VehicleStatus.AVAILABLE,
    "in use": VehicleStatus.DEPLOYED,
    "in maintenance": VehicleStatus.MAINTENANCE,
    "under maintenance": VehicleStatus.MAINTENANCE,
    "retired": VehicleStatus.OUT_OF_SERVICE,
}


def _flatten_nested(values: dict[str, Any]) -> dict[str, Any]:
    merged = dict(values)
    battery = merged.get("batteryStatus")
    if isinstance(battery, dict) and "currentLevel" in battery:
        merged.setdefault("batteryLevel", battery["currentLevel"])
    location = merged.get("currentLocation") or merged.get("Current_Location")
    if isinstance(location, dict):
        merged.setdefault("location", location)
    mileage = merged.get("mileage")
    if isinstance(mileage, dict) and "total" in mileage:
        merged.setdefault("odometerKm", mileage["total"])
    return merged


class Vehicle(FleetBaseModel):
    """A fleet vehicle as seen by the matching and conflict logic."""

    id: str = Field(validation_alias=AliasChoices("id", "vehicleId", "Vehicle_ID", "_id", "vehicle_id"))
    """Registry identifier."""
    registration_number: str = Field(
        validation_alias=AliasChoices(
            "registrationNumber", "Registration_Number", "registration_number", "vehicleNumber"
        ),
    )
    """Number plate, unique across the fleet."""
    battery_level: float = Field(
        default=0.0,
        ge=0,
        le=100,
        validation_alias=AliasChoices("batteryLevel", "Battery_Level", "battery_level"),
    )
    """State of charge in percent."""
    status: VehicleStatus = Field(
        default=VehicleStatus.OUT_OF_SERVICE,
        validation_alias=AliasChoices("status", "Status", "vehicleStatus", "Vehicle_Status"),
    )
    location: GeoPoint | None = Field(default=None, validation_alias=AliasChoices("location", "Location"))
    range_km: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("rangeKm", "range", "Range", "range_km"),
    )
    seating_capacity: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("seatingCapacity", "Seating_Capacity", "seating_capacity"),
    )
    last_maintenance_date: UtcDatetime | None = Field(
        default=None,
        validation_alias=AliasChoices("lastMaintenanceDate", "Last_Maintenance_Date", "last_maintenance_date"),
    )
    utilization: float | None = Field(
        default=None,
        ge=0,
        le=1,
        validation_alias=AliasChoices("utilization", "utilizationRate", "Utilization", "utilization_rate"),
    )
    """Share of recent time spent deployed (0..1)."""
    odometer_km: float | None = Field(default=None, ge=0, validation_alias=AliasChoices("odometerKm", "odometer_km"))

    @model_validator(mode="before")
    @classmethod
    def _translate_registry_shapes(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return _flatten_nested(values)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in _STATUS_ALIASES:
                return _STATUS_ALIASES[normalized]
            return normalized.replace(" ", "_")
        return value

    @field_validator("id", "registration_number", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def is_available(self) -> bool:
        return self.status == VehicleStatus.AVAILABLE
