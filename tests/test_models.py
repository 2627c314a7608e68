"""Tests for Pydantic model parsing with FleetBaseModel + FleetEnum."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

import pytest
from pydantic import ValidationError as PydanticValidationError

from fleetsync.models._base import parse_timestamp
from fleetsync.models.booking import Booking, BookingStats, PaymentMode
from fleetsync.models.deployment import Deployment
from fleetsync.models.requests import BookingQuery, CreateBookingRequest
from fleetsync.models.status import BookingStatus, VehicleStatus
from fleetsync.models.sync import EntityKind, SyncOperation, SyncQueueItem, build_idempotency_key
from fleetsync.models.vehicle import Vehicle


def _booking(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "bookingId": "BK1",
        "customerName": "Asha Rao",
        "customerPhone": "9876543210",
        "bookingType": "rental",
        "subType": "package",
        "pickupLocation": "MG Road",
        "scheduledDate": "2026-11-02T00:00:00.000Z",
        "scheduledTime": "14:15",
        "estimatedCost": 1200,
    }
    data.update(overrides)
    return data


# ------------------------------------------------------------------
# FleetBaseModel
# ------------------------------------------------------------------


class TestFleetBaseModel:
    def test_envelope_is_unwrapped(self) -> None:
        booking = Booking.model_validate({"success": True, "data": _booking()})
        assert booking.id == "BK1"

    def test_blank_strings_use_defaults(self) -> None:
        booking = Booking.model_validate(_booking(customerEmail="  ", paymentMode=""))
        assert booking.customer_email is None
        assert booking.payment_mode == PaymentMode.CASH

    def test_to_wire_is_camel_case_without_nones(self) -> None:
        wire = Booking.model_validate(_booking(partPaymentUPI=None)).to_wire()
        assert wire["bookingId"] == "BK1"
        assert wire["scheduledDate"] == "2026-11-02"
        assert "customerEmail" not in wire
        assert wire["pendingSync"] is False

    def test_unknown_enum_value_is_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            Booking.model_validate(_booking(status="approved"))

    @pytest.mark.parametrize(
        "raw",
        ["2026-11-01T08:00:00Z", "2026-11-01T08:00:00+00:00", 1793520000, 1793520000000, datetime(2026, 11, 1, 8)],
    )
    def test_parse_timestamp_normalizes_to_utc(self, raw: Any) -> None:
        assert parse_timestamp(raw) == datetime(2026, 11, 1, 8, 0, tzinfo=UTC)


# ------------------------------------------------------------------
# Vehicle translation boundary
# ------------------------------------------------------------------


class TestVehicle:
    def test_pascal_case_registry_document(self) -> None:
        vehicle = Vehicle.model_validate(
            {
                "Vehicle_ID": "EVZ-14",
                "Registration_Number": "KA05MN4411",
                "Battery_Level": "76",
                "Status": "Active",
                "Current_Location": {"lat": 12.93, "lng": 77.62},
                "Seating_Capacity": 4,
            }
        )
        assert vehicle.id == "EVZ-14"
        assert vehicle.registration_number == "KA05MN4411"
        assert vehicle.battery_level == 76
        assert vehicle.status == VehicleStatus.AVAILABLE
        assert vehicle.location is not None
        assert vehicle.location.latitude == 12.93

    def test_nested_backend_document(self) -> None:
        vehicle = Vehicle.model_validate(
            {
                "_id": "65a1f0",
                "vehicleNumber": "KA01AB1234",
                "batteryStatus": {"currentLevel": 55, "health": 97},
                "currentLocation": {"latitude": 12.97, "longitude": 77.59, "address": "Depot 1"},
                "mileage": {"total": 18250},
                "status": "Under Maintenance",
            }
        )
        assert vehicle.id == "65a1f0"
        assert vehicle.battery_level == 55
        assert vehicle.odometer_km == 18250
        assert vehicle.status == VehicleStatus.MAINTENANCE
        assert not vehicle.is_available

    def test_serializes_canonical_camel_case(self) -> None:
        wire = Vehicle.model_validate(
            {"Vehicle_ID": "EVZ-1", "Registration_Number": "KA01", "Battery_Level": 40, "Status": "available"}
        ).to_wire()
        assert wire == {
            "id": "EVZ-1",
            "registrationNumber": "KA01",
            "batteryLevel": 40.0,
            "status": "available",
        }


# ------------------------------------------------------------------
# Booking rules
# ------------------------------------------------------------------


class TestBooking:
    def test_scheduled_date_keeps_only_the_date(self) -> None:
        booking = Booking.model_validate(_booking())
        assert booking.scheduled_date == date(2026, 11, 2)
        assert booking.scheduled_start == datetime(2026, 11, 2, 14, 15, tzinfo=UTC)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"customerPhone": "5123456789"},
            {"scheduledTime": "25:00"},
            {"estimatedCost": 0},
            {"customerEmail": "not-an-email"},
            {"pickupLocation": None},
            {"bookingType": "airport", "subType": "drop", "dropLocation": None},
            {"paymentMode": "Part Payment", "partPaymentCash": 1000, "partPaymentUPI": 500},
            {"paymentMode": "Part Payment"},
        ],
    )
    def test_create_request_rejects_invalid_fields(self, overrides: dict[str, Any]) -> None:
        data = _booking(**overrides)
        data.pop("bookingId")
        with pytest.raises(PydanticValidationError):
            CreateBookingRequest.model_validate(data)

    def test_create_request_rejects_unknown_fields(self) -> None:
        data = _booking(status="confirmed")
        data.pop("bookingId")
        with pytest.raises(PydanticValidationError):
            CreateBookingRequest.model_validate(data)

    def test_actual_cost_only_on_completed(self) -> None:
        with pytest.raises(PydanticValidationError):
            Booking.model_validate(_booking(status="in_progress", actualCost=1300))
        booking = Booking.model_validate(_booking(status="completed", actualCost=1300, rating=4))
        assert booking.total_payment == 1300

    def test_cancelled_requires_reason(self) -> None:
        with pytest.raises(PydanticValidationError):
            Booking.model_validate(_booking(status="cancelled", cancellationReason="nope"))

    def test_part_payment_total(self) -> None:
        booking = Booking.model_validate(
            _booking(paymentMode="Part Payment", partPaymentCash=500, partPaymentUPI=300)
        )
        assert booking.total_payment == 800

    def test_stats_ignore_inactive_bookings(self) -> None:
        bookings = [
            Booking.model_validate(_booking(bookingId="BK1", status="completed", actualCost=1500, rating=5)),
            Booking.model_validate(_booking(bookingId="BK2", vehicleId="EVZ-1", pendingSync=True)),
            Booking.model_validate(
                _booking(bookingId="BK3", status="cancelled", cancellationReason="Customer no-show", isActive=False)
            ),
        ]

        stats = BookingStats.from_bookings(bookings)

        assert stats.total_bookings == 2
        assert stats.total_revenue == 2700
        assert stats.average_cost == 1350
        assert stats.status_breakdown[BookingStatus.COMPLETED.value] == 1
        assert stats.status_breakdown[BookingStatus.CANCELLED.value] == 0
        assert stats.average_rating == 5.0
        assert stats.unique_vehicles == 1
        assert stats.pending_sync == 1

    def test_query_params(self) -> None:
        query = BookingQuery.model_validate({"status": ["pending", "confirmed"], "dateFrom": "2026-11-01", "page": 2})
        assert query.to_params() == {
            "page": "2",
            "limit": "50",
            "status": "pending,confirmed",
            "dateFrom": "2026-11-01",
        }


# ------------------------------------------------------------------
# Deployment and sync items
# ------------------------------------------------------------------


class TestDeployment:
    def test_window_must_be_positive(self) -> None:
        with pytest.raises(PydanticValidationError):
            Deployment.model_validate(
                {
                    "deploymentId": "DP1",
                    "vehicleId": "EVZ-1",
                    "pilotId": "P-1",
                    "startTime": "2026-11-02T10:00:00Z",
                    "estimatedEndTime": "2026-11-02T10:00:00Z",
                    "startLocation": [12.97, 77.59],
                    "purpose": "delivery",
                }
            )

    def test_mongo_id_is_accepted(self) -> None:
        deployment = Deployment.model_validate(
            {
                "_id": "65b2",
                "vehicleId": "EVZ-1",
                "pilotId": "P-1",
                "startTime": "2026-11-02T10:00:00Z",
                "estimatedEndTime": "2026-11-02T11:30:00Z",
                "startLocation": {"lat": 12.97, "lon": 77.59},
                "purpose": "relocation",
            }
        )
        assert deployment.id == "65b2"
        assert deployment.duration_minutes == 90


class TestSyncQueueItem:
    def test_default_idempotency_key(self) -> None:
        at = datetime(2026, 11, 1, 8, 0, tzinfo=UTC)
        item = SyncQueueItem(
            entity_kind=EntityKind.BOOKING,
            operation=SyncOperation.CREATE,
            entity_id="SB1793520000000",
            enqueued_at=at,
        )
        assert item.idempotency_key == "SB1793520000000:create:1793520000000"
        assert item.idempotency_key == build_idempotency_key(item.entity_id, item.operation, at)
        assert item.is_due(at)

    def test_round_trips_through_store_form(self) -> None:
        item = SyncQueueItem(
            entity_kind=EntityKind.DEPLOYMENT,
            operation=SyncOperation.UPDATE,
            entity_id="DP1",
            payload={"status": "in_progress"},
            enqueued_at=datetime(2026, 11, 1, 8, 0, tzinfo=UTC),
        )
        restored = SyncQueueItem.model_validate(item.model_dump(mode="json", by_alias=True))
        assert restored == item
