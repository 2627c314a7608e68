"""Booking record model."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time, timedelta

from pydantic import Field, field_validator, model_validator

from fleetsync._constants import MIN_CANCELLATION_REASON_LENGTH
from fleetsync.models._base import FleetBaseModel, FleetEnum, UtcDatetime
from fleetsync.models.status import BookingStatus

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


class BookingType(FleetEnum):
    AIRPORT = "airport"
    RENTAL = "rental"
    SUBSCRIPTION = "subscription"


class BookingSubType(FleetEnum):
    PICKUP = "pickup"
    DROP = "drop"
    PACKAGE = "package"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PaymentMode(FleetEnum):
    CASH = "Cash"
    UPI = "UPI"
    PART_PAYMENT = "Part Payment"
    CARD = "Card"
    WALLET = "Wallet"


class PaymentStatus(FleetEnum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingFields(FleetBaseModel):
    """Customer, schedule, location and cost fields shared by the record and its create DTO.

    The cross-field rules here hold for every booking regardless of
    status.
    """

    customer_name: str = Field(min_length=2, max_length=100)
    customer_phone: str
    customer_email: str | None = None
    booking_type: BookingType
    sub_type: BookingSubType | None = None
    pickup_location: str | None = Field(default=None, max_length=200)
    drop_location: str | None = Field(default=None, max_length=200)
    scheduled_date: date
    scheduled_time: str
    estimated_cost: float = Field(gt=0)
    payment_mode: PaymentMode = PaymentMode.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    part_payment_cash: float | None = Field(default=None, ge=0)
    part_payment_upi: float | None = Field(default=None, ge=0, alias="partPaymentUPI")
    vehicle_id: str | None = None
    pilot_id: str | None = None
    special_requirements: str | None = Field(default=None, max_length=500)
    distance: float | None = Field(default=None, gt=0)
    duration: int | None = Field(default=None, gt=0)
    """Expected trip duration in minutes."""

    @field_validator("customer_phone")
    @classmethod
    def _valid_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("must be a valid 10-digit mobile number")
        return value

    @field_validator("customer_email")
    @classmethod
    def _valid_email(cls, value: str | None) -> str | None:
        if value is None:
            return value
        lowered = value.lower()
        if not re.match(r"^\S+@\S+\.\S+$", lowered):
            raise ValueError("must be a valid email address")
        return lowered

    @field_validator("scheduled_time")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("must be HH:MM (24-hour)")
        return value

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _date_part(cls, value: object) -> object:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @model_validator(mode="after")
    def _check_booking_rules(self) -> BookingFields:
        if self.booking_type in (BookingType.AIRPORT, BookingType.RENTAL) and not self.pickup_location:
            raise ValueError("pickupLocation is required for airport and rental bookings")
        if self.booking_type == BookingType.AIRPORT and self.sub_type == BookingSubType.DROP and not self.drop_location:
            raise ValueError("dropLocation is required for airport drop bookings")
        if self.payment_mode == PaymentMode.PART_PAYMENT:
            total = (self.part_payment_cash or 0) + (self.part_payment_upi or 0)
            if total <= 0:
                raise ValueError("Part payment amounts must be greater than 0")
            if total > self.estimated_cost:
                raise ValueError("Total part payment cannot exceed estimated cost")
        return self

    @property
    def scheduled_start(self) -> datetime:
        """Scheduled date and time as an aware UTC datetime."""
        hours, minutes = (int(part) for part in self.scheduled_time.split(":"))
        return datetime.combine(self.scheduled_date, time(hours, minutes), tzinfo=UTC)

    def scheduled_end(self, default_minutes: int) -> datetime:
        return self.scheduled_start + timedelta(minutes=self.duration or default_minutes)


class Booking(BookingFields):
    """A customer booking (airport transfer, rental or subscription).

    ``pending_sync`` is local metadata: ``True`` while the record has
    only been accepted locally and is waiting in the sync queue.
    """

    id: str = Field(validation_alias="bookingId", serialization_alias="bookingId")
    status: BookingStatus = BookingStatus.PENDING
    actual_cost: float | None = Field(default=None, gt=0)
    rating: int | None = Field(default=None, ge=1, le=5)
    feedback: str | None = Field(default=None, max_length=1000)
    cancellation_reason: str | None = Field(default=None, max_length=500)
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
    actual_start_time: UtcDatetime | None = None
    completed_at: UtcDatetime | None = None
    cancelled_at: UtcDatetime | None = None
    is_active: bool = True
    pending_sync: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, values: object) -> object:
        if isinstance(values, dict) and "bookingId" not in values:
            for key in ("id", "_id"):
                if values.get(key):
                    return {**values, "bookingId": values[key]}
        return values

    @model_validator(mode="after")
    def _check_status_invariants(self) -> Booking:
        if self.actual_cost is not None and self.status != BookingStatus.COMPLETED:
            raise ValueError("actualCost may only be set on completed bookings")
        if (self.rating is not None or self.feedback) and self.status != BookingStatus.COMPLETED:
            raise ValueError("rating and feedback are only accepted after completion")
        if self.status == BookingStatus.CANCELLED:
            reason = (self.cancellation_reason or "").strip()
            if len(reason) < MIN_CANCELLATION_REASON_LENGTH:
                raise ValueError(
                    f"cancellationReason of at least {MIN_CANCELLATION_REASON_LENGTH} characters is required"
                )
        return self

    @property
    def total_payment(self) -> float:
        if self.payment_mode == PaymentMode.PART_PAYMENT:
            return (self.part_payment_cash or 0) + (self.part_payment_upi or 0)
        return self.actual_cost or self.estimated_cost


class BookingStats(FleetBaseModel):
    """Aggregate figures over a set of active bookings.

    Revenue and cost use ``actualCost`` where known, else ``estimatedCost``.
    """

    total_bookings: int = 0
    total_revenue: float = 0.0
    average_cost: float = 0.0
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    type_breakdown: dict[str, int] = Field(default_factory=dict)
    payment_breakdown: dict[str, int] = Field(default_factory=dict)
    total_ratings: int = 0
    average_rating: float | None = None
    unique_vehicles: int = 0
    pending_sync: int = 0

    @classmethod
    def from_bookings(cls, bookings: list[Booking]) -> BookingStats:
        active = [b for b in bookings if b.is_active]
        if not active:
            return cls()
        costs = [b.actual_cost or b.estimated_cost for b in active]
        ratings = [b.rating for b in active if b.rating is not None]
        status_counts = dict.fromkeys(BookingStatus.values(), 0)
        type_counts = dict.fromkeys(BookingType.values(), 0)
        payment_counts = dict.fromkeys(PaymentMode.values(), 0)
        for booking in active:
            status_counts[booking.status.value] += 1
            type_counts[booking.booking_type.value] += 1
            payment_counts[booking.payment_mode.value] += 1
        return cls(
            total_bookings=len(active),
            total_revenue=round(sum(costs), 2),
            average_cost=round(sum(costs) / len(costs), 2),
            status_breakdown=status_counts,
            type_breakdown=type_counts,
            payment_breakdown=payment_counts,
            total_ratings=len(ratings),
            average_rating=round(sum(ratings) / len(ratings), 1) if ratings else None,
            unique_vehicles=len({b.vehicle_id for b in active if b.vehicle_id}),
            pending_sync=sum(1 for b in active if b.pending_sync),
        )
