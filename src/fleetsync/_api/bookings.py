"""Booking endpoints.

Endpoints:
  - POST   /bookings        (create)
  - GET    /bookings        (list, filters + pagination)
  - GET    /bookings/:id    (fetch one)
  - PUT    /bookings/:id    (status and field update)
  - DELETE /bookings/:id    (cancel, body ``{reason}``)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from fleetsync._api._common import raise_for_response, record_of, records_of
from fleetsync._transport import Transport
from fleetsync.exceptions import RecordNotFoundError
from fleetsync.models.booking import Booking
from fleetsync.models.requests import BookingQuery, BookingStatusUpdate, CreateBookingRequest

_logger = logging.getLogger(__name__)

_ENDPOINT = "/bookings"
_KIND = "booking"


def _item_endpoint(booking_id: str) -> str:
    return f"{_ENDPOINT}/{quote(booking_id, safe='')}"


def _record(body: object) -> dict[str, Any]:
    record = record_of(body, "booking")
    return record if any(key in record for key in ("bookingId", "id", "_id")) else {}


async def create_booking(
    transport: Transport,
    request: CreateBookingRequest,
    *,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    """Create a booking; returns the server record when the response carries one."""
    response = await transport.request(
        "POST",
        _ENDPOINT,
        json_body=request.to_wire(),
        idempotency_key=idempotency_key,
    )
    return _record(raise_for_response(response, kind=_KIND))


async def update_booking(
    transport: Transport,
    booking_id: str,
    update: BookingStatusUpdate,
    *,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    endpoint = _item_endpoint(booking_id)
    response = await transport.request("PUT", endpoint, json_body=update.to_wire(), idempotency_key=idempotency_key)
    return _record(raise_for_response(response, kind=_KIND, record_id=booking_id))


async def cancel_booking(
    transport: Transport,
    booking_id: str,
    reason: str,
    *,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    endpoint = _item_endpoint(booking_id)
    response = await transport.request(
        "DELETE",
        endpoint,
        json_body={"reason": reason},
        idempotency_key=idempotency_key,
    )
    return _record(raise_for_response(response, kind=_KIND, record_id=booking_id))


async def get_booking(transport: Transport, booking_id: str) -> Booking:
    response = await transport.request("GET", _item_endpoint(booking_id))
    record = _record(raise_for_response(response, kind=_KIND, record_id=booking_id))
    if not record:
        # 200 without a record is treated like a miss.
        raise RecordNotFoundError(_KIND, booking_id)
    return Booking.model_validate(record)


async def list_bookings(transport: Transport, query: BookingQuery) -> list[Booking]:
    """Fetch one page of bookings; malformed entries are skipped."""
    response = await transport.request("GET", _ENDPOINT, params=query.to_params())
    bookings: list[Booking] = []
    for raw in records_of(raise_for_response(response, kind=_KIND), "bookings"):
        try:
            bookings.append(Booking.model_validate(raw))
        except ValueError:
            _logger.debug("Skipping malformed booking %s", raw.get("bookingId") or raw.get("_id"), exc_info=True)
    return bookings
