"""Vehicle registry endpoint (read-only).

Endpoints:
  - GET /vehicles
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fleetsync._api._common import raise_for_response, records_of
from fleetsync._transport import Transport
from fleetsync.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)

_ENDPOINT = "/vehicles"


async def fetch_vehicle_list(transport: Transport, params: Mapping[str, str] | None = None) -> list[Vehicle]:
    """Fetch the vehicle pool in canonical form.

    Registry documents in any supported naming scheme are translated by
    :class:`Vehicle`; entries that still fail validation are skipped.
    """
    response = await transport.request("GET", _ENDPOINT, params=params)
    vehicles: list[Vehicle] = []
    skipped = 0
    for raw in records_of(raise_for_response(response, kind="vehicle"), "vehicles"):
        try:
            vehicles.append(Vehicle.model_validate(raw))
        except ValueError:
            skipped += 1
    if skipped:
        _logger.debug("Skipped %d vehicle record(s) that failed validation", skipped)
    return vehicles
