"""Deployment endpoints.

Endpoints:
  - POST /deployments                (create; 409 with ``conflictingIds``)
  - GET  /deployments                (list, filters + pagination)
  - GET  /deployments/:id            (fetch one)
  - PUT  /deployments/:id            (start, complete, cancel)
  - PUT  /deployments/:id/tracking   (real-time snapshot; 409 once terminal)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from fleetsync._api._common import raise_for_response, record_of, records_of
from fleetsync._transport import Transport
from fleetsync.exceptions import RecordNotFoundError
from fleetsync.models.deployment import Deployment, TrackingSnapshot
from fleetsync.models.requests import CreateDeploymentRequest, DeploymentQuery, DeploymentStatusUpdate

_logger = logging.getLogger(__name__)

_ENDPOINT = "/deployments"
_KIND = "deployment"


def _item_endpoint(deployment_id: str) -> str:
    return f"{_ENDPOINT}/{quote(deployment_id, safe='')}"


def _record(body: object) -> dict[str, Any]:
    record = record_of(body, "deployment")
    return record if any(key in record for key in ("deploymentId", "id", "_id")) else {}


async def create_deployment(
    transport: Transport,
    request: CreateDeploymentRequest,
    *,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    response = await transport.request(
        "POST",
        _ENDPOINT,
        json_body=request.to_wire(),
        idempotency_key=idempotency_key,
    )
    return _record(raise_for_response(response, kind=_KIND))


async def update_deployment(
    transport: Transport,
    deployment_id: str,
    update: DeploymentStatusUpdate,
    *,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    endpoint = _item_endpoint(deployment_id)
    response = await transport.request("PUT", endpoint, json_body=update.to_wire(), idempotency_key=idempotency_key)
    return _record(raise_for_response(response, kind=_KIND, record_id=deployment_id))


async def update_tracking(
    transport: Transport,
    deployment_id: str,
    snapshot: TrackingSnapshot,
    *,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    """Push a tracking snapshot.

    Returns
    -------
    dict
        Updated deployment record, or ``{}`` if the server only acknowledged.
    """
    endpoint = f"{_item_endpoint(deployment_id)}/tracking"
    response = await transport.request("PUT", endpoint, json_body=snapshot.to_wire(), idempotency_key=idempotency_key)
    return _record(raise_for_response(response, kind=_KIND, record_id=deployment_id))


async def get_deployment(transport: Transport, deployment_id: str) -> Deployment:
    response = await transport.request("GET", _item_endpoint(deployment_id))
    record = _record(raise_for_response(response, kind=_KIND, record_id=deployment_id))
    if not record:
        raise RecordNotFoundError(_KIND, deployment_id)
    return Deployment.model_validate(record)


async def list_deployments(transport: Transport, query: DeploymentQuery) -> list[Deployment]:
    response = await transport.request("GET", _ENDPOINT, params=query.to_params())
    deployments: list[Deployment] = []
    for raw in records_of(raise_for_response(response, kind=_KIND), "deployments"):
        try:
            deployments.append(Deployment.model_validate(raw))
        except ValueError:
            _logger.debug(
                "Skipping malformed deployment %s", raw.get("deploymentId") or raw.get("_id"), exc_info=True
            )
    return deployments
