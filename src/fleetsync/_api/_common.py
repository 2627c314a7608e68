"""Shared helpers for the REST endpoint modules.

This module centralizes the most repeated patterns:
- unwrapping the ``{"success": ..., "data": ...}`` envelope
- mapping non-2xx responses onto the exception hierarchy
- turning response bodies into records

It is internal to fleetsync and may change at any time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fleetsync._transport import HttpResponse
from fleetsync.exceptions import (
    ConflictError,
    IllegalTransitionError,
    RecordNotFoundError,
    RemoteApiError,
    TerminalStateError,
    ValidationError,
)

_ENVELOPE_KEYS = frozenset({"data", "success", "message", "pagination", "meta", "total", "count"})
_TERMINAL = frozenset({"completed", "cancelled"})


def unwrap(body: Any) -> Any:
    """Return the payload of a ``{"data": ...}`` envelope, or *body* unchanged."""
    if isinstance(body, Mapping) and "data" in body and set(body) <= _ENVELOPE_KEYS:
        return body["data"]
    return body


def _message(body: Any, default: str) -> str:
    if isinstance(body, Mapping):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return default


def field_errors(body: Any) -> dict[str, str]:
    """Normalize ``errors`` as either ``{field: msg}`` or ``[{field|path|param, message|msg}]``."""
    if not isinstance(body, Mapping):
        return {}
    raw = body.get("errors")
    if isinstance(raw, Mapping):
        return {str(k): str(v) for k, v in raw.items()}
    result: dict[str, str] = {}
    if isinstance(raw, list):
        for entry in raw:
            if not isinstance(entry, Mapping):
                continue
            field = entry.get("field") or entry.get("path") or entry.get("param") or "_"
            result[str(field)] = str(entry.get("message") or entry.get("msg") or "invalid")
    return result


def _conflicting_ids(body: Any) -> list[str]:
    if not isinstance(body, Mapping):
        return []
    ids = body.get("conflictingIds")
    if isinstance(ids, list):
        return [str(i) for i in ids]
    data = body.get("data")
    if isinstance(data, Mapping):
        if isinstance(data.get("conflictingIds"), list):
            return [str(i) for i in data["conflictingIds"]]
        existing = data.get("existingDeploymentId")
        if existing:
            return [str(existing)]
    return []


def raise_for_response(
    response: HttpResponse,
    *,
    kind: str = "record",
    record_id: str | None = None,
) -> Any:
    """Return the unwrapped body of a 2xx response, raise otherwise.

    Raises
    ------
    ValidationError
        400 / 422, with the server's field errors.
    RecordNotFoundError
        404.
    ConflictError
        409 carrying ``conflictingIds`` (or the legacy
        ``data.existingDeploymentId``).
    TerminalStateError, IllegalTransitionError
        Any other 409.
    RemoteApiError
        Any other non-2xx status.
    """
    if response.ok:
        return unwrap(response.body)

    body = response.body
    endpoint = response.endpoint
    status = response.status
    message = _message(body, f"HTTP {status} from {endpoint}")

    if status in (400, 422):
        raise ValidationError(message, errors=field_errors(body))
    if status == 404:
        raise RecordNotFoundError(kind, record_id or endpoint)
    if status == 409:
        conflicting = _conflicting_ids(body)
        if conflicting:
            raise ConflictError(conflicting, message)
        details = body if isinstance(body, Mapping) else {}
        from_status = str(details.get("from") or details.get("currentStatus") or "unknown")
        to_status = str(details.get("to") or details.get("requestedStatus") or "unknown")
        if from_status in _TERMINAL:
            raise TerminalStateError(from_status, to_status)
        raise IllegalTransitionError(from_status, to_status, message)
    raise RemoteApiError(message, status_code=status, endpoint=endpoint)


def record_of(body: Any, key: str) -> dict[str, Any]:
    """Pick the record out of a create/update response (``{key: {...}}`` or bare)."""
    if isinstance(body, Mapping):
        nested = body.get(key)
        if isinstance(nested, Mapping):
            return dict(nested)
        return dict(body)
    return {}


def records_of(body: Any, key: str) -> list[dict[str, Any]]:
    """Pick the record list out of a list response (``[...]`` or ``{key: [...]}``)."""
    if isinstance(body, list):
        return [dict(item) for item in body if isinstance(item, Mapping)]
    if isinstance(body, Mapping):
        nested = body.get(key)
        if isinstance(nested, list):
            return [dict(item) for item in nested if isinstance(item, Mapping)]
    return []
