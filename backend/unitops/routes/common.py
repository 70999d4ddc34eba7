# Overview: Shared route helpers: error mapping and query-string parsing.

from __future__ import annotations

from flask import current_app, jsonify, request

from ..extensions import db
from ..services.permission_service import PermissionDeniedError
from ..services.unit_access_service import UnitAccessDeniedError
from ..time_utils import parse_iso_date
from ..validation import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    coerce_int,
)


# Exception type -> HTTP status; first match wins
ERROR_STATUS = (
    (PermissionDeniedError, 403),
    (UnitAccessDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 400),
    (InvalidStateError, 400),
    (ValidationError, 400),
)


def json_error(exc: Exception, action: str):
    """
    JSON error response for an exception raised while handling a request.

    Pending changes are rolled back. Unexpected exceptions are logged and
    reported as a generic 500.
    """
    db.session.rollback()
    for exc_type, status in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return jsonify({"error": str(exc)}), status
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def int_arg(name: str, *, required: bool = True) -> int | None:
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        if required:
            raise ValidationError(f"{name} is required")
        return None
    return coerce_int(name, raw)


def unit_ids_arg(name: str = "unit_ids") -> list[int]:
    """
    Unit ids from the query string.

    Accepts repeated parameters (?unit_ids=1&unit_ids=2) and comma lists
    (?unit_ids=1,2). Duplicates collapse; order is preserved.
    """
    ids: list[int] = []
    for raw in request.args.getlist(name):
        for part in raw.split(","):
            if not part.strip():
                continue
            unit_id = coerce_int(name, part)
            if unit_id not in ids:
                ids.append(unit_id)
    return ids


def date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")


def date_range_args(start: str = "date_from", end: str = "date_to"):
    """Both bounds required; end may not precede start."""
    date_from = date_arg(start)
    date_to = date_arg(end)
    if date_from is None or date_to is None:
        raise ValidationError("Date range is required")
    if date_to < date_from:
        raise ValidationError(f"{end} must not be before {start}")
    return date_from, date_to
