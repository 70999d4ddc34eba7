from __future__ import annotations
from datetime import datetime
import math

from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Upper bound for money fields; matches Numeric(12, 2)
MAX_MONEY = 9_999_999_999.99


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """400-level business rule conflict (e.g., duplicate login name, row still referenced)."""


class InvalidStateError(ValueError):
    """400-level lifecycle violation (e.g., editing a confirmed sale)."""


class NotFoundError(LookupError):
    """404-level: referenced row is absent or soft-deleted."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


UNIT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "active"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"unit_id", "name", "sell_price", "margin_perc", "active"},
    required_on_create={"unit_id", "name", "sell_price"},
)

PAYMENT_TYPE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "abbreviation", "active"},
    required_on_create={"name", "abbreviation"},
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"unit_id", "payment_type_id", "vendor", "description", "cost", "category", "occurred_at"},
    required_on_create={"unit_id", "payment_type_id", "vendor", "description", "cost", "category"},
)

BUSINESS_PLAN_POLICY = ModelValidationPolicy(
    writable_fields={"unit_id", "year", "month", "revenue", "indirect_perc", "tax", "ooc"},
    required_on_create={"unit_id", "year", "month", "revenue", "indirect_perc", "tax", "ooc"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: ints and plain digit strings only."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_number(key: str, value: Any) -> float:
    """Numbers and numeric strings; rejects booleans, NaN and infinities."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Numeric):
        return coerce_number(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def missing_fields(payload: dict, fields: Iterable[str]) -> list[str]:
    """Required keys that are absent, null or blank strings, in the given order."""
    missing = []
    for f in fields:
        value = payload.get(f)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(f)
    return missing


def require_fields(payload: dict, fields: Iterable[str]) -> None:
    missing = missing_fields(payload, fields)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        require_fields(payload, sorted(required))

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}
    invalid: list[str] = []

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            invalid.append(str(e))
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    if invalid:
        raise ValidationError("; ".join(invalid))

    return patch


def _check_money(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        if patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")
        if patch[key] > MAX_MONEY:
            raise ValidationError(f"{key} cannot exceed {MAX_MONEY:,.2f}")


def _check_percentage(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        if not 0 <= patch[key] <= 100:
            raise ValidationError(f"{key} must be between 0 and 100")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_money(patch, "sell_price")
    _check_percentage(patch, "margin_perc")


def enforce_rules_expense(patch: dict, categories: Iterable[str]) -> None:
    if "category" in patch:
        category = (patch["category"] or "").upper()
        allowed = sorted(categories)
        if category not in allowed:
            raise ValidationError(f"category must be one of {', '.join(allowed)}")
        patch["category"] = category
    _check_money(patch, "cost")


def enforce_rules_business_plan(patch: dict) -> None:
    if "month" in patch and not 1 <= patch["month"] <= 12:
        raise ValidationError("month must be between 1 and 12")
    if "year" in patch and not 1900 <= patch["year"] <= 9999:
        raise ValidationError("year is out of range")
    for key in ("revenue", "tax", "ooc"):
        _check_money(patch, key)
    _check_percentage(patch, "indirect_perc")
