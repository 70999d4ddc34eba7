from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BusinessPlan, Unit
from ..validation import (
    ConflictError,
    NotFoundError,
    BUSINESS_PLAN_POLICY,
    coerce_int,
    require_fields,
    validate_payload,
    enforce_rules_business_plan,
)
from .concurrency import lock_for_update
from .unit_access_service import accessible_unit_ids, require_unit_access


PLAN_FIGURES = ("revenue", "indirect_perc", "tax", "ooc")


def _period(year, month) -> tuple[int, int]:
    period = {"year": coerce_int("year", year), "month": coerce_int("month", month)}
    enforce_rules_business_plan(period)
    return period["year"], period["month"]


def list_plans(context, year, month) -> list[BusinessPlan]:
    """Plans of one (year, month) across the session's units, ordered by unit name."""
    require_fields({"year": year, "month": month}, ["year", "month"])
    year, month = _period(year, month)

    unit_ids = accessible_unit_ids(context)
    if not unit_ids:
        return []

    return (
        db.session.query(BusinessPlan)
        .join(Unit, Unit.id == BusinessPlan.unit_id)
        .filter(
            BusinessPlan.year == year,
            BusinessPlan.month == month,
            BusinessPlan.unit_id.in_(unit_ids),
        )
        .order_by(Unit.name.asc(), BusinessPlan.id.asc())
        .all()
    )


def _validated(payload: dict) -> dict:
    patch = validate_payload(model=BusinessPlan, payload=payload, policy=BUSINESS_PLAN_POLICY, partial=False)
    enforce_rules_business_plan(patch)
    return patch


def _find_plan(unit_id: int, year: int, month: int):
    return lock_for_update(
        db.session.query(BusinessPlan).filter_by(unit_id=unit_id, year=year, month=month)
    ).first()


def upsert_plan(context, payload: dict) -> tuple[BusinessPlan, bool]:
    """
    Create or overwrite the plan for (unit_id, year, month).

    Returns (plan, created). There is never more than one row per key.
    """
    patch = _validated(payload)
    require_unit_access(context, patch["unit_id"])
    if not db.session.get(Unit, patch["unit_id"]):
        raise NotFoundError("Unit not found")

    plan = _find_plan(patch["unit_id"], patch["year"], patch["month"])
    created = plan is None
    if created:
        plan = BusinessPlan(unit_id=patch["unit_id"], year=patch["year"], month=patch["month"])
        db.session.add(plan)

    for key in PLAN_FIGURES:
        setattr(plan, key, patch[key])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A business plan for this unit and month already exists")
    return plan, created


def update_plan(context, payload: dict) -> BusinessPlan:
    """Overwrite the figures of an existing plan; NotFoundError if there is none."""
    patch = _validated(payload)
    require_unit_access(context, patch["unit_id"])

    plan = _find_plan(patch["unit_id"], patch["year"], patch["month"])
    if not plan:
        raise NotFoundError("Business plan not found")

    for key in PLAN_FIGURES:
        setattr(plan, key, patch[key])

    db.session.commit()
    return plan
