from __future__ import annotations

from ..extensions import db
from ..models import Unit, UnitAccess, Product, Sale, Expense, BusinessPlan
from ..validation import (
    ConflictError,
    NotFoundError,
    UNIT_POLICY,
    validate_payload,
)
from .concurrency import lock_for_update
from .unit_access_service import accessible_unit_ids


def get_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if not unit:
        raise NotFoundError("Unit not found")
    return unit


def list_units() -> list[Unit]:
    """All units, active or not (administration view)."""
    return db.session.query(Unit).order_by(Unit.name.asc()).all()


def list_accessible_units(context) -> list[Unit]:
    """Active units the session may see: everything for super-admin, linked units otherwise."""
    query = db.session.query(Unit).filter(Unit.active.is_(True))
    if not context.is_super_admin:
        unit_ids = accessible_unit_ids(context)
        if not unit_ids:
            return []
        query = query.filter(Unit.id.in_(unit_ids))
    return query.order_by(Unit.name.asc()).all()


def create_unit(payload: dict) -> Unit:
    patch = validate_payload(model=Unit, payload=payload, policy=UNIT_POLICY, partial=False)
    unit = Unit(**patch)
    db.session.add(unit)
    db.session.commit()
    return unit


def update_unit(unit_id: int, payload: dict) -> Unit:
    patch = validate_payload(model=Unit, payload=payload, policy=UNIT_POLICY, partial=True)

    unit = lock_for_update(db.session.query(Unit).filter_by(id=unit_id)).first()
    if not unit:
        raise NotFoundError("Unit not found")

    for key, value in patch.items():
        setattr(unit, key, value)

    db.session.commit()
    return unit


def delete_unit(unit_id: int) -> None:
    """
    Hard delete a unit and its user links.

    Units still referenced by products, sales, expenses or business plans
    cannot be deleted; deactivate them instead.
    """
    unit = get_unit(unit_id)

    for model, label in (
        (Product, "products"),
        (Sale, "sales"),
        (Expense, "expenses"),
        (BusinessPlan, "business plans"),
    ):
        if db.session.query(model.id).filter(model.unit_id == unit_id).first():
            raise ConflictError(f"Unit is referenced by {label}; deactivate it instead")

    db.session.query(UnitAccess).filter_by(unit_id=unit_id).delete(synchronize_session=False)
    db.session.delete(unit)
    db.session.commit()
