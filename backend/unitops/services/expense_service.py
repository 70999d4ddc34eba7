from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Expense, Unit, EXPENSE_CATEGORIES
from ..time_utils import utcnow, day_range
from ..validation import (
    NotFoundError,
    ValidationError,
    EXPENSE_POLICY,
    validate_payload,
    enforce_rules_expense,
)
from .concurrency import lock_for_update
from .payment_type_service import get_active_payment_type
from .unit_access_service import require_unit_access


def get_active_expense(expense_id: int) -> Expense:
    """Expense by id; soft-deleted rows count as missing."""
    expense = db.session.get(Expense, expense_id)
    if not expense or not expense.active:
        raise NotFoundError("Expense not found")
    return expense


def _require_unit(unit_id: int) -> None:
    if not db.session.get(Unit, unit_id):
        raise NotFoundError("Unit not found")


def get_expense_for(context, expense_id: int) -> Expense:
    """Active expense the session is scoped to (NotFound before Forbidden)."""
    expense = get_active_expense(expense_id)
    require_unit_access(context, expense.unit_id)
    return expense


def list_unit_expenses(context, unit_id: int) -> list[Expense]:
    require_unit_access(context, unit_id)
    return (
        db.session.query(Expense)
        .filter(Expense.unit_id == unit_id, Expense.active.is_(True))
        .order_by(Expense.occurred_at.desc(), Expense.id.desc())
        .all()
    )


def expenses_overview(context, unit_ids: list[int], date_from: date, date_to: date) -> list[Expense]:
    """Active expenses of several units within an inclusive day range."""
    if not unit_ids:
        raise ValidationError("Unit IDs are required")
    require_unit_access(context, unit_ids)
    start, end = day_range(date_from, date_to)
    return (
        db.session.query(Expense)
        .filter(
            Expense.unit_id.in_(set(unit_ids)),
            Expense.active.is_(True),
            Expense.occurred_at >= start,
            Expense.occurred_at <= end,
        )
        .order_by(Expense.occurred_at.desc(), Expense.id.desc())
        .all()
    )


def create_expense(context, payload: dict) -> Expense:
    """
    Record an expense for a unit.

    The payment type must exist and be active. occurred_at defaults to now.
    """
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch, EXPENSE_CATEGORIES)

    require_unit_access(context, patch["unit_id"])
    _require_unit(patch["unit_id"])
    get_active_payment_type(patch["payment_type_id"])

    expense = Expense(
        user_id=context.user_id,
        active=True,
        **patch,
    )
    if expense.occurred_at is None:
        expense.occurred_at = utcnow()

    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(context, expense_id: int, payload: dict) -> Expense:
    """
    Edit an expense. Scope is checked on the current unit and, when the
    expense is moved, on the target unit as well.
    """
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    enforce_rules_expense(patch, EXPENSE_CATEGORIES)

    expense = lock_for_update(db.session.query(Expense).filter_by(id=expense_id)).first()
    if not expense or not expense.active:
        raise NotFoundError("Expense not found")

    require_unit_access(context, expense.unit_id)
    if "unit_id" in patch and patch["unit_id"] != expense.unit_id:
        require_unit_access(context, patch["unit_id"])
        _require_unit(patch["unit_id"])
    if "payment_type_id" in patch:
        get_active_payment_type(patch["payment_type_id"])

    for key, value in patch.items():
        setattr(expense, key, value)

    db.session.commit()
    return expense


def delete_expense(context, expense_id: int) -> Expense:
    """Soft delete."""
    expense = get_expense_for(context, expense_id)
    expense.active = False
    db.session.commit()
    return expense
