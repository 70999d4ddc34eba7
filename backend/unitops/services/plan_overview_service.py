# Overview: Service-layer operations for plan overview; budget versus actual reconciliation.

"""
Budget / actual aggregator.

BUDGET (BusinessPlan rows of the requested units):
- Only the (year, month) of period_start is read, even for multi-month
  ranges. The actual side still covers the whole range.
- direct is a flat 60% of budgeted revenue, not derived from product margins.

ACTUAL (inclusive range, period_end runs to the end of its day):
- revenue: sell_price * amount over confirmed, active sales
- expenses: active expenses split by category D / I / T / O
- profit: revenue - direct - expenses (direct is counted twice; kept as is)

DELTA for every line: real - budget, and a percentage of budget that is 0
when the budget is 0.
"""

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import BusinessPlan, Expense, Sale
from ..time_utils import day_range
from ..validation import ValidationError
from .unit_access_service import require_unit_access


BUDGET_DIRECT_RATIO = 0.6

# Output line -> expense category code
EXPENSE_LINES = {
    "direct": "D",
    "indirect": "I",
    "fix": "T",
    "ooc": "O",
}

REPORT_LINES = ("revenue", "direct", "indirect", "fix", "ooc", "expenses", "profit")


def _money(value) -> float:
    return round(float(value or 0), 2)


def delta_line(budget: float, real: float) -> dict:
    delta = real - budget
    delta_percentage = 0.0 if budget == 0 else (delta / budget) * 100
    return {
        "budget": _money(budget),
        "real": _money(real),
        "delta": _money(delta),
        "delta_percentage": round(delta_percentage, 2),
    }


def compute_budget(unit_ids: set[int], period_start: date) -> dict[str, float]:
    plans = db.session.query(BusinessPlan).filter(
        BusinessPlan.unit_id.in_(unit_ids),
        BusinessPlan.year == period_start.year,
        BusinessPlan.month == period_start.month,
    ).all()

    revenue = sum(float(p.revenue or 0) for p in plans)
    indirect = sum(float(p.revenue or 0) * float(p.indirect_perc or 0) / 100 for p in plans)
    fix = sum(float(p.tax or 0) for p in plans)
    ooc = sum(float(p.ooc or 0) for p in plans)
    direct = revenue * BUDGET_DIRECT_RATIO
    expenses = indirect + fix + ooc

    return {
        "revenue": revenue,
        "direct": direct,
        "indirect": indirect,
        "fix": fix,
        "ooc": ooc,
        "expenses": expenses,
        "profit": revenue - direct - expenses,
    }


def compute_actuals(unit_ids: set[int], period_start: date, period_end: date) -> dict[str, float]:
    start, end = day_range(period_start, period_end)

    revenue = db.session.query(
        db.func.coalesce(db.func.sum(Sale.sell_price * Sale.amount), 0)
    ).filter(
        Sale.unit_id.in_(unit_ids),
        Sale.confirmed.is_(True),
        Sale.active.is_(True),
        Sale.occurred_at >= start,
        Sale.occurred_at <= end,
    ).scalar()

    rows = db.session.query(
        Expense.category,
        db.func.coalesce(db.func.sum(Expense.cost), 0),
    ).filter(
        Expense.unit_id.in_(unit_ids),
        Expense.active.is_(True),
        Expense.occurred_at >= start,
        Expense.occurred_at <= end,
    ).group_by(Expense.category).all()
    by_category = {category: float(total or 0) for category, total in rows}

    actual = {"revenue": float(revenue or 0)}
    for line, code in EXPENSE_LINES.items():
        actual[line] = by_category.get(code, 0.0)
    actual["expenses"] = sum(actual[line] for line in EXPENSE_LINES)
    actual["profit"] = actual["revenue"] - actual["direct"] - actual["expenses"]
    return actual


def compute_plan_overview(context, unit_ids, period_start: date | None, period_end: date | None) -> dict:
    """
    Reconciled budget / actual report for a set of units and a period.

    Raises ValidationError for a missing unit list or bounds, or an inverted
    range, and UnitAccessDeniedError when any unit is out of scope.
    """
    requested = set(unit_ids or [])
    if not requested:
        raise ValidationError("Unit IDs are required")
    if period_start is None or period_end is None:
        raise ValidationError("Date range is required")
    if period_end < period_start:
        raise ValidationError("date_to must not be before date_from")

    require_unit_access(context, requested)

    budget = compute_budget(requested, period_start)
    actual = compute_actuals(requested, period_start, period_end)

    return {line: delta_line(budget[line], actual[line]) for line in REPORT_LINES}
