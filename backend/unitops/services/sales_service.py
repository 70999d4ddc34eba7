# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales entry and the confirm / unlock lifecycle.

STATES:
- Open       confirmed=False, active=True   (editable)
- Confirmed  confirmed=True                 (locked)
- Removed    active=False                   (reserved, no operation sets it)

TRANSITIONS:
- create:  -> Open; product name, price and margin are copied onto the sale
- edit:    Open only, else InvalidStateError
- confirm: Open -> Confirmed for a batch, all-or-nothing
- unlock:  Confirmed -> Open for one sale, else InvalidStateError

Sales are never deleted.
"""

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Sale
from ..time_utils import utcnow, day_range
from ..validation import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    coerce_int,
    require_fields,
)
from .concurrency import lock_for_update, update_exactly
from .payment_type_service import get_active_payment_type
from .product_service import get_active_product
from .unit_access_service import require_unit_access


def _positive_amount(value) -> int:
    amount = coerce_int("amount", value)
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    return amount


def list_open_sales(context, unit_id: int) -> list[Sale]:
    """Unconfirmed, active sales of a unit, newest first."""
    require_unit_access(context, unit_id)
    return (
        db.session.query(Sale)
        .filter(
            Sale.unit_id == unit_id,
            Sale.active.is_(True),
            Sale.confirmed.is_(False),
        )
        .order_by(Sale.occurred_at.desc(), Sale.id.desc())
        .all()
    )


def sales_overview(context, unit_ids: list[int], date_from: date, date_to: date) -> list[Sale]:
    """All active sales (confirmed or not) of several units within an inclusive day range."""
    if not unit_ids:
        raise ValidationError("Unit IDs are required")
    require_unit_access(context, unit_ids)
    start, end = day_range(date_from, date_to)
    return (
        db.session.query(Sale)
        .filter(
            Sale.unit_id.in_(set(unit_ids)),
            Sale.active.is_(True),
            Sale.occurred_at >= start,
            Sale.occurred_at <= end,
        )
        .order_by(Sale.occurred_at.desc(), Sale.id.desc())
        .all()
    )


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale or not sale.active:
        raise NotFoundError("Sale not found")
    return sale


def create_sale(context, payload: dict) -> Sale:
    """
    Record a sale of a product.

    Required: unit_id, product_id, amount, payment_type_id.
    The product must be active and belong to the unit.
    """
    require_fields(payload, ["unit_id", "product_id", "amount", "payment_type_id"])
    unit_id = coerce_int("unit_id", payload["unit_id"])
    product_id = coerce_int("product_id", payload["product_id"])
    payment_type_id = coerce_int("payment_type_id", payload["payment_type_id"])
    amount = _positive_amount(payload["amount"])

    require_unit_access(context, unit_id)

    product = get_active_product(product_id, unit_id)
    get_active_payment_type(payment_type_id)

    sale = Sale(
        user_id=context.user_id,
        unit_id=unit_id,
        payment_type_id=payment_type_id,
        product_name=product.name,
        sell_price=product.sell_price,
        margin_perc=product.margin_perc,
        amount=amount,
        occurred_at=utcnow(),
        confirmed=False,
        active=True,
    )
    db.session.add(sale)
    db.session.commit()
    return sale


def edit_sale(context, sale_id: int, payload: dict) -> Sale:
    """
    Change amount and payment type of an open sale.

    Order of checks: NotFound, then unit scope, then state.
    """
    require_fields(payload, ["amount", "payment_type_id"])
    amount = _positive_amount(payload["amount"])
    payment_type_id = coerce_int("payment_type_id", payload["payment_type_id"])

    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if not sale or not sale.active:
        raise NotFoundError("Sale not found")

    require_unit_access(context, sale.unit_id)

    if sale.confirmed:
        raise InvalidStateError("Cannot edit confirmed sale")

    get_active_payment_type(payment_type_id)

    sale.amount = amount
    sale.payment_type_id = payment_type_id
    db.session.commit()
    return sale


def _parse_sale_ids(raw) -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("sale_ids must be a non-empty list")
    ids = []
    for value in raw:
        sale_id = coerce_int("sale_ids", value)
        if sale_id not in ids:
            ids.append(sale_id)
    return ids


def confirm_sales(context, payload: dict) -> int:
    """
    Confirm a batch of open sales of one unit.

    One conditional UPDATE; if it does not match every requested sale
    (wrong unit, already confirmed, inactive or missing) nothing is
    confirmed and InvalidStateError is raised. Returns the confirmed count.
    """
    require_fields(payload, ["unit_id", "sale_ids"])
    unit_id = coerce_int("unit_id", payload["unit_id"])
    sale_ids = _parse_sale_ids(payload["sale_ids"])

    require_unit_access(context, unit_id)

    query = db.session.query(Sale).filter(
        Sale.id.in_(sale_ids),
        Sale.unit_id == unit_id,
        Sale.confirmed.is_(False),
        Sale.active.is_(True),
    )
    return update_exactly(
        query,
        {Sale.confirmed: True},
        len(sale_ids),
        message="Some sales are invalid or already confirmed",
    )


def unlock_sale(context, sale_id: int) -> Sale:
    """Confirmed -> Open. Only the confirmed flag changes."""
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if not sale or not sale.active:
        raise NotFoundError("Sale not found")

    require_unit_access(context, sale.unit_id)

    if not sale.confirmed:
        raise InvalidStateError("Sale is not confirmed")

    sale.confirmed = False
    db.session.commit()
    return sale
