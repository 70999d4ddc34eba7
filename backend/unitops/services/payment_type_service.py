from __future__ import annotations

from ..extensions import db
from ..models import PaymentType, Sale, Expense
from ..validation import (
    ConflictError,
    NotFoundError,
    PAYMENT_TYPE_POLICY,
    validate_payload,
)


def list_payment_types(*, active_only: bool = False) -> list[PaymentType]:
    query = db.session.query(PaymentType)
    if active_only:
        query = query.filter(PaymentType.active.is_(True))
    return query.order_by(PaymentType.name.asc()).all()


def get_active_payment_type(payment_type_id: int) -> PaymentType:
    payment_type = db.session.get(PaymentType, payment_type_id)
    if not payment_type or not payment_type.active:
        raise NotFoundError("Payment type not found")
    return payment_type


def create_payment_type(payload: dict) -> PaymentType:
    patch = validate_payload(model=PaymentType, payload=payload, policy=PAYMENT_TYPE_POLICY, partial=False)
    payment_type = PaymentType(**patch)
    db.session.add(payment_type)
    db.session.commit()
    return payment_type


def update_payment_type(payment_type_id: int, payload: dict) -> PaymentType:
    patch = validate_payload(model=PaymentType, payload=payload, policy=PAYMENT_TYPE_POLICY, partial=True)

    payment_type = db.session.get(PaymentType, payment_type_id)
    if not payment_type:
        raise NotFoundError("Payment type not found")

    for key, value in patch.items():
        setattr(payment_type, key, value)

    db.session.commit()
    return payment_type


def delete_payment_type(payment_type_id: int) -> None:
    payment_type = db.session.get(PaymentType, payment_type_id)
    if not payment_type:
        raise NotFoundError("Payment type not found")

    for model, label in ((Sale, "sales"), (Expense, "expenses")):
        if db.session.query(model.id).filter(model.payment_type_id == payment_type_id).first():
            raise ConflictError(f"Payment type is referenced by {label}; deactivate it instead")

    db.session.delete(payment_type)
    db.session.commit()
