from __future__ import annotations

from ..extensions import db
from ..models import Product, Unit
from ..validation import (
    NotFoundError,
    PRODUCT_POLICY,
    validate_payload,
    enforce_rules_product,
)
from .concurrency import lock_for_update


def _require_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if not unit:
        raise NotFoundError("Unit not found")
    return unit


def list_products(unit_id: int | None = None) -> list[Product]:
    """All products for administration, optionally narrowed to one unit."""
    query = db.session.query(Product)
    if unit_id is not None:
        query = query.filter(Product.unit_id == unit_id)
    return query.order_by(Product.unit_id.asc(), Product.name.asc()).all()


def list_unit_products(unit_id: int) -> list[Product]:
    """Active products of one unit (storefront). Scope is checked by the caller."""
    return (
        db.session.query(Product)
        .filter(Product.unit_id == unit_id, Product.active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )


def get_active_product(product_id: int, unit_id: int) -> Product:
    """Active product that belongs to unit_id, else NotFoundError."""
    product = db.session.query(Product).filter_by(
        id=product_id,
        unit_id=unit_id,
        active=True,
    ).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _require_unit(patch["unit_id"])

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    """
    Update a product. Existing sales keep their own copy of name, price
    and margin, so nothing here touches them.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    if "unit_id" in patch:
        _require_unit(patch["unit_id"])

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError("Product not found")

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    db.session.delete(product)
    db.session.commit()
