from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Unit(db.Model):
    """
    A business location / cost center.

    Products, sales, expenses and business plans all hang off a unit, and
    user visibility is granted per unit through UnitAccess.
    """
    __tablename__ = "units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Unit id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable item of one unit.

    Sales copy name, sell price and margin at creation time, so editing a
    product never changes historical sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_unit_active", "unit_id", "active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sell_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    margin_perc = db.Column(db.Numeric(5, 2, asdecimal=False), nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    unit = db.relationship("Unit", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} unit_id={self.unit_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "name": self.name,
            "sell_price": self.sell_price,
            "margin_perc": self.margin_perc,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentType(db.Model):
    """Payment method (cash, card, ...) referenced by sales and expenses."""
    __tablename__ = "payment_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    abbreviation = db.Column(db.String(16), nullable=False)

    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "active": self.active,
        }
