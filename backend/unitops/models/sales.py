from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Point-of-sale entry.

    LIFECYCLE:
    - Open: confirmed=False, active=True (editable)
    - Confirmed: confirmed=True (locked until explicitly unlocked)
    - Removed: active=False (reserved; no handler sets it)

    product_name, sell_price and margin_perc are value copies of the product
    taken at creation. There is deliberately no product foreign key.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_unit_state", "unit_id", "active", "confirmed"),
        db.Index("ix_sales_unit_occurred", "unit_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    payment_type_id = db.Column(db.Integer, db.ForeignKey("payment_types.id"), nullable=False, index=True)

    # Product snapshot
    product_name = db.Column(db.String(255), nullable=False)
    sell_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    margin_perc = db.Column(db.Numeric(5, 2, asdecimal=False), nullable=False, default=0)

    # Quantity sold
    amount = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    confirmed = db.Column(db.Boolean, nullable=False, default=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    user = db.relationship("User", backref=db.backref("sales", lazy=True))
    unit = db.relationship("Unit", backref=db.backref("sales", lazy=True))
    payment_type = db.relationship("PaymentType", backref=db.backref("sales", lazy=True))

    @property
    def total(self) -> float:
        return float(self.sell_price or 0) * (self.amount or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "payment_type_id": self.payment_type_id,
            "payment_type": self.payment_type.to_dict() if self.payment_type else None,
            "product_name": self.product_name,
            "sell_price": self.sell_price,
            "margin_perc": self.margin_perc,
            "amount": self.amount,
            "total": self.total,
            "occurred_at": to_utc_z(self.occurred_at),
            "confirmed": self.confirmed,
            "active": self.active,
        }
