from __future__ import annotations

from ..extensions import db


class BusinessPlan(db.Model):
    """
    Monthly budget figures for a unit.

    At most one row per (unit_id, year, month). The write path upserts on
    that key and the unique constraint backs it up.
    """
    __tablename__ = "business_plans"
    __table_args__ = (
        db.UniqueConstraint("unit_id", "year", "month", name="uq_business_plans_unit_period"),
        db.CheckConstraint("month BETWEEN 1 AND 12", name="month_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)

    revenue = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    # Indirect costs as a percentage of revenue
    indirect_perc = db.Column(db.Numeric(5, 2, asdecimal=False), nullable=False, default=0)
    # Fixed costs
    tax = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    # Out-of-category costs
    ooc = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    unit = db.relationship("Unit", backref=db.backref("business_plans", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "year": self.year,
            "month": self.month,
            "revenue": self.revenue,
            "indirect_perc": self.indirect_perc,
            "tax": self.tax,
            "ooc": self.ooc,
        }
