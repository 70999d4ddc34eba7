from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

# Stored category codes and their display labels.
# T is the fixed-cost ("tax") bucket and is shown as "Fix"; O is shown as "OOC".
EXPENSE_CATEGORIES = {
    "D": "Direct",
    "I": "Indirect",
    "O": "OOC",
    "T": "Fix",
}


class Expense(db.Model):
    """
    Expense entry for a unit.

    category is one of EXPENSE_CATEGORIES. Deletion is soft (active=False);
    inactive expenses are ignored by every read path and by reporting.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("category IN ('D', 'I', 'O', 'T')", name="category_code"),
        db.Index("ix_expenses_unit_occurred", "unit_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    payment_type_id = db.Column(db.Integer, db.ForeignKey("payment_types.id"), nullable=False, index=True)

    vendor = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    cost = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    category = db.Column(db.String(1), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    active = db.Column(db.Boolean, nullable=False, default=True)

    user = db.relationship("User", backref=db.backref("expenses", lazy=True))
    unit = db.relationship("Unit", backref=db.backref("expenses", lazy=True))
    payment_type = db.relationship("PaymentType", backref=db.backref("expenses", lazy=True))
    images = db.relationship(
        "ExpenseImage",
        back_populates="expense",
        lazy=True,
        order_by="ExpenseImage.id",
    )

    def to_dict(self, include_images: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "payment_type_id": self.payment_type_id,
            "payment_type": self.payment_type.to_dict() if self.payment_type else None,
            "vendor": self.vendor,
            "description": self.description,
            "cost": self.cost,
            "category": self.category,
            "category_label": EXPENSE_CATEGORIES.get(self.category),
            "occurred_at": to_utc_z(self.occurred_at),
            "active": self.active,
        }
        if include_images:
            data["images"] = [image.to_dict() for image in self.images if image.active]
        return data


class ExpenseImage(db.Model):
    """
    Receipt photo attached to an expense.

    Bytes live on disk under UPLOAD_DIR; the row keeps the generated
    file name and the URL path it is served from.
    """
    __tablename__ = "expense_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=False, index=True)

    file_name = db.Column(db.String(255), nullable=False, unique=True)
    file_path = db.Column(db.String(512), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    mime_type = db.Column(db.String(128), nullable=False)

    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    active = db.Column(db.Boolean, nullable=False, default=True)

    expense = db.relationship("Expense", back_populates="images")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "uploaded_at": to_utc_z(self.uploaded_at),
            "active": self.active,
        }
