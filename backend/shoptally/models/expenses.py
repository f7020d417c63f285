from __future__ import annotations

from ..extensions import db
from shoptally.time_utils import to_utc_z
from shoptally.validation import from_cents


class Expense(db.Model):
    """Business expense not tied to a sale (rent, utilities, ...)."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_owner_date", "user_id", "business_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.String(64), nullable=True)

    category = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(512), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    receipt_url = db.Column(db.String(1024), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "category": self.category,
            "description": self.description,
            "amount": from_cents(self.amount_cents),
            "expenseDate": to_utc_z(self.expense_date),
            "receiptUrl": self.receipt_url,
            "notes": self.notes or "",
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
