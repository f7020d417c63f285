from __future__ import annotations

from ..extensions import db
from shoptally.time_utils import to_utc_z
from shoptally.validation import from_cents

# Schema generations. Exactly one is populated per sale row.
SALE_SHAPE_LEGACY = 1        # scalar product_id/quantity/price columns
SALE_SHAPE_LINE_ITEMS = 2    # sale_line_items rows


class Sale(db.Model):
    """
    One sales transaction.

    Two record shapes coexist: historical single-product rows keep the
    scalar columns (shape 1); everything written now uses line items
    (shape 2). `shape` is the discriminator; read the numbers through
    shoptally.finance rather than the columns directly.

    The total_* columns are computed at write time and are the source of
    truth for revenue/profit. They may be NULL on old rows only.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_owner_date", "user_id", "business_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.String(64), nullable=True)

    shape = db.Column(db.Integer, nullable=False, default=SALE_SHAPE_LINE_ITEMS)

    customer_name = db.Column(db.String(255), nullable=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Shape 1 only
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=True)
    unit_sale_price_cents = db.Column(db.Integer, nullable=True)
    unit_cost_price_cents = db.Column(db.Integer, nullable=True)

    # Costs tied to this sale outside COGS (shipping, payment fees, ...)
    sale_expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_expense_details = db.Column(db.JSON, nullable=True)

    # total_profit = total_sales - total_cogs - sale_expenses
    total_sales_cents = db.Column(db.Integer, nullable=True)
    total_cogs_cents = db.Column(db.Integer, nullable=True)
    total_profit_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "SaleLineItem",
        backref="sale",
        lazy="selectin",
        order_by="SaleLineItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def is_legacy(self) -> bool:
        return self.shape == SALE_SHAPE_LEGACY

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "shape": self.shape,
            "customerName": self.customer_name,
            "saleDate": to_utc_z(self.sale_date),
            "notes": self.notes or "",
            "saleExpenses": from_cents(self.sale_expenses_cents or 0),
            "saleExpenseDetails": [
                {
                    "category": d.get("category"),
                    "amount": from_cents(d.get("amount_cents", 0)),
                    "description": d.get("description", ""),
                }
                for d in (self.sale_expense_details or [])
            ],
            "totalSales": from_cents(self.total_sales_cents),
            "totalCogs": from_cents(self.total_cogs_cents),
            "totalProfit": from_cents(self.total_profit_cents),
            "items": [item.to_dict() for item in self.items],
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if self.is_legacy:
            data.update({
                "productId": self.product_id,
                "productName": self.product_name,
                "quantity": self.quantity,
                "unitSalePrice": from_cents(self.unit_sale_price_cents),
                "unitCostPrice": from_cents(self.unit_cost_price_cents),
            })
        return data


class SaleLineItem(db.Model):
    """One product or service line on a shape-2 sale. Name/cost/details are snapshots."""
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.Index("ix_sale_line_items_item", "item_type", "item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Product.id or Service.id depending on item_type (no FK: either table)
    item_id = db.Column(db.Integer, nullable=False)
    item_type = db.Column(db.String(16), nullable=False, default="Product")

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_sale_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)
    line_profit_cents = db.Column(db.Integer, nullable=False)

    # Catalog attributes at sale time; NULL on lines migrated from old data
    product_details = db.Column(db.JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "itemType": self.item_type,
            "name": self.name,
            "quantity": self.quantity,
            "unitSalePrice": from_cents(self.unit_sale_price_cents),
            "unitCostPrice": from_cents(self.unit_cost_price_cents),
            "lineTotal": from_cents(self.line_total_cents),
            "lineProfit": from_cents(self.line_profit_cents),
            "productDetails": self.product_details,
        }
