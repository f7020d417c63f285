from __future__ import annotations

from ..extensions import db
from shoptally.time_utils import to_utc_z
from shoptally.validation import from_cents


class Product(db.Model):
    """
    Stocked catalog item.

    current_stock is only ever changed through stock_service.adjust(); catalog
    edits touch every other column. Historical rows may carry negative stock
    from before the conditional decrement existed, so there is no CHECK here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_owner", "user_id", "business_id"),
        db.Index("ix_products_owner_name", "user_id", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # NULL is legacy data and belongs to the 'default' business
    business_id = db.Column(db.String(64), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    type = db.Column(db.String(128), nullable=True)
    size = db.Column(db.String(64), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    sku = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)

    custom_fields = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.current_stock}>"

    def catalog_details(self) -> dict:
        """Attributes frozen onto sale lines and joined onto legacy sales at read time."""
        return {
            "category": self.category,
            "type": self.type,
            "size": self.size,
            "color": self.color,
            "sku": self.sku,
            "customFields": self.custom_fields or {},
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "name": self.name,
            "category": self.category,
            "type": self.type,
            "size": self.size,
            "color": self.color,
            "sku": self.sku,
            "costPrice": from_cents(self.cost_price_cents),
            "salePrice": from_cents(self.sale_price_cents),
            "currentStock": self.current_stock,
            "customFields": self.custom_fields or {},
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Service(db.Model):
    """Non-stocked catalog item. Cost is always zero."""
    __tablename__ = "services"
    __table_args__ = (
        db.Index("ix_services_owner", "user_id", "business_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.String(64), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(128), nullable=True)
    custom_fields = db.Column(db.JSON, nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Service id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "name": self.name,
            "description": self.description,
            "price": from_cents(self.price_cents),
            "category": self.category,
            "customFields": self.custom_fields or {},
            "active": self.active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
