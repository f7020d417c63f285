# Overview: Read-only catalog lookups used by the sale engine and reports.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Product, Service
from ..validation import ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE, NotFoundError
from .scope_service import Scope, in_scope, scoped_query


def get_product(scope: Scope, product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not in_scope(product, scope):
        raise NotFoundError(f"Product with ID {product_id} not found")
    return product


def get_service(scope: Scope, service_id: int) -> Service:
    service = db.session.get(Service, service_id)
    if not in_scope(service, scope):
        raise NotFoundError(f"Service with ID {service_id} not found")
    return service


def resolve_item(scope: Scope, item_id: int, item_type: str) -> Product | Service:
    if item_type == ITEM_TYPE_SERVICE:
        return get_service(scope, item_id)
    return get_product(scope, item_id)


@dataclass
class CatalogIndex:
    """
    In-memory view of a scope's catalog for reports that group many sales.

    One query per table instead of one lookup per sale line.
    """
    products: dict[int, Product]
    services: dict[int, Service]

    def category_for(self, item_type: str, item_id: int | None) -> str | None:
        if item_id is None:
            return None
        if item_type == ITEM_TYPE_SERVICE:
            service = self.services.get(item_id)
            return service.category if service else None
        product = self.products.get(item_id)
        return product.category if product else None

    def name_for(self, item_type: str, item_id: int | None) -> str | None:
        if item_id is None:
            return None
        source = self.services if item_type == ITEM_TYPE_SERVICE else self.products
        item = source.get(item_id)
        return item.name if item else None


def load_catalog_index(scope: Scope) -> CatalogIndex:
    return CatalogIndex(
        products={p.id: p for p in scoped_query(Product, scope).all()},
        services={s.id: s for s in scoped_query(Service, scope).all()},
    )


def live_product_details(product_id: int | None, cache: dict | None = None) -> dict | None:
    """
    Current catalog attributes for a product, for lines that predate snapshots.

    Returns None when the product no longer exists. `cache` avoids repeated
    lookups while enriching a page of sales.
    """
    if product_id is None:
        return None
    if cache is not None and product_id in cache:
        return cache[product_id]
    product = db.session.get(Product, product_id)
    details = product.catalog_details() if product else None
    if cache is not None:
        cache[product_id] = details
    return details


def is_product(item_type: str | None) -> bool:
    return (item_type or ITEM_TYPE_PRODUCT) == ITEM_TYPE_PRODUCT
