# Overview: Business scope (user + business profile) applied to every catalog, sale and expense query.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models.auth import DEFAULT_BUSINESS_ID


@dataclass(frozen=True)
class Scope:
    """
    Tenant-like partition key threaded through every engine and report call.

    business_id 'default' also covers rows written before business profiles
    existed (business_id NULL).
    """
    user_id: int
    business_id: str = DEFAULT_BUSINESS_ID

    @property
    def is_default(self) -> bool:
        return self.business_id == DEFAULT_BUSINESS_ID


def business_filter(model, scope: Scope):
    if scope.is_default:
        return db.or_(model.business_id == DEFAULT_BUSINESS_ID, model.business_id.is_(None))
    return model.business_id == scope.business_id


def scoped_query(model, scope: Scope):
    """
    Base query restricted to rows owned by the scope.

    Usage:
        products = scoped_query(Product, scope).filter(Product.current_stock <= 3).all()
    """
    return db.session.query(model).filter(
        model.user_id == scope.user_id,
        business_filter(model, scope),
    )


def in_scope(row, scope: Scope) -> bool:
    if row is None or row.user_id != scope.user_id:
        return False
    if scope.is_default:
        return row.business_id in (None, DEFAULT_BUSINESS_ID)
    return row.business_id == scope.business_id
