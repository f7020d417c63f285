from .auth import User, BusinessProfile, SessionToken
from .catalog import Product, Service
from .sales import Sale, SaleLineItem, SALE_SHAPE_LEGACY, SALE_SHAPE_LINE_ITEMS
from .expenses import Expense

__all__ = [
    'User', 'BusinessProfile', 'SessionToken',
    'Product', 'Service',
    'Sale', 'SaleLineItem', 'SALE_SHAPE_LEGACY', 'SALE_SHAPE_LINE_ITEMS',
    'Expense',
]
