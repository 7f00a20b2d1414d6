from .auth import User, USER_ROLES
from .catalog import Product, ProductVariant
from .stock import StockTransaction, MOVEMENT_TYPES
from .sales import Sale, SalesRecord, SALE_STATUSES, TERMINAL_SALE_STATUSES

__all__ = [
    'User', 'USER_ROLES',
    'Product', 'ProductVariant',
    'StockTransaction', 'MOVEMENT_TYPES',
    'Sale', 'SalesRecord', 'SALE_STATUSES', 'TERMINAL_SALE_STATUSES',
]
