from .auth import User, SessionToken, USER_ROLES, ROLE_OWNER, ROLE_SALES_PERSON, ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER
from .tenancy import Shop
from .catalog import Product, ProductStatus
from .sales import Sale, SaleItem, SaleStatus, PAYMENT_METHODS
from .security import SecurityEvent

__all__ = [
    'User', 'SessionToken',
    'USER_ROLES', 'ROLE_OWNER', 'ROLE_SALES_PERSON', 'ROLE_ADMIN', 'ROLE_MANAGER', 'ROLE_CASHIER',
    'Shop',
    'Product', 'ProductStatus',
    'Sale', 'SaleItem', 'SaleStatus', 'PAYMENT_METHODS',
    'SecurityEvent',
]
