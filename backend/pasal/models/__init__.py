from .catalog import Product, ProductUnit
from .sales import Sale, SaleItem
from .customers import Customer, Payment
from .settings import Setting
from .auth import SessionToken

__all__ = [
    'Product', 'ProductUnit',
    'Sale', 'SaleItem',
    'Customer', 'Payment',
    'Setting',
    'SessionToken',
]
