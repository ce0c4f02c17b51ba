from .tenancy import Shop
from .auth import User, SessionToken
from .catalog import Customer, Product, RateMaster
from .inventory import StockItem
from .sales import SalesOrder, SalesOrderLine, SalesPayment, Transaction
from .emi import EmiPayment, EmiInstallment
from .audit import AuditLog

__all__ = [
    'Shop',
    'User', 'SessionToken',
    'Customer', 'Product', 'RateMaster',
    'StockItem',
    'SalesOrder', 'SalesOrderLine', 'SalesPayment', 'Transaction',
    'EmiPayment', 'EmiInstallment',
    'AuditLog',
]
