# Overview: Permission system package.
# Re-exports the capability definitions and the role -> permission sets.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    RATE_PERMISSIONS,
    CATALOG_PERMISSIONS,
    STOCK_PERMISSIONS,
    SALES_PERMISSIONS,
    FINANCE_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "RATE_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "STOCK_PERMISSIONS",
    "SALES_PERMISSIONS",
    "FINANCE_PERMISSIONS",
    "CUSTOMER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
