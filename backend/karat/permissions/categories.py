# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Groups permissions for display and review."""
    RATES = "RATES"
    CATALOG = "CATALOG"
    STOCK = "STOCK"
    SALES = "SALES"
    FINANCE = "FINANCE"
    CUSTOMERS = "CUSTOMERS"
    SYSTEM = "SYSTEM"
