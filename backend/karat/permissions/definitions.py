# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


RATE_PERMISSIONS = [
    ("RATE_MASTER_VIEW", "View Rates", "View current and historical metal rates", PermissionCategory.RATES),
    ("RATE_MASTER_EDIT", "Edit Rates", "Create, supersede and deactivate metal rates", PermissionCategory.RATES),
]

CATALOG_PERMISSIONS = [
    ("PRODUCT_VIEW", "View Products", "View products and their live selling price", PermissionCategory.CATALOG),
    ("PRODUCT_CREATE", "Create Products", "Add products to the catalogue", PermissionCategory.CATALOG),
]

STOCK_PERMISSIONS = [
    ("STOCK_VIEW", "View Stock", "View stock items and their selling price", PermissionCategory.STOCK),
    ("STOCK_MANAGE", "Manage Stock", "Hold and release stock items", PermissionCategory.STOCK),
]

SALES_PERMISSIONS = [
    ("SALES_VIEW", "View Sales Orders", "View sales orders and their payments", PermissionCategory.SALES),
    ("SALES_CREATE", "Create Sales Orders", "Create sales orders and record payments", PermissionCategory.SALES),
    ("SALES_EDIT", "Edit Sales Orders", "Complete sales orders", PermissionCategory.SALES),
    ("SALES_DELETE", "Cancel Sales Orders", "Cancel sales orders and release their stock", PermissionCategory.SALES),
]

FINANCE_PERMISSIONS = [
    ("EMI_VIEW", "View EMI Plans", "View EMI plans, overdue and upcoming installments", PermissionCategory.FINANCE),
    ("EMI_MANAGE", "Manage EMI Plans", "Create EMI plans and record installment payments", PermissionCategory.FINANCE),
    ("TRANSACTION_VIEW", "View Transactions", "View the income and expense ledger", PermissionCategory.FINANCE),
]

CUSTOMER_PERMISSIONS = [
    ("CUSTOMER_VIEW", "View Customers", "View customer records", PermissionCategory.CUSTOMERS),
    ("CUSTOMER_CREATE", "Create Customers", "Create customer records", PermissionCategory.CUSTOMERS),
]

SYSTEM_PERMISSIONS = [
    ("AUDIT_VIEW", "View Audit Log", "View the business and security audit trail", PermissionCategory.SYSTEM),
]


# Combined list of all permissions
PERMISSION_DEFINITIONS = (
    RATE_PERMISSIONS
    + CATALOG_PERMISSIONS
    + STOCK_PERMISSIONS
    + SALES_PERMISSIONS
    + FINANCE_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
