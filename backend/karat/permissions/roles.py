# Overview: Role -> capability set. The only source of truth for who may do what.

from karat.models.auth import ROLE_ACCOUNTS, ROLE_OWNER, ROLE_SALES
from .helpers import get_all_permission_codes


ROLE_PERMISSIONS = {
    ROLE_OWNER: frozenset(get_all_permission_codes()),
    ROLE_SALES: frozenset({
        "RATE_MASTER_VIEW",
        "PRODUCT_VIEW",
        "STOCK_VIEW",
        "STOCK_MANAGE",
        "SALES_VIEW",
        "SALES_CREATE",
        "SALES_EDIT",
        "EMI_VIEW",
        "CUSTOMER_VIEW",
        "CUSTOMER_CREATE",
    }),
    ROLE_ACCOUNTS: frozenset({
        "RATE_MASTER_VIEW",
        "RATE_MASTER_EDIT",
        "PRODUCT_VIEW",
        "STOCK_VIEW",
        "SALES_VIEW",
        "EMI_VIEW",
        "EMI_MANAGE",
        "TRANSACTION_VIEW",
        "CUSTOMER_VIEW",
    }),
}
