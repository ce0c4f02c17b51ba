# Overview: Single authorization check against the role capability sets; denials are audit-logged best-effort.

"""
Permission Checking

Who may do what is a lookup: ROLE_PERMISSIONS[role] is a frozenset of
permission codes. authorize() is the one check every protected route goes
through. It fails closed: an unknown role or unknown code is denied.
"""

from __future__ import annotations

from ..models.audit import ACTION_PERMISSION_DENIED, MODULE_AUTH, SEVERITY_WARNING
from ..permissions import ROLE_PERMISSIONS, validate_permission_code
from . import audit_service
from .errors import PermissionDeniedError


def permissions_for_role(role: str | None) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: str | None, permission_code: str) -> bool:
    return permission_code in permissions_for_role(role)


def authorize(context, permission_code: str, *, resource: str | None = None,
              ip_address: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless the session's role holds the permission.

    `context` is a session_service.SessionContext. Denials are written to the
    audit log; a failed audit write does not change the outcome.
    """
    if not validate_permission_code(permission_code):
        raise PermissionDeniedError(f"Unknown permission: {permission_code}")

    role = context.user.role if context and context.user else None
    if has_permission(role, permission_code):
        return

    audit_service.record(
        action=ACTION_PERMISSION_DENIED,
        module=MODULE_AUTH,
        shop_id=context.shop_id if context else None,
        user_id=context.user.id if context and context.user else None,
        summary=f"Missing permission {permission_code} on {resource or '-'}",
        severity=SEVERITY_WARNING,
        ip_address=ip_address,
    )
    raise PermissionDeniedError(
        f"Missing permission: {permission_code}",
        details={"required_permission": permission_code},
    )
