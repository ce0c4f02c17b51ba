# Overview: Error kinds raised by the service layer; routes map them to HTTP responses.

"""
Service Error Kinds

Every error carries the HTTP status the API layer should answer with, so
routes can catch KaratError once instead of one except-branch per kind.

None of these are retried anywhere. A failed transaction is rolled back in
full and the error surfaces to the caller unchanged.
"""

from __future__ import annotations


class KaratError(Exception):
    """Base class for business errors raised by services."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": str(self)}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInputError(KaratError, ValueError):
    """Malformed, negative, or over-precise numeric input."""
    http_status = 400


class NotFoundError(KaratError):
    """A referenced entity does not exist (or is not visible to this shop)."""
    http_status = 404


class RateNotFoundError(NotFoundError):
    """No current rate for a metal type / purity pair. Pricing must stop."""


class StockItemUnavailableError(KaratError):
    """Stock item is not in a state that allows the requested transition."""
    http_status = 409


class OrderFullyPaidError(KaratError):
    """Order has no pending balance."""
    http_status = 409


class InstallmentFullyPaidError(OrderFullyPaidError):
    """Installment has no pending balance."""


class PaymentExceedsBalanceError(KaratError):
    """Payment amount is larger than the pending balance."""
    http_status = 400


class InvalidStateError(KaratError):
    """Document is in a status that does not allow the operation."""
    http_status = 409


class OrderCancelledError(InvalidStateError):
    """Operation targets a cancelled sales order."""


class PermissionDeniedError(KaratError):
    """Caller's role lacks the required permission."""
    http_status = 403


class ConflictError(KaratError):
    """A unique business key (phone, SKU, tag) is already taken in the shop."""
    http_status = 409
