# Overview: Error taxonomy shared by services and routes.

"""
API Error Taxonomy

Every error a client can see carries an HTTP status and a machine-readable
code. Services raise these as close to the data access as possible; routes
render them through responses.fail().

CODES:
- VALIDATION_ERROR (400): malformed or missing input
- UNAUTHORIZED (401): no/invalid session
- NOT_FOUND (404): entity absent or outside the caller's school
- TENANT_FORBIDDEN / FORBIDDEN_ROLE / FORBIDDEN (403): authorization
- INSUFFICIENT_BALANCE (402): wallet overdraft refused
- DAILY_LIMIT_EXCEEDED (403): per-student daily spend cap reached
- CARD_FROZEN (403): NFC card deactivated
- CONFLICT / DUPLICATE_ITEM / NFC_CONFLICT (409): state or uniqueness conflicts
- SERVER_ERROR (500): anything unexpected
"""

from __future__ import annotations


class ApiError(Exception):
    """Base class for errors that map onto the response envelope."""
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(ApiError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"


class TenantForbiddenError(ForbiddenError):
    code = "TENANT_FORBIDDEN"


class CardFrozenError(ForbiddenError):
    code = "CARD_FROZEN"


class ConflictError(ApiError):
    """409-level business rule conflict (e.g., closed invoice, duplicate name)."""
    status_code = 409
    code = "CONFLICT"


class LedgerError(ApiError):
    """Raised by the wallet ledger engine; aborts the surrounding transaction."""


class StudentNotFoundError(LedgerError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientBalanceError(LedgerError):
    status_code = 402
    code = "INSUFFICIENT_BALANCE"


class DailyLimitExceededError(LedgerError):
    status_code = 403
    code = "DAILY_LIMIT_EXCEEDED"
