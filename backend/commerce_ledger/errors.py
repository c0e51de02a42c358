"""
Ledger error kinds.

Every failure a caller can act on is one of these classes. Each carries a
stable ``code`` for programmatic branching, an HTTP status for the API layer,
a human-readable reason and optional structured ``details``. Database error
text never ends up in any of these fields.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for all typed ledger failures."""

    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """400-level input problem, detected before any mutation."""
    code = "VALIDATION_ERROR"


class InvalidState(LedgerError):
    """Operation not legal in the current document/register state."""
    code = "INVALID_STATE"
    http_status = 409


class OutOfStock(LedgerError):
    code = "OUT_OF_STOCK"
    http_status = 409


class NegativeStock(LedgerError):
    code = "NEGATIVE_STOCK"
    http_status = 409


class DuplicateIdentifier(LedgerError):
    code = "DUPLICATE_IDENTIFIER"
    http_status = 409


class EmptyDocument(LedgerError):
    code = "EMPTY_DOCUMENT"
    http_status = 409


class AlreadyOpen(LedgerError):
    code = "ALREADY_OPEN"
    http_status = 409


class IrreversibleState(LedgerError):
    code = "IRREVERSIBLE_STATE"
    http_status = 409


class Unauthorized(LedgerError):
    code = "UNAUTHORIZED"
    http_status = 403


class LedgerTimeout(LedgerError):
    """The transaction did not finish in time and was rolled back; safe to retry."""
    code = "TIMEOUT"
    http_status = 503


class NotFound(LedgerError):
    code = "NOT_FOUND"
    http_status = 404
