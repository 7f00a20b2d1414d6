# Overview: Ledger error taxonomy shared by services, routes and the CLI.

"""
Every failure the ledger core reports is a LedgerError subclass so callers can
discriminate outcomes without parsing messages. http_status is only a hint for
the thin HTTP layer; the core itself never looks at it.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger operation errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self), "kind": type(self).__name__}
        if self.details:
            body["details"] = self.details
        return body


class NotFound(LedgerError):
    """Referenced entity does not exist."""
    http_status = 404


class InvalidQuantity(LedgerError):
    """Quantity, price or movement type violates a positivity/domain rule."""


class InvalidLineItem(LedgerError):
    """A sale line-item references a missing variant or has a bad quantity."""


class InsufficientStock(LedgerError):
    """An outbound movement would drive on-hand stock below zero."""
    http_status = 409


class InvalidStatusTransition(LedgerError):
    """Sale status change is not allowed from the current state."""
    http_status = 409


class ConsistencyError(LedgerError):
    """
    A denormalized value disagrees with its source of truth.

    This is a bug signal, not a user error.
    """
    http_status = 500
