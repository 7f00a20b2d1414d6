# Overview: Ledger registry; the one object that wires the catalog, stock and sales components.

"""
The ledger components are constructed once, at application start, around a
single SQLAlchemy session and handed out by reference. Nothing in the services
reaches for a module-level session or app; the HTTP layer and the CLI ask the
app for its LedgerCore via get_ledger().
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from flask import Flask, current_app

from .services.aggregation import compute_total
from .services.catalog_service import CatalogStore
from .services.sales_service import SalesLedger
from .services.stock_service import StockLedger

EXTENSION_KEY = "retail_ledger"


@dataclass
class LedgerCore:
    catalog: CatalogStore
    stock: StockLedger
    sales: SalesLedger

    @classmethod
    def from_session(cls, session, *, retry_attempts: int = 3) -> "LedgerCore":
        return cls(
            catalog=CatalogStore(session, retry_attempts=retry_attempts),
            stock=StockLedger(session, retry_attempts=retry_attempts),
            sales=SalesLedger(session, retry_attempts=retry_attempts),
        )

    @staticmethod
    def compute_total(line_items: Iterable[Any]) -> Decimal:
        return compute_total(line_items)

    def reconcile_all(self, *, strict: bool = False) -> dict:
        """Check every variant cache and every sale total against their ledgers."""
        return {
            "stock": self.stock.reconcile_all(strict=strict),
            "sales": self.sales.reconcile_all(strict=strict),
        }


def init_ledger(app: Flask, session) -> LedgerCore:
    core = LedgerCore.from_session(session, retry_attempts=app.config.get("RETRY_ATTEMPTS", 3))
    app.extensions[EXTENSION_KEY] = core
    return core


def get_ledger() -> LedgerCore:
    return current_app.extensions[EXTENSION_KEY]
