# backend/retail_ledger/routes/system.py
"""
System health endpoint.

Unauthenticated. Reports database reachability and row counts for the ledger
tables so a deploy can be smoke-tested without credentials.
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, ProductVariant, Sale, StockTransaction
from ..formatting import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "product_variants": db.session.query(ProductVariant).count(),
            "stock_transactions": db.session.query(StockTransaction).count(),
            "sales": db.session.query(Sale).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "time": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, 200 if healthy else 503
