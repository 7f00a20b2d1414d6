"""
Sales Ledger - sale headers and their line-items.

total_price on a sale is never set by callers. It is recomputed through
compute_total() every time the line-items change, inside the same DB
transaction that swaps the line-items, so no reader can observe a header whose
total disagrees with the records that survive a commit.

Line-item replacement is delete-all-then-insert for one sale, executed as a
single unit of work: either the old set or the new set is visible, never an
empty or mixed one.

Status lifecycle: pending -> completed | cancelled. Terminal states have no
way out; repeating the current status is a no-op.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..errors import ConsistencyError, InvalidLineItem, InvalidStatusTransition, NotFound
from ..logging_config import consistency_logger
from ..models import ProductVariant, Sale, SalesRecord, User, SALE_STATUSES, TERMINAL_SALE_STATUSES
from .aggregation import compute_total
from .concurrency import lock_for_update, run_with_retry
from .listing import paginate

logger = logging.getLogger(__name__)


def _normalize_items(items: Iterable[Any]) -> list[tuple[int, int]]:
    """
    Validate item shapes before touching the database.

    Each item is a mapping with product_variant_id and qty ("quantity" is
    accepted as an alias). price_each is never taken from the caller.
    Returns [(variant_id, qty), ...] in the caller's order.
    """
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        raise InvalidLineItem("line items must be a list")

    normalized: list[tuple[int, int]] = []
    problems: list[dict] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            problems.append({"index": index, "error": "line item must be an object"})
            continue
        if "price_each" in item:
            problems.append({"index": index, "error": "price_each is captured from the variant and cannot be supplied"})
            continue

        variant_id = item.get("product_variant_id")
        qty = item.get("qty", item.get("quantity"))

        if isinstance(variant_id, bool) or not isinstance(variant_id, int):
            problems.append({"index": index, "error": "product_variant_id must be an integer"})
            continue
        if isinstance(qty, bool) or not isinstance(qty, int):
            problems.append({"index": index, "error": "qty must be an integer"})
            continue
        if qty <= 0:
            problems.append({"index": index, "error": "qty must be > 0"})
            continue
        normalized.append((variant_id, qty))

    if problems:
        raise InvalidLineItem("invalid line items", details={"items": problems})
    return normalized


class SalesLedger:
    def __init__(self, session, *, retry_attempts: int = 3):
        self.session = session
        self.retry_attempts = retry_attempts

    def _sale(self, sales_id: int, *, lock: bool = False) -> Sale:
        query = self.session.query(Sale).filter_by(id=sales_id)
        if lock:
            query = lock_for_update(query)
        sale = query.first()
        if sale is None:
            raise NotFound("sale not found", details={"sales_id": sales_id})
        return sale

    def _records(self, sales_id: int) -> list[SalesRecord]:
        return (
            self.session.query(SalesRecord)
            .filter_by(sales_id=sales_id)
            .order_by(SalesRecord.id.asc())
            .all()
        )

    def _report_divergence(self, sale: Sale, recomputed: Decimal) -> None:
        consistency_logger().error(
            "sale total diverged from line items for sale %s: stored=%s recomputed=%s",
            sale.id, sale.total_price, recomputed,
            extra={"details": {"sales_id": sale.id, "stored": str(sale.total_price), "recomputed": str(recomputed)}},
        )

    def open_sale(self, user_id: int, items: Iterable[Any] | None = None) -> Sale:
        """
        Create a pending sale with a zero total.

        When items are given the header and its line-items are written in one
        transaction; a bad item leaves no sale behind.
        """
        normalized = _normalize_items(items) if items is not None else None

        def _op():
            if self.session.get(User, user_id) is None:
                raise NotFound("user not found", details={"user_id": user_id})
            sale = Sale(user_id=user_id, status="pending", total_price=Decimal("0.00"))
            self.session.add(sale)
            self.session.flush()
            if normalized is not None:
                self._write_line_items(sale, normalized)
            self.session.commit()
            return sale

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def get_sale(self, sales_id: int) -> Sale:
        return self._sale(sales_id)

    def line_items(self, sales_id: int) -> list[SalesRecord]:
        self._sale(sales_id)
        return self._records(sales_id)

    def replace_line_items(self, sales_id: int, items: Iterable[Any]) -> Sale:
        """
        Atomically replace every line-item of a sale and recompute its total.

        Raises NotFound for an unknown sale and InvalidLineItem for a bad item
        or a variant that does not exist. Re-applying the same items yields the
        same records count and total.
        """
        normalized = _normalize_items(items)

        def _op():
            sale = self._sale(sales_id, lock=True)
            self._write_line_items(sale, normalized)
            self.session.commit()
            return sale

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def _write_line_items(self, sale: Sale, normalized: list[tuple[int, int]]) -> None:
        # Caller holds the sale row lock and owns the commit.
        variant_ids = {variant_id for variant_id, _ in normalized}
        variants = {}
        if variant_ids:
            variants = {
                v.id: v
                for v in self.session.query(ProductVariant).filter(ProductVariant.id.in_(variant_ids)).all()
            }
        missing = sorted(variant_ids - set(variants))
        if missing:
            raise InvalidLineItem(
                "line items reference unknown product variants",
                details={"missing_product_variant_ids": missing},
            )

        self.session.query(SalesRecord).filter_by(sales_id=sale.id).delete(synchronize_session="fetch")

        new_records = [
            SalesRecord(
                sales_id=sale.id,
                product_variant_id=variant_id,
                qty=qty,
                price_each=variants[variant_id].price,
            )
            for variant_id, qty in normalized
        ]
        self.session.add_all(new_records)
        self.session.flush()

        total = compute_total(new_records)
        persisted = compute_total(self._records(sale.id))
        if persisted != total:
            self._report_divergence(sale, persisted)
            raise ConsistencyError(
                "line items changed while replacing them",
                details={"sales_id": sale.id, "expected": str(total), "found": str(persisted)},
            )

        sale.total_price = total
        logger.info("sale %s now has %d line items totalling %s", sale.id, len(new_records), total)

    @staticmethod
    def _check_known_status(status: str) -> None:
        if status not in SALE_STATUSES:
            raise InvalidStatusTransition(
                f"unknown sale status {status!r}",
                details={"allowed": list(SALE_STATUSES)},
            )

    @staticmethod
    def _check_transition(sale: Sale, status: str) -> None:
        if sale.status != status and sale.status in TERMINAL_SALE_STATUSES:
            raise InvalidStatusTransition(
                f"cannot change status of a {sale.status} sale",
                details={"from": sale.status, "to": status},
            )

    def set_status(self, sales_id: int, status: str) -> Sale:
        self._check_known_status(status)

        def _op():
            sale = self._sale(sales_id, lock=True)
            if sale.status == status:
                return sale
            self._check_transition(sale, status)
            sale.status = status
            self.session.commit()
            return sale

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def update_sale(
        self,
        sales_id: int,
        *,
        items: Iterable[Any] | None = None,
        status: str | None = None,
    ) -> Sale:
        """
        Replace line-items and/or change status as one unit of work.

        The transition is checked before anything is written, so a rejected
        status leaves the old line-items and total in place.
        """
        normalized = _normalize_items(items) if items is not None else None
        if status is not None:
            self._check_known_status(status)

        def _op():
            sale = self._sale(sales_id, lock=True)
            if status is not None:
                self._check_transition(sale, status)
            if normalized is not None:
                self._write_line_items(sale, normalized)
            if status is not None:
                sale.status = status
            self.session.commit()
            return sale

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def sale_total(self, sales_id: int) -> Decimal:
        """
        The sale's total recomputed from its records.

        If the stored total disagrees, the divergence is logged and the stored
        value is overwritten with the recomputed one.
        """
        def _op():
            sale = self._sale(sales_id)
            recomputed = compute_total(self._records(sale.id))
            if sale.total_price != recomputed:
                self._report_divergence(sale, recomputed)
                sale.total_price = recomputed
                self.session.commit()
            return recomputed

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def reconcile(self, sales_id: int, *, strict: bool = False) -> dict:
        sale = self._sale(sales_id)
        records = self._records(sale.id)
        recomputed = compute_total(records)
        report = {
            "sales_id": sale.id,
            "stored": str(sale.total_price),
            "recomputed": str(recomputed),
            "records": len(records),
            "ok": True,
            "repaired": False,
        }
        if sale.total_price == recomputed:
            return report

        self._report_divergence(sale, recomputed)
        if strict:
            raise ConsistencyError(
                "sale total diverged from line items",
                details={"sales_id": sale.id, "stored": str(sale.total_price), "recomputed": str(recomputed)},
            )

        def _repair():
            locked = self._sale(sales_id, lock=True)
            locked.total_price = compute_total(self._records(locked.id))
            self.session.commit()

        run_with_retry(self.session, _repair, attempts=self.retry_attempts)
        report["repaired"] = True
        return report

    def reconcile_all(self, *, strict: bool = False) -> list[dict]:
        ids = [row.id for row in self.session.query(Sale.id).order_by(Sale.id).all()]
        return [self.reconcile(sales_id, strict=strict) for sales_id in ids]

    def delete_sale(self, sales_id: int) -> None:
        def _op():
            sale = self._sale(sales_id, lock=True)
            self.session.query(SalesRecord).filter_by(sales_id=sale.id).delete(synchronize_session="fetch")
            self.session.delete(sale)
            self.session.commit()

        run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def list_sales(
        self,
        *,
        user_id: int | None = None,
        status: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
        sort: str | None = None,
        sort_field: str | None = None,
    ) -> dict:
        query = self.session.query(Sale)
        if user_id is not None:
            query = query.filter(Sale.user_id == user_id)
        if status is not None:
            query = query.filter(Sale.status == status)
        return paginate(query, Sale, page=page, per_page=per_page, sort=sort, sort_field=sort_field)

    def get_line_item(self, record_id: int) -> SalesRecord:
        record = self.session.get(SalesRecord, record_id)
        if record is None:
            raise NotFound("sales record not found", details={"id": record_id})
        return record

    def list_line_items(
        self,
        *,
        sales_id: int | None = None,
        variant_id: int | None = None,
        page: int | None = None,
        per_page: int | None = None,
        sort: str | None = None,
        sort_field: str | None = None,
    ) -> dict:
        query = self.session.query(SalesRecord)
        if sales_id is not None:
            query = query.filter(SalesRecord.sales_id == sales_id)
        if variant_id is not None:
            query = query.filter(SalesRecord.product_variant_id == variant_id)
        return paginate(query, SalesRecord, page=page, per_page=per_page, sort=sort, sort_field=sort_field)
