# Overview: Stock ledger; append-only movements and the cached on-hand balance.

"""
Retail Ledger Stock Invariants (authoritative)

Inventory model:
- On-hand stock is ledger-derived from StockTransaction rows:
    SUM(qty where type='in') - SUM(qty where type='out').
- ProductVariant.stock is a cache of that sum. It is written only here, in the
  same DB transaction as the movement that changes it.
- When cache and ledger disagree the ledger wins: the divergence is logged on
  the consistency logger and the cache is overwritten.

Business invariants:
- qty is a positive integer; direction is carried by type ('in' | 'out').
- On-hand stock may never go negative. An 'out' that would overdraw is
  rejected before anything is written.
- Movements are never updated or deleted. Corrections are new movements.

Concurrency:
- The variant row is locked (SELECT ... FOR UPDATE where supported) and its
  version_id checked on flush, so two concurrent 'out' movements cannot both
  pass the negative-stock check against the same starting balance. Conflicts
  surface as StaleDataError/OperationalError and are retried.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func

from ..errors import ConsistencyError, InsufficientStock, InvalidQuantity, NotFound
from ..logging_config import consistency_logger
from ..models import ProductVariant, StockTransaction, MOVEMENT_TYPES
from .aggregation import fold_movements, movement_delta
from .concurrency import lock_for_update, run_with_retry
from .listing import paginate

logger = logging.getLogger(__name__)


def coerce_qty(value) -> int:
    """Accept ints and digit strings; anything else is an InvalidQuantity."""
    if isinstance(value, bool):
        raise InvalidQuantity("qty must be an integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        qty = int(value.strip())
    else:
        raise InvalidQuantity("qty must be an integer", details={"qty": value})
    if qty <= 0:
        raise InvalidQuantity("qty must be > 0", details={"qty": qty})
    return qty


def append_movement(
    session,
    variant: ProductVariant,
    qty: int,
    movement_type: str,
    *,
    balance_before: int,
    user_id: int | None = None,
    note: str | None = None,
) -> StockTransaction:
    """Core append without locking, validation of the balance, retry, or commit.

    Writes the movement and sets the cache to balance_before + delta.
    Called by record_movement() and by variant creation for opening stock.
    """
    tx = StockTransaction(
        product_variant_id=variant.id,
        user_id=user_id,
        qty=qty,
        type=movement_type,
        note=note,
    )
    session.add(tx)
    variant.stock = balance_before + movement_delta(movement_type, qty)
    session.flush()
    return tx


class StockLedger:
    """Records stock movements and answers on-hand questions per variant."""

    def __init__(self, session, *, retry_attempts: int = 3):
        self.session = session
        self.retry_attempts = retry_attempts

    def _variant(self, variant_id: int, *, lock: bool = False) -> ProductVariant:
        query = self.session.query(ProductVariant).filter_by(id=variant_id)
        if lock:
            query = lock_for_update(query)
        variant = query.first()
        if variant is None:
            raise NotFound("product variant not found", details={"product_variant_id": variant_id})
        return variant

    def ledger_balance(self, variant_id: int) -> int:
        """SUM over the ledger; the authoritative balance."""
        signed = case(
            (StockTransaction.type == "in", StockTransaction.qty),
            else_=-StockTransaction.qty,
        )
        q = self.session.query(func.coalesce(func.sum(signed), 0)).filter(
            StockTransaction.product_variant_id == variant_id,
        )
        return int(q.scalar() or 0)

    def _report_divergence(self, variant: ProductVariant, ledger: int) -> None:
        consistency_logger().error(
            "stock cache diverged from ledger for variant %s: cached=%s ledger=%s",
            variant.id, variant.stock, ledger,
            extra={"details": {"product_variant_id": variant.id, "cached": variant.stock, "ledger": ledger}},
        )

    def record_movement(
        self,
        variant_id: int,
        qty,
        movement_type: str,
        *,
        user_id: int | None = None,
        note: str | None = None,
    ) -> StockTransaction:
        """
        Append an 'in' or 'out' movement and update the cached balance.

        Raises InvalidQuantity, NotFound or InsufficientStock. On any failure
        nothing is persisted.
        """
        qty = coerce_qty(qty)
        if movement_type not in MOVEMENT_TYPES:
            raise InvalidQuantity(
                "type must be 'in' or 'out'",
                details={"type": movement_type},
            )

        def _op():
            variant = self._variant(variant_id, lock=True)

            balance = self.ledger_balance(variant.id)
            if variant.stock != balance:
                self._report_divergence(variant, balance)

            new_balance = balance + movement_delta(movement_type, qty)
            if new_balance < 0:
                raise InsufficientStock(
                    "movement would make stock negative",
                    details={
                        "product_variant_id": variant.id,
                        "requested_quantity": qty,
                        "on_hand": balance,
                    },
                )

            tx = append_movement(
                self.session,
                variant,
                qty,
                movement_type,
                balance_before=balance,
                user_id=user_id,
                note=note,
            )
            self.session.commit()
            logger.info(
                "stock %s %s for variant %s -> %s",
                movement_type, qty, variant_id, new_balance,
            )
            return tx

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def current_stock(self, variant_id: int) -> int:
        """
        On-hand quantity for a variant, from the ledger.

        A stale cache is resynchronized as a side effect.
        """
        def _op():
            variant = self._variant(variant_id)
            balance = self.ledger_balance(variant.id)
            if variant.stock != balance:
                self._report_divergence(variant, balance)
                variant.stock = balance
                self.session.commit()
            return balance

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def reconcile(self, variant_id: int, *, strict: bool = False) -> dict:
        """
        Replay the full ledger for a variant and compare it with the cache.

        strict=True raises ConsistencyError on any disagreement instead of
        repairing. A ledger that goes negative part way through cannot be
        repaired by touching the cache and is always reported as not ok.
        """
        variant = self._variant(variant_id)
        movements = (
            self.session.query(StockTransaction)
            .filter_by(product_variant_id=variant.id)
            .order_by(StockTransaction.id.asc())
            .all()
        )
        report = {
            "product_variant_id": variant.id,
            "cached": variant.stock,
            "ledger": None,
            "movements": len(movements),
            "ok": True,
            "repaired": False,
        }

        try:
            ledger = fold_movements(movements)
        except ConsistencyError as exc:
            consistency_logger().error(
                "stock ledger for variant %s is corrupt: %s", variant.id, exc,
                extra={"details": exc.details},
            )
            if strict:
                raise
            report.update(ok=False, error=str(exc))
            return report

        report["ledger"] = ledger
        if variant.stock == ledger:
            return report

        self._report_divergence(variant, ledger)
        if strict:
            raise ConsistencyError(
                "stock cache diverged from ledger",
                details={"product_variant_id": variant.id, "cached": variant.stock, "ledger": ledger},
            )

        def _repair():
            locked = self._variant(variant_id, lock=True)
            locked.stock = ledger
            self.session.commit()

        run_with_retry(self.session, _repair, attempts=self.retry_attempts)
        report["repaired"] = True
        return report

    def reconcile_all(self, *, strict: bool = False) -> list[dict]:
        ids = [row.id for row in self.session.query(ProductVariant.id).order_by(ProductVariant.id).all()]
        return [self.reconcile(variant_id, strict=strict) for variant_id in ids]

    def get_movement(self, movement_id: int) -> StockTransaction:
        tx = self.session.get(StockTransaction, movement_id)
        if tx is None:
            raise NotFound("stock transaction not found", details={"id": movement_id})
        return tx

    def list_movements(
        self,
        *,
        variant_id: int | None = None,
        movement_type: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
        sort: str | None = None,
        sort_field: str | None = None,
    ) -> dict:
        query = self.session.query(StockTransaction)
        if variant_id is not None:
            query = query.filter(StockTransaction.product_variant_id == variant_id)
        if movement_type is not None:
            query = query.filter(StockTransaction.type == movement_type)
        return paginate(
            query,
            StockTransaction,
            page=page,
            per_page=per_page,
            sort=sort,
            sort_field=sort_field,
        )
