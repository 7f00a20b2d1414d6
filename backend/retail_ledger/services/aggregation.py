# Overview: Pure aggregation functions behind every derived ledger value.

"""
Retail Ledger Aggregation Invariants (authoritative)

- Currency is decimal.Decimal end to end; floats are converted through str()
  so 9.99 stays 9.99 rather than its binary approximation.
- Totals are rounded once, at the end, to 2 places using ROUND_HALF_UP.
- compute_total is order independent: summing Decimals is exact before the
  single rounding step.
- A stock balance is the fold of movements in insertion order:
  in -> +qty, out -> -qty. No intermediate balance may be negative.

Nothing here touches the database; the ledger services feed these functions
with rows and persist the results.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from ..errors import ConsistencyError, InvalidLineItem, InvalidQuantity

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """
    Coerce a price-like value to a Decimal rounded to cents (half-up).

    Raises InvalidQuantity for values that are not numbers (including bools
    and NaN/infinity).
    """
    if isinstance(value, bool) or value is None:
        raise InvalidQuantity("price must be a number")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidQuantity("price must be a number", details={"value": str(value)})
    if not amount.is_finite():
        raise InvalidQuantity("price must be finite", details={"value": str(value)})
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


def compute_total(line_items: Iterable[Any]) -> Decimal:
    """
    Sum qty * price_each over line-items, rounded to cents half-up.

    Items may be mappings or objects exposing `qty` and `price_each`.
    An empty iterable totals Decimal("0.00"). A qty that is not a positive
    integer raises InvalidLineItem; it is never truncated.
    """
    total = Decimal("0")
    for index, item in enumerate(line_items):
        qty = _field(item, "qty")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidLineItem(
                "qty must be a positive integer",
                details={"index": index, "qty": str(qty)},
            )
        price_each = _field(item, "price_each")
        price = price_each if isinstance(price_each, Decimal) else Decimal(str(price_each))
        total += Decimal(qty) * price
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def movement_delta(movement_type: str, qty: int) -> int:
    """Signed effect of one movement on the balance."""
    if movement_type == "in":
        return qty
    if movement_type == "out":
        return -qty
    raise InvalidQuantity(f"unknown movement type {movement_type!r}", details={"type": movement_type})


def fold_movements(movements: Iterable[Any], *, opening: int = 0) -> int:
    """
    Replay movements in the given order and return the closing balance.

    Movements may be mappings or objects exposing `qty` and `type`.
    Raises ConsistencyError if the ledger itself is corrupt: an unknown type,
    a non-positive qty, or a running balance that dips below zero.
    """
    balance = opening
    for position, movement in enumerate(movements):
        qty = _field(movement, "qty")
        kind = _field(movement, "type")
        if kind not in ("in", "out") or int(qty) <= 0:
            raise ConsistencyError(
                "malformed stock movement in ledger",
                details={"position": position, "type": kind, "qty": qty},
            )
        balance += movement_delta(kind, int(qty))
        if balance < 0:
            raise ConsistencyError(
                "stock ledger goes negative",
                details={"position": position, "balance": balance},
            )
    return balance
