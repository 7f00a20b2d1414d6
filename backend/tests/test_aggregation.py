"""
Aggregation tests.

Verifies:
- Totals are exact decimal sums rounded once, half-up, to cents
- Totals do not depend on line-item order
- Stock balances fold movements in order and reject a corrupt ledger
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from retail_ledger.errors import ConsistencyError, InvalidLineItem, InvalidQuantity
from retail_ledger.services.aggregation import compute_total, fold_movements, movement_delta, to_money


# =============================================================================
# compute_total
# =============================================================================


class TestComputeTotal:

    def test_two_items(self):
        items = [
            {"qty": 2, "price_each": Decimal("9.99")},
            {"qty": 1, "price_each": Decimal("5.00")},
        ]
        assert compute_total(items) == Decimal("24.98")

    def test_empty_is_zero(self):
        total = compute_total([])
        assert total == Decimal("0.00")
        assert str(total) == "0.00"

    def test_accepts_objects(self):
        items = [SimpleNamespace(qty=3, price_each=Decimal("1.10"))]
        assert compute_total(items) == Decimal("3.30")

    def test_order_independent(self):
        items = [
            {"qty": 7, "price_each": Decimal("0.33")},
            {"qty": 1, "price_each": Decimal("19.99")},
            {"qty": 4, "price_each": Decimal("2.25")},
        ]
        assert compute_total(items) == compute_total(list(reversed(items)))

    def test_string_prices_are_exact(self):
        assert compute_total([{"qty": 3, "price_each": "0.10"}]) == Decimal("0.30")

    @pytest.mark.parametrize("qty", [1.5, 0, -2, True, "3", None])
    def test_qty_must_be_positive_integer(self, qty):
        with pytest.raises(InvalidLineItem) as exc:
            compute_total([{"qty": 1, "price_each": "1.00"}, {"qty": qty, "price_each": "10.00"}])
        assert exc.value.details["index"] == 1

    def test_float_prices_go_through_str(self):
        # 0.1 * 3 in binary floating point is 0.30000000000000004
        assert compute_total([{"qty": 3, "price_each": 0.1}]) == Decimal("0.30")


# =============================================================================
# to_money
# =============================================================================


class TestToMoney:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2.675", Decimal("2.68")),
            ("2.665", Decimal("2.67")),
            ("0.005", Decimal("0.01")),
            (10, Decimal("10.00")),
            (Decimal("1.234"), Decimal("1.23")),
        ],
    )
    def test_rounds_half_up(self, raw, expected):
        assert to_money(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, "abc", "NaN", "Infinity", ""])
    def test_rejects_non_numbers(self, raw):
        with pytest.raises(InvalidQuantity):
            to_money(raw)


# =============================================================================
# fold_movements
# =============================================================================


class TestFoldMovements:

    def test_in_then_out(self):
        movements = [{"qty": 10, "type": "in"}, {"qty": 3, "type": "out"}]
        assert fold_movements(movements) == 7

    def test_empty_ledger_is_opening_balance(self):
        assert fold_movements([]) == 0
        assert fold_movements([], opening=4) == 4

    def test_negative_running_balance_is_corrupt(self):
        # Ends at 0 but dips to -2 on the way
        movements = [{"qty": 2, "type": "out"}, {"qty": 2, "type": "in"}]
        with pytest.raises(ConsistencyError) as exc:
            fold_movements(movements)
        assert exc.value.details["position"] == 0

    @pytest.mark.parametrize("movement", [{"qty": 1, "type": "adjust"}, {"qty": 0, "type": "in"}])
    def test_malformed_movement(self, movement):
        with pytest.raises(ConsistencyError):
            fold_movements([movement])

    def test_movement_delta(self):
        assert movement_delta("in", 5) == 5
        assert movement_delta("out", 5) == -5
        with pytest.raises(InvalidQuantity):
            movement_delta("sideways", 5)
