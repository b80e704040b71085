"""
Unit tests for the money helpers.

Verifies:
- Rounding determinism (half-up, two places)
- Float inputs go through str, never their binary expansion
- None is zero
- Dues clamp at zero
"""

from decimal import Decimal

import pytest

from admissions_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    ZERO,
    clamp_non_negative,
    round_money,
    to_money,
)


class TestToMoney:
    def test_none_is_zero(self):
        assert to_money(None) == ZERO

    def test_int_and_str(self):
        assert to_money(100000) == Decimal("100000")
        assert to_money("2500.75") == Decimal("2500.75")

    def test_float_goes_through_str(self):
        assert to_money(0.1) == Decimal("0.1")

    def test_decimal_passes_through(self):
        value = Decimal("12.345")
        assert to_money(value) is value

    def test_invalid_string_raises(self):
        with pytest.raises(Exception):  # decimal.InvalidOperation
            to_money("not a number")


class TestRoundMoney:
    def test_default_places(self):
        assert MONEY_DECIMAL_PLACES == 2
        assert round_money(Decimal("10.005")) == Decimal("10.01")

    def test_half_up_not_bankers(self):
        assert round_money(Decimal("2.125")) == Decimal("2.13")
        assert round_money(Decimal("2.135")) == Decimal("2.14")

    def test_negative_half_up_away_from_zero(self):
        assert round_money(Decimal("-2.125")) == Decimal("-2.13")

    def test_zero_places(self):
        assert round_money(Decimal("99.5"), decimal_places=0) == Decimal("100")

    def test_storage_scale_collapses(self):
        """Values read back at Numeric(38, 9) scale compare equal after rounding."""
        assert round_money(Decimal("70000.000000000")) == Decimal("70000.00")

    def test_deterministic(self):
        results = {round_money(Decimal("1234.5678")) for _ in range(50)}
        assert results == {Decimal("1234.57")}


class TestClampNonNegative:
    def test_negative_becomes_zero(self):
        assert clamp_non_negative(Decimal("-5000")) == Decimal("0.00")

    def test_positive_is_rounded(self):
        assert clamp_non_negative(Decimal("30000.004")) == Decimal("30000.00")
