"""
Tests for shift efficiency.

Covers:
- actual / theoretical * 100
- Unrated and non-positive bases yield None
- No clamping above 100
- Presentation rounding
"""

from decimal import Decimal

import pytest

from mill_kernel.domain.efficiency import compute_efficiency, present_efficiency


class TestComputeEfficiency:
    """Tests for compute_efficiency."""

    def test_basic_ratio(self):
        assert compute_efficiency(Decimal("350"), Decimal("400")) == Decimal("87.5")

    def test_full_rating_is_one_hundred(self):
        assert compute_efficiency(Decimal("400"), Decimal("400")) == Decimal("100")

    def test_over_rated_shift_is_not_clamped(self):
        assert compute_efficiency(Decimal("500"), Decimal("400")) == Decimal("125")

    def test_zero_production_is_zero_percent(self):
        assert compute_efficiency(Decimal("0"), Decimal("400")) == Decimal("0")

    def test_unrated_is_none(self):
        """No theoretical production means no efficiency, not zero."""
        assert compute_efficiency(Decimal("350"), None) is None

    @pytest.mark.parametrize("basis", [Decimal("0"), Decimal("-1")])
    def test_non_positive_basis_is_none(self, basis):
        assert compute_efficiency(Decimal("350"), basis) is None

    def test_stored_value_is_unrounded(self):
        value = compute_efficiency(Decimal("1"), Decimal("3"))
        assert value != present_efficiency(value)
        assert value > Decimal("33.33")


class TestPresentEfficiency:
    """Tests for two-decimal presentation."""

    def test_rounds_half_up(self):
        assert present_efficiency(Decimal("87.125")) == Decimal("87.13")

    def test_none_passes_through(self):
        assert present_efficiency(None) is None

    def test_one_third(self):
        assert present_efficiency(compute_efficiency(Decimal("1"), Decimal("3"))) == Decimal("33.33")
