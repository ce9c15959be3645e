"""
Tests for the typed input boundary.

Covers:
- Quantities: blanks, strings, floats, booleans, NaN, negatives
- Units, shifts, machine numbers and dates
- Free text trimming
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from mill_kernel.domain.parsing import (
    parse_count,
    parse_entry_date,
    parse_machine_number,
    parse_quantity,
    parse_shift,
    parse_text,
    parse_unit,
)
from mill_kernel.exceptions import (
    InvalidFieldError,
    InvalidQuantityError,
    InvalidShiftError,
    InvalidUnitError,
    MissingFieldError,
    ValidationError,
)
from mill_kernel.models.production_entry import Shift


class TestParseQuantity:
    """Production and configuration figures."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("350", Decimal("350")),
            (" 350.5 ", Decimal("350.5")),
            (350, Decimal("350")),
            (0.1, Decimal("0.1")),
            (Decimal("12.75"), Decimal("12.75")),
            ("0", Decimal("0")),
        ],
    )
    def test_accepts_numbers(self, raw, expected):
        assert parse_quantity(raw, "actual_production") == expected

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_is_none(self, raw):
        assert parse_quantity(raw, "mains_reading") is None

    def test_blank_required_raises_missing(self):
        with pytest.raises(MissingFieldError) as exc_info:
            parse_quantity("", "actual_production", required=True)
        assert exc_info.value.field == "actual_production"
        assert exc_info.value.code == "MISSING_FIELD"

    @pytest.mark.parametrize("raw", ["abc", "12kg", "NaN", "inf", float("nan"), float("inf"), True, [1]])
    def test_rejects_non_numeric(self, raw):
        """Garbage is rejected, never coerced to zero."""
        with pytest.raises(InvalidQuantityError):
            parse_quantity(raw, "actual_production")

    def test_rejects_negative(self):
        with pytest.raises(InvalidQuantityError, match="negative"):
            parse_quantity("-5", "actual_production")

    def test_positive_rejects_zero(self):
        with pytest.raises(InvalidQuantityError):
            parse_quantity("0", "rated_production_100", positive=True)

    def test_errors_are_validation_errors(self):
        with pytest.raises(ValidationError):
            parse_quantity("x", "speed")


class TestParseCounts:
    """Whole numbers and machine numbers."""

    def test_whole_number(self):
        assert parse_count("1200", "spindle_count") == 1200

    def test_fraction_rejected(self):
        with pytest.raises(InvalidQuantityError):
            parse_count("12.5", "spindle_count")

    def test_machine_number(self):
        assert parse_machine_number("7") == 7

    def test_machine_number_zero_rejected(self):
        with pytest.raises(InvalidFieldError):
            parse_machine_number(0)

    def test_machine_number_required(self):
        with pytest.raises(MissingFieldError):
            parse_machine_number(None)


class TestParseUnit:
    """Production units."""

    @pytest.mark.parametrize("raw", [1, "1", " 2 ", 2.0])
    def test_accepts_configured_units(self, raw):
        assert parse_unit(raw) in (1, 2)

    @pytest.mark.parametrize("raw", [3, "three", 1.5, True, 0])
    def test_rejects_others(self, raw):
        with pytest.raises(InvalidUnitError):
            parse_unit(raw)

    def test_custom_allowed(self):
        assert parse_unit(3, allowed=(1, 2, 3)) == 3

    def test_missing(self):
        with pytest.raises(MissingFieldError):
            parse_unit(None)


class TestParseShift:
    """Shift names."""

    @pytest.mark.parametrize("raw", ["day", "DAY", " Day "])
    def test_day(self, raw):
        assert parse_shift(raw) is Shift.DAY

    def test_enum_passes_through(self):
        assert parse_shift(Shift.NIGHT) is Shift.NIGHT

    @pytest.mark.parametrize("raw", ["evening", "d", 1])
    def test_rejects_unknown(self, raw):
        with pytest.raises(InvalidShiftError):
            parse_shift(raw)

    def test_missing(self):
        with pytest.raises(MissingFieldError):
            parse_shift("")


class TestParseEntryDate:
    """Calendar dates."""

    def test_iso_string(self):
        assert parse_entry_date("2024-01-15") == date(2024, 1, 15)

    def test_iso_timestamp_keeps_date(self):
        assert parse_entry_date("2024-01-15T23:10:00Z") == date(2024, 1, 15)

    def test_datetime(self):
        assert parse_entry_date(datetime(2024, 1, 15, 8, 30)) == date(2024, 1, 15)

    def test_bad_string(self):
        with pytest.raises(InvalidFieldError):
            parse_entry_date("15/01/2024")

    @pytest.mark.parametrize(
        "raw",
        ["2024-01-10garbage", "2024-01-10T99:99", "2024-01-10 extra", "2024-02-30"],
    )
    def test_trailing_or_invalid_text_rejected(self, raw):
        with pytest.raises(InvalidFieldError):
            parse_entry_date(raw)

    def test_surrounding_whitespace_allowed(self):
        assert parse_entry_date("  2024-01-10 ") == date(2024, 1, 10)

    def test_missing(self):
        with pytest.raises(MissingFieldError):
            parse_entry_date(None)


class TestParseText:
    """Free text."""

    def test_trims(self):
        assert parse_text("  Ravi ", "worker_name") == "Ravi"

    def test_blank_is_none(self):
        assert parse_text("  ", "remarks") is None

    def test_too_long(self):
        with pytest.raises(InvalidFieldError):
            parse_text("x" * 101, "worker_name")

    def test_non_text(self):
        with pytest.raises(InvalidFieldError):
            parse_text(12, "worker_name")
