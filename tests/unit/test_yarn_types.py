"""
Tests for yarn type normalization and display.
"""

import string

from hypothesis import given
from hypothesis import strategies as st

from mill_kernel.domain.yarn_types import (
    UNKNOWN_YARN_TYPE,
    format_yarn_type_display,
    normalize_yarn_type,
    same_yarn_type,
)


class TestNormalizeYarnType:
    """Grouping key behaviour."""

    def test_collapses_case_and_whitespace(self):
        assert normalize_yarn_type("  PC   Melange ") == "pc melange"

    def test_variants_group_together(self):
        assert same_yarn_type("PC Melange", "pc  melange ")
        assert same_yarn_type("Pc melange", "PC MELANGE")

    def test_different_types_stay_apart(self):
        assert not same_yarn_type("PC Melange", "CVC Melange")

    def test_blank_is_unknown(self):
        assert normalize_yarn_type("") == UNKNOWN_YARN_TYPE
        assert normalize_yarn_type("   ") == UNKNOWN_YARN_TYPE
        assert normalize_yarn_type(None) == UNKNOWN_YARN_TYPE

    @given(st.text(alphabet=string.printable))
    def test_idempotent(self, value):
        once = normalize_yarn_type(value)
        assert normalize_yarn_type(once) == once


class TestFormatYarnTypeDisplay:
    """Display form for reports."""

    def test_abbreviation_upper_cased(self):
        assert format_yarn_type_display("pc melange") == "PC Melange"

    def test_abbreviation_alone(self):
        assert format_yarn_type_display("cvc") == "CVC"

    def test_plain_words_capitalized(self):
        assert format_yarn_type_display("  cotton   combed ") == "Cotton Combed"

    def test_custom_abbreviations(self):
        assert format_yarn_type_display("ne 30 cotton", frozenset({"ne"})) == "NE 30 Cotton"

    def test_unknown(self):
        assert format_yarn_type_display(None) == "Unknown"
