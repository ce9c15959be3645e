"""
Module: mill_kernel.domain.yarn_types
Responsibility:
    Canonical grouping key and display form for yarn type labels.

Operators type yarn types by hand ("PC Melange", "pc  melange ",
"Pc melange").  Aggregation groups by ``normalize_yarn_type``; reports show
``format_yarn_type_display``.  Stored values are left as entered.
"""

from __future__ import annotations

UNKNOWN_YARN_TYPE = "unknown"

# Blend abbreviations shown upper-cased in reports
DEFAULT_ABBREVIATIONS: frozenset[str] = frozenset({"pp", "cvc", "pc"})


def normalize_yarn_type(value: str | None) -> str:
    """
    Grouping key: trimmed, internal whitespace collapsed, lower-cased.

    Blank or missing input maps to "unknown".  Idempotent.
    """
    if value is None:
        return UNKNOWN_YARN_TYPE
    key = " ".join(value.split()).lower()
    return key or UNKNOWN_YARN_TYPE


def format_yarn_type_display(
    value: str | None,
    abbreviations: frozenset[str] | set[str] = DEFAULT_ABBREVIATIONS,
) -> str:
    """
    Display form: known abbreviations upper-cased, other words capitalized.

    Examples:
        format_yarn_type_display("pc melange")  # "PC Melange"
        format_yarn_type_display("cvc")          # "CVC"
    """
    words = normalize_yarn_type(value).split(" ")
    return " ".join(
        word.upper() if word in abbreviations else word.capitalize()
        for word in words
    )


def same_yarn_type(left: str | None, right: str | None) -> bool:
    """True when two labels normalize to the same grouping key."""
    return normalize_yarn_type(left) == normalize_yarn_type(right)
