"""
Miscellaneous expressions.
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression, literal

__all__ = ["literal", "meta", "rand", "sample_rate", "to_hash"]


def meta(keyword: str = "textScore") -> Expression:
    """Metadata of the current document, e.g. ``"textScore"`` or ``"indexKey"``."""
    return Expression("$meta", keyword)


def rand() -> Expression:
    """Random float between 0 and 1."""
    return Expression("$rand", {})


def sample_rate(rate: float) -> Expression:
    if not 0 <= rate <= 1:
        raise ValueError("sample rate must be between 0 and 1")
    return Expression("$sampleRate", rate)


def to_hash(value: Any) -> Expression:
    return Expression("$toHashedIndexKey", value)
