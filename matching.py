"""
matching.py - Item matching and aggregation primitives.

Core helpers shared by every readiness rule:
    normalize(text)                      -> trimmed, lower-cased text
    is_category / is_any_category        -> taxonomy membership
    has_presentation(item, presentations)
    keyword_hit(item, keywords)          -> substring search over item text
    sum_quantity(items, predicate)       -> non-negative quantity total
    tablet_equivalent_units(item, ...)   -> vitamin dosage-unit estimate
    count_distinct_names(items, predicate)
    range_status(value, band)            -> PASS / WARN / FAIL
    parse_expiration_month_end(text)     -> last calendar day of MM/YYYY

Design principles:
    - Pure functions, no I/O
    - Malformed or negative numbers contribute zero, never raise
    - Keyword matching is plain substring matching on normalized text
"""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Any, Callable, Iterable

from dateutil.relativedelta import relativedelta

from logging_config import get_logger
from models import CheckStatus, Item, taxonomy_text
from readiness_config import ThresholdBand

logger = get_logger(__name__)

ItemPredicate = Callable[[Item], bool]

_EXPIRATION_PATTERN = re.compile(r"^\s*(\d{1,2})\s*/\s*(\d{4})\s*$")


def normalize(value: Any) -> str:
    """Trim and lower-case any taxonomy value or text; None becomes ''."""
    return taxonomy_text(value).strip().lower()


def is_category(item: Item, category: str) -> bool:
    return normalize(item.category) == normalize(category)


def is_any_category(item: Item, categories: Iterable[str]) -> bool:
    return any(is_category(item, category) for category in categories)


def has_presentation(item: Item, presentations: Iterable[str]) -> bool:
    """Whether the item's presentation is one of `presentations`, ignoring case."""
    return normalize(item.presentation) in {normalize(p) for p in presentations}


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    normalized = normalize(text)
    terms = (normalize(keyword) for keyword in keywords)
    return any(term and term in normalized for term in terms)


def keyword_hit(item: Item, keywords: Iterable[str]) -> bool:
    """Substring search across name, brand, dose and presentation.

    Short keywords can match inside longer words ("zinc" in "zincofax");
    that permissiveness is kept as-is.
    """
    haystack = " ".join(
        [item.name, item.brand, item.dose, taxonomy_text(item.presentation)]
    )
    return contains_any(haystack, keywords)


def as_non_negative_number(value: Any) -> float:
    """Coerce a quantity-like value to a float; garbage and negatives become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        parsed = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        logger.debug("numeric_recovery | value=%r | contribution=0", value)
        return 0.0
    if not math.isfinite(parsed) or parsed < 0:
        logger.debug("numeric_recovery | value=%r | contribution=0", value)
        return 0.0
    return parsed


def is_valid_quantity(value: Any) -> bool:
    """True when the raw value is a finite, non-negative number."""
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, str) and not value.strip():
        return False
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(parsed) and parsed >= 0


def sum_quantity(items: Iterable[Item], predicate: ItemPredicate) -> float:
    return sum(as_non_negative_number(item.quantity) for item in items if predicate(item))


def tablet_equivalent_units(item: Item, tablet_like_markers: Iterable[str]) -> float:
    """Estimate discrete dosage units for vitamin thresholds.

    When the product amount unit is tablet/capsule-like, quantity counts
    packages and product_amount counts units per package, so the two are
    multiplied. Otherwise quantity is returned unchanged.
    """
    quantity = as_non_negative_number(item.quantity)
    if contains_any(item.product_amount_unit, tablet_like_markers):
        return quantity * as_non_negative_number(item.product_amount)
    return quantity


def count_distinct_names(items: Iterable[Item], predicate: ItemPredicate) -> int:
    names = {normalize(item.name) for item in items if predicate(item)}
    names.discard("")
    return len(names)


def range_status(value: float, band: ThresholdBand) -> CheckStatus:
    """Grade a value against a threshold band."""
    if value < band.fail_min:
        return CheckStatus.FAIL
    if value < band.warn_min:
        return CheckStatus.WARN
    if band.warn_max is not None and value > band.warn_max:
        return CheckStatus.WARN
    return CheckStatus.PASS


def is_pediatric_signal(
    item: Item,
    name_keywords: Iterable[str],
    dose_markers: Iterable[str],
) -> bool:
    """Name says child/infant/etc, or dose is expressed per mL."""
    name = normalize(item.name)
    dose = normalize(item.dose)
    return contains_any(name, name_keywords) or contains_any(dose, dose_markers)


def parse_expiration_month_end(value: str) -> date:
    """Parse 'MM/YYYY' into the last calendar day of that month.

    Raises:
        ValueError: If the value is not a month/year pair with month 1-12.
    """
    match = _EXPIRATION_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid expiration date format: {value!r}")
    month = int(match.group(1))
    year = int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise ValueError(f"Invalid expiration date format: {value!r}")
    return date(year, month, 1) + relativedelta(day=31)


def format_number(value: float) -> str:
    """Render counts without a trailing '.0' when they are whole."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def whole_number(value: float) -> int | float:
    """Evidence form of a count: int when whole, float otherwise."""
    if float(value).is_integer():
        return int(value)
    return value
