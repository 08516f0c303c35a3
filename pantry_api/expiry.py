"""Expiry evaluation and pantry statistics.

Every function here is pure: "today" is always passed in by the caller
(see ``get_today`` in ``routers/deps.py``), so results never depend on the
wall clock. Dates are compared as calendar dates; a ``datetime`` argument is
truncated with ``.date()`` before comparison, which keeps midnight from
shifting the day count.
"""
from collections import Counter
from datetime import date, datetime
from typing import Iterable, Optional, Union

DEFAULT_THRESHOLD_DAYS = 3

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until_expiry(expiry_date: Optional[DateLike], today: DateLike) -> Optional[int]:
    """Whole days from ``today`` to ``expiry_date``; negative once expired."""
    if expiry_date is None:
        return None
    return (_as_date(expiry_date) - _as_date(today)).days


def is_expiring_soon(
    expiry_date: Optional[DateLike],
    today: DateLike,
    threshold: int = DEFAULT_THRESHOLD_DAYS,
) -> bool:
    days = days_until_expiry(expiry_date, today)
    if days is None:
        return False
    return 0 <= days <= threshold


def is_expired(expiry_date: Optional[DateLike], today: DateLike) -> bool:
    days = days_until_expiry(expiry_date, today)
    if days is None:
        return False
    return days < 0


def _value(field):
    return getattr(field, "value", field)


def pantry_stats(products: Iterable, today: DateLike, threshold: int = DEFAULT_THRESHOLD_DAYS) -> dict:
    """Aggregate a user's pantry in a single pass.

    ``products`` may be ORM rows or any objects exposing ``category``,
    ``location``, ``expiry_date`` and ``is_consumed``. Consumed products are
    skipped, so callers may pass an unfiltered list.
    """
    total = 0
    expiring = 0
    expired = 0
    by_category: Counter = Counter()
    by_location: Counter = Counter()

    for product in products:
        if getattr(product, "is_consumed", False):
            continue
        total += 1
        if is_expiring_soon(product.expiry_date, today, threshold):
            expiring += 1
        elif is_expired(product.expiry_date, today):
            expired += 1
        by_category[_value(product.category)] += 1
        by_location[_value(product.location)] += 1

    return {
        "total_products": total,
        "expiring_soon": expiring,
        "expired": expired,
        "by_category": dict(by_category),
        "by_location": dict(by_location),
    }
