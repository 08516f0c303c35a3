"""Recipe rating rules.

The database-backed like, save and rate operations live in ``crud.py``; this
module holds the rating arithmetic they share so it can be exercised without
a session.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .errors import ValidationError

MIN_RATING = 1
MAX_RATING = 5


def average_rating(values: Iterable[int]) -> float:
    """Mean rating rounded half-up to one decimal, 0 when there are none."""
    values = list(values)
    if not values:
        return 0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError.for_field("rating", "Rating must be an integer between 1 and 5")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError.for_field("rating", "Rating must be an integer between 1 and 5")
    return rating
