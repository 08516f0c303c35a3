import random
from datetime import date

from ..models import utc_today


def get_today() -> date:
    """Calendar date the expiry checks are evaluated against (UTC)."""
    return utc_today()


def get_rng() -> random.Random:
    return random.Random()
