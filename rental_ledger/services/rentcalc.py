from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Iterable, Mapping

from ..schemas.order import OrderItem

SECONDS_PER_DAY = 24 * 60 * 60


def rental_days(start: date, end: date) -> int:
    """Billable days for a booked window; both ends count, so a same-day rental is 1."""
    return abs((end - start).days) + 1


def actual_rental_days(start: date, returned_at: datetime) -> int:
    """
    Days billed when an order is closed at ``returned_at``.
    The rental starts at midnight of ``start`` in the return timestamp's zone;
    any started day counts in full, plus the first day.
    """
    started = datetime.combine(start, time.min, tzinfo=returned_at.tzinfo)
    elapsed = abs((returned_at - started).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY) + 1


def _amount(items: Iterable[OrderItem], prices: Mapping[int, float], days: int) -> float:
    # Unknown products bill at zero.
    return float(sum(prices.get(item.product_id, 0.0) * item.quantity * days for item in items))


def estimate_total(items: Iterable[OrderItem], prices: Mapping[int, float], start: date, end: date) -> float:
    return _amount(items, prices, rental_days(start, end))


def final_amount(items: Iterable[OrderItem], prices: Mapping[int, float], start: date, returned_at: datetime) -> float:
    return _amount(items, prices, actual_rental_days(start, returned_at))
