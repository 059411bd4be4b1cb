"""Date-range availability over the Store.

Free capacity is ``total_owned`` minus what open bookings have reserved for an
overlapping window. Physical stock is not consulted: a unit that is out with a
customer today can still be free for next month.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from ..schemas.inventory import AvailabilityLine, AvailabilityLineIn
from .store import Store


def _check_window(start: date, end: date) -> None:
    if start > end:
        raise ValueError("start must not be after end")


class AvailabilityEngine:
    def __init__(self, store: Store) -> None:
        self.store = store

    def reserved_quantity(
        self, product_id: int, start: date, end: date, exclude_order_id: Optional[int] = None
    ) -> int:
        """Units of ``product_id`` booked by open orders overlapping ``[start, end]``.

        ``exclude_order_id`` leaves one order out, so an order being edited is
        not counted against itself.
        """

        _check_window(start, end)
        reserved = 0
        for order in self.store.orders:
            if order.id == exclude_order_id or not order.is_open or not order.overlaps(start, end):
                continue
            reserved += sum(
                item.quantity for item in order.items if item.product_id == product_id and not item.is_external
            )
        return reserved

    def check_availability(
        self, product_id: int, start: date, end: date, exclude_order_id: Optional[int] = None
    ) -> int:
        product = self.store.get_product(product_id)
        return max(0, product.total_owned - self.reserved_quantity(product_id, start, end, exclude_order_id))

    def check_items(
        self,
        lines: Iterable[AvailabilityLineIn],
        start: date,
        end: date,
        exclude_order_id: Optional[int] = None,
    ) -> list[AvailabilityLine]:
        """Batch check used by booking; repeated products are summed before comparing."""

        requested: dict[int, int] = {}
        for line in lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
        result = []
        for product_id, quantity in requested.items():
            available = self.check_availability(product_id, start, end, exclude_order_id)
            result.append(
                AvailabilityLine(
                    product_id=product_id,
                    requested=quantity,
                    available=available,
                    is_enough=available >= quantity,
                )
            )
        return result
