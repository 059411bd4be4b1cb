"""Order booking and maintenance."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from ..core.exceptions import AvailabilityError, OrderStateError
from ..repositories.interface import Repository
from ..schemas.inventory import AvailabilityLineIn, LedgerChangeset
from ..schemas.order import OPEN_STATUSES, Order, OrderItem, OrderLineIn, OrderStatus, OrderUpdate
from . import rentcalc
from .availability import AvailabilityEngine
from .stock import StockMutator
from .store import Store

logger = logging.getLogger(__name__)

# Orders that never moved stock can be removed outright.
_DELETABLE = frozenset({OrderStatus.BOOKED, OrderStatus.CANCELLED})


class OrderBook:
    def __init__(
        self,
        store: Store,
        repository: Repository,
        availability: AvailabilityEngine,
        mutator: StockMutator,
    ) -> None:
        self.store = store
        self.repository = repository
        self.availability = availability
        self.mutator = mutator

    def book_order(
        self,
        customer_id: int,
        start: date,
        end: date,
        lines: Iterable[OrderLineIn],
        total_amount: Optional[float] = None,
        note: Optional[str] = None,
    ) -> Order:
        """Create a BOOKED order once every own-stock line fits into free capacity."""

        lines = list(lines)
        if start > end:
            raise ValueError("rental_start_date must not be after expected_return_date")
        if not lines:
            raise ValueError("an order needs at least one item")
        self.store.get_customer(customer_id)
        for line in lines:
            if line.quantity <= 0:
                raise ValueError("item quantity must be positive")
            self.store.get_product(line.product_id)

        own = [AvailabilityLineIn(product_id=line.product_id, quantity=line.quantity) for line in lines if not line.is_external]
        if own:
            shortages = [check for check in self.availability.check_items(own, start, end) if not check.is_enough]
            if shortages:
                logger.info(
                    "order.booking_rejected",
                    extra={"extra_data": {"customer_id": customer_id, "shortages": len(shortages)}},
                )
                raise AvailabilityError([check.model_dump() for check in shortages])

        items = [
            OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                is_external=line.is_external,
                supplier_id=line.supplier_id,
                cost_price=line.cost_price,
                note=line.note,
            )
            for line in lines
        ]
        if total_amount is None:
            total_amount = self._estimate(items, start, end)

        order = self.repository.insert_order(
            Order(
                customer_id=customer_id,
                rental_start_date=start,
                expected_return_date=end,
                status=OrderStatus.BOOKED,
                items=items,
                total_amount=total_amount,
                note=note,
            )
        )
        self.store.put_order(order)
        logger.info(
            "order.booked",
            extra={"extra_data": {"order_id": order.id, "customer_id": customer_id, "lines": len(items)}},
        )
        return order

    def _change_header(self, order_id: int, action: str, allowed: frozenset[OrderStatus], **changes: object) -> Order:
        def build() -> LedgerChangeset:
            order = self.mutator.load_order(order_id)
            if order.status not in allowed:
                raise OrderStateError(order_id, order.status.value, action)
            return LedgerChangeset(orders=[order.model_copy(update=changes)])

        commit = self.mutator.commit_changeset(action, build)
        return commit.orders[0]

    def _estimate(self, items: Iterable[OrderItem], start: date, end: date) -> float:
        prices = {product.id: product.price_per_day for product in self.store.products}
        return rentcalc.estimate_total(items, prices, start, end)

    def _require_capacity(
        self, order_id: int, lines: list[AvailabilityLineIn], start: date, end: date, *, exclude_self: bool
    ) -> None:
        if not lines:
            return
        checks = self.availability.check_items(lines, start, end, exclude_order_id=order_id if exclude_self else None)
        shortages = [check for check in checks if not check.is_enough]
        if shortages:
            logger.info(
                "order.change_rejected",
                extra={"extra_data": {"order_id": order_id, "shortages": len(shortages)}},
            )
            raise AvailabilityError([check.model_dump() for check in shortages])

    def update_order(self, order_id: int, changes: OrderUpdate) -> Order:
        """Edit the header of an open order.

        A new ``expected_return_date`` re-checks the order's own-stock lines
        against the longer window (the order itself excluded) and, unless an
        explicit ``total_amount`` comes along, re-estimates the total.
        """

        # Only the note may be cleared with an explicit null.
        updates = {
            field: value
            for field, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or field == "note"
        }

        def build() -> LedgerChangeset:
            order = self.mutator.load_order(order_id)
            if order.status not in OPEN_STATUSES:
                raise OrderStateError(order_id, order.status.value, "update")
            header = dict(updates)
            new_end = header.get("expected_return_date")
            if new_end is not None and new_end != order.expected_return_date:
                if new_end < order.rental_start_date:
                    raise ValueError("expected_return_date must not be before rental_start_date")
                if new_end > order.expected_return_date:
                    own = [
                        AvailabilityLineIn(product_id=item.product_id, quantity=item.quantity)
                        for item in order.items
                        if not item.is_external
                    ]
                    self._require_capacity(order_id, own, order.rental_start_date, new_end, exclude_self=True)
                if "total_amount" not in header:
                    header["total_amount"] = self._estimate(order.items, order.rental_start_date, new_end)
            return LedgerChangeset(orders=[order.model_copy(update=header)])

        commit = self.mutator.commit_changeset("update", build)
        logger.info("order.updated", extra={"extra_data": {"order_id": order_id, "fields": sorted(updates)}})
        return commit.orders[0]

    def add_item(self, order_id: int, line: OrderLineIn) -> Order:
        """Add a line to a BOOKED or ACTIVE order and re-estimate its total.

        Own-stock lines must fit into free capacity over the order's window;
        sub-rented lines are taken as they come.
        """

        self.store.get_product(line.product_id)

        def build() -> LedgerChangeset:
            order = self.mutator.load_order(order_id)
            if order.status not in OPEN_STATUSES:
                raise OrderStateError(order_id, order.status.value, "add an item to")
            if not line.is_external:
                self._require_capacity(
                    order_id,
                    [AvailabilityLineIn(product_id=line.product_id, quantity=line.quantity)],
                    order.rental_start_date,
                    order.expected_return_date,
                    exclude_self=False,
                )
            item = OrderItem(
                order_id=order_id,
                product_id=line.product_id,
                quantity=line.quantity,
                is_external=line.is_external,
                supplier_id=line.supplier_id if line.is_external else None,
                cost_price=line.cost_price,
                note=line.note,
            )
            total = self._estimate([*order.items, item], order.rental_start_date, order.expected_return_date)
            return LedgerChangeset(orders=[order.model_copy(update={"total_amount": total})], new_items=[item])

        commit = self.mutator.commit_changeset("add item", build)
        logger.info(
            "order.item_added",
            extra={"extra_data": {"order_id": order_id, "product_id": line.product_id, "quantity": line.quantity}},
        )
        return commit.orders[0]

    def cancel_order(self, order_id: int) -> Order:
        order = self._change_header(order_id, "cancel", frozenset({OrderStatus.BOOKED}), status=OrderStatus.CANCELLED)
        logger.info("order.cancelled", extra={"extra_data": {"order_id": order_id}})
        return order

    def delete_order(self, order_id: int) -> None:
        order = self.mutator.load_order(order_id)
        if order.status not in _DELETABLE:
            raise OrderStateError(order_id, order.status.value, "delete")
        self.repository.delete_order(order_id)
        self.store.remove_order(order_id)
        logger.info("order.deleted", extra={"extra_data": {"order_id": order_id}})
