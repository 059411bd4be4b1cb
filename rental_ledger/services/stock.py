"""Beginner-friendly overview for this module.

WHAT: ``StockMutator`` is the only place that changes physical stock counts or
the exported/returned counters on order items.
WHEN: Called for every warehouse scan (export, return), for administrative
order closing and for standalone stock corrections.
WHY: Keeping all stock arithmetic in one class makes the ledger auditable:
every change writes an inventory log in the same commit.
HOW: Each operation reads fresh rows from the repository, validates them,
builds one ``LedgerChangeset`` and commits it. A stale version means someone
else wrote first, so the operation is rebuilt from fresh rows and tried again.
The Store only sees rows the repository confirmed.

File: rental_ledger/services/stock.py
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..core.clock import Clock
from ..core.exceptions import (
    ConcurrentUpdateError,
    InsufficientStockError,
    OrderItemNotFoundError,
    OrderNotFoundError,
    OrderStateError,
    ProductNotFoundError,
    QuantityExceededError,
)
from ..repositories.interface import Repository
from ..schemas.inventory import InventoryLog, LedgerChangeset, LedgerCommit, LogAction, StaffContext
from ..schemas.order import Order, OrderItem, OrderStatus
from ..schemas.product import Product
from . import rentcalc
from .store import Store

logger = logging.getLogger(__name__)

PHANTOM_EXPORT_NOTE = "Auto-adjust: Detected return of un-scanned items"
AUTO_RESTOCK_NOTE = "Auto Restock - Staff: {name}"

SYSTEM_STAFF = StaffContext()


class StockMutator:
    def __init__(self, store: Store, repository: Repository, clock: Clock, retries: int = 3) -> None:
        self.store = store
        self.repository = repository
        self.clock = clock
        self.retries = retries

    # ---- plumbing

    def commit_changeset(self, action: str, build: Callable[[], LedgerChangeset]) -> LedgerCommit:
        """Build and commit a changeset, rebuilding it after a version conflict."""

        attempt = 0
        while True:
            changeset = build()
            try:
                commit = self.repository.commit(changeset)
            except ConcurrentUpdateError:
                attempt += 1
                if attempt > self.retries:
                    logger.warning(
                        "stock.conflict_gave_up",
                        extra={"extra_data": {"action": action, "attempts": attempt}},
                    )
                    raise
                logger.info(
                    "stock.conflict_retry",
                    extra={"extra_data": {"action": action, "attempt": attempt}},
                )
                continue
            self.store.absorb(commit)
            return commit

    def load_order(self, order_id: int) -> Order:
        order = self.repository.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def load_product(self, product_id: int) -> Product:
        product = self.repository.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _load_line(self, order_id: int, product_id: int, item_id: Optional[int], action: str) -> tuple[Order, OrderItem, Product]:
        order = self.load_order(order_id)
        if not order.is_open:
            raise OrderStateError(order_id, order.status.value, action)
        item = order.find_item(product_id, item_id)
        if item is None:
            raise OrderItemNotFoundError(order_id, product_id, item_id)
        return order, item, self.load_product(product_id)

    def _log(
        self,
        *,
        product_id: int,
        order_id: int,
        action: LogAction,
        quantity: int,
        note: Optional[str],
        staff: StaffContext,
        when: datetime,
    ) -> InventoryLog:
        return InventoryLog(
            product_id=product_id,
            order_id=order_id,
            action_type=action,
            quantity=quantity,
            timestamp=when,
            note=note,
            staff_id=staff.staff_id,
            staff_name=staff.staff_name,
        )

    # ---- operations

    def export_stock(
        self,
        order_id: int,
        product_id: int,
        quantity: int,
        note: Optional[str] = None,
        staff: StaffContext = SYSTEM_STAFF,
        item_id: Optional[int] = None,
    ) -> LedgerCommit:
        """Hand ``quantity`` units of an order line to the customer."""

        if quantity <= 0:
            raise ValueError("quantity must be positive")

        def build() -> LedgerChangeset:
            order, item, product = self._load_line(order_id, product_id, item_id, "export stock for")
            if item.exported_quantity + quantity > item.quantity:
                raise QuantityExceededError(
                    f"Exporting {quantity} would exceed the {item.quantity} ordered on order {order_id}",
                    details={"item_id": item.id, "ordered": item.quantity, "exported": item.exported_quantity},
                )
            products = []
            if not item.is_external:
                if quantity > product.current_physical_stock:
                    raise InsufficientStockError(product_id, quantity, product.current_physical_stock)
                products.append(
                    product.model_copy(update={"current_physical_stock": product.current_physical_stock - quantity})
                )
            status = OrderStatus.ACTIVE if order.status == OrderStatus.BOOKED else order.status
            return LedgerChangeset(
                products=products,
                orders=[order.model_copy(update={"status": status})],
                items=[item.model_copy(update={"exported_quantity": item.exported_quantity + quantity})],
                logs=[
                    self._log(
                        product_id=product_id,
                        order_id=order_id,
                        action=LogAction.EXPORT,
                        quantity=quantity,
                        note=note,
                        staff=staff,
                        when=self.clock.now(),
                    )
                ],
            )

        commit = self.commit_changeset("export", build)
        logger.info(
            "stock.exported",
            extra={"extra_data": {"order_id": order_id, "product_id": product_id, "quantity": quantity}},
        )
        return commit

    def import_stock(
        self,
        order_id: int,
        product_id: int,
        quantity: int,
        note: Optional[str] = None,
        staff: StaffContext = SYSTEM_STAFF,
        item_id: Optional[int] = None,
    ) -> LedgerCommit:
        """Take ``quantity`` units back; repairs unscanned exports and closes finished orders."""

        if quantity <= 0:
            raise ValueError("quantity must be positive")

        def build() -> LedgerChangeset:
            order, item, product = self._load_line(order_id, product_id, item_id, "return stock for")
            returned = item.returned_quantity + quantity
            if returned > item.quantity:
                raise QuantityExceededError(
                    f"Returning {quantity} would exceed the {item.quantity} ordered on order {order_id}",
                    details={"item_id": item.id, "ordered": item.quantity, "returned": item.returned_quantity},
                )
            now = self.clock.now()
            stock = product.current_physical_stock
            exported = item.exported_quantity
            logs = []

            phantom = returned - exported
            if phantom > 0:
                # Units came back that were never scanned out: book the missing export first.
                if not item.is_external:
                    stock -= phantom
                exported += phantom
                logs.append(
                    self._log(
                        product_id=product_id,
                        order_id=order_id,
                        action=LogAction.ADJUST,
                        quantity=phantom,
                        note=PHANTOM_EXPORT_NOTE,
                        staff=staff,
                        when=now,
                    )
                )

            if not item.is_external:
                stock += quantity
            logs.append(
                self._log(
                    product_id=product_id,
                    order_id=order_id,
                    action=LogAction.IMPORT,
                    quantity=quantity,
                    note=note,
                    staff=staff,
                    when=now,
                )
            )
            updated_item = item.model_copy(
                update={
                    "exported_quantity": exported,
                    "returned_quantity": returned,
                    "returned_at": now,
                    "returned_by": staff.display_name,
                }
            )

            header: dict[str, object] = {}
            lines = [updated_item if line.id == item.id else line for line in order.items]
            if all(line.fully_returned for line in lines):
                header = {"status": OrderStatus.COMPLETED, "actual_return_date": now}

            products = [] if item.is_external else [product.model_copy(update={"current_physical_stock": stock})]
            return LedgerChangeset(
                products=products,
                orders=[order.model_copy(update=header)],
                items=[updated_item],
                logs=logs,
            )

        commit = self.commit_changeset("import", build)
        for log in commit.logs:
            if log.action_type == LogAction.ADJUST:
                logger.warning(
                    "stock.phantom_export_repaired",
                    extra={"extra_data": {"order_id": order_id, "product_id": product_id, "quantity": log.quantity}},
                )
        logger.info(
            "stock.imported",
            extra={"extra_data": {"order_id": order_id, "product_id": product_id, "quantity": quantity}},
        )
        return commit

    def force_complete_order(self, order_id: int, staff: StaffContext = SYSTEM_STAFF) -> LedgerCommit:
        """Close an order without scanning every return: outstanding units are booked back in."""

        def build() -> LedgerChangeset:
            order = self.load_order(order_id)
            if not order.is_open:
                raise OrderStateError(order_id, order.status.value, "complete")
            now = self.clock.now()
            name = staff.display_name

            products: dict[int, Product] = {}
            for product_id in {item.product_id for item in order.items}:
                product = self.repository.get_product(product_id)
                if product is not None:
                    products[product_id] = product

            restocked: dict[int, Product] = {}
            items = []
            logs = []
            for item in order.items:
                outstanding = item.outstanding
                if item.is_external or outstanding <= 0:
                    continue
                product = restocked.get(item.product_id) or products.get(item.product_id)
                if product is None:
                    raise ProductNotFoundError(item.product_id)
                restocked[item.product_id] = product.model_copy(
                    update={"current_physical_stock": product.current_physical_stock + outstanding}
                )
                items.append(
                    item.model_copy(
                        update={"returned_quantity": item.exported_quantity, "returned_at": now, "returned_by": name}
                    )
                )
                logs.append(
                    self._log(
                        product_id=item.product_id,
                        order_id=order_id,
                        action=LogAction.IMPORT,
                        quantity=outstanding,
                        note=AUTO_RESTOCK_NOTE.format(name=name),
                        staff=staff,
                        when=now,
                    )
                )

            prices = {product_id: product.price_per_day for product_id, product in products.items()}
            return LedgerChangeset(
                products=list(restocked.values()),
                orders=[
                    order.model_copy(
                        update={
                            "status": OrderStatus.COMPLETED,
                            "actual_return_date": now,
                            "completed_by": name,
                            "final_amount": rentcalc.final_amount(order.items, prices, order.rental_start_date, now),
                        }
                    )
                ],
                items=items,
                logs=logs,
            )

        commit = self.commit_changeset("force_complete", build)
        logger.info(
            "order.force_completed",
            extra={"extra_data": {"order_id": order_id, "restocked_lines": len(commit.logs)}},
        )
        return commit

    def update_product_stock(
        self,
        product_id: int,
        new_stock: int,
        action_type: LogAction = LogAction.ADJUST,
        quantity: int = 0,
        note: Optional[str] = None,
        staff: StaffContext = SYSTEM_STAFF,
    ) -> LedgerCommit:
        """Set physical stock directly for corrections that belong to no order."""

        if new_stock < 0:
            raise ValueError("new_stock must not be negative")

        def build() -> LedgerChangeset:
            product = self.load_product(product_id)
            change = abs(new_stock - product.current_physical_stock)
            return LedgerChangeset(
                products=[product.model_copy(update={"current_physical_stock": new_stock})],
                logs=[
                    self._log(
                        product_id=product_id,
                        order_id=0,
                        action=action_type,
                        quantity=quantity or change,
                        note=note,
                        staff=staff,
                        when=self.clock.now(),
                    )
                ],
            )

        commit = self.commit_changeset("adjust", build)
        logger.info(
            "stock.adjusted",
            extra={"extra_data": {"product_id": product_id, "new_stock": new_stock, "action": action_type.value}},
        )
        return commit
