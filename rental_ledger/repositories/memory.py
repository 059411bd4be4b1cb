"""In-process repository used for tests, demos and ``REPOSITORY_BACKEND=memory``."""

from __future__ import annotations

import itertools
import threading
from typing import Iterable, Optional

from ..core.exceptions import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from ..schemas.customer import Customer
from ..schemas.inventory import InventoryLog, LedgerChangeset, LedgerCommit
from ..schemas.order import Order, OrderItem
from ..schemas.product import Product
from .interface import ITEM_MUTABLE_FIELDS, ORDER_HEADER_FIELDS, PRODUCT_MUTABLE_FIELDS


class InMemoryRepository:
    """Dictionary-backed storage with the same version rules as the SQL backend."""

    def __init__(
        self,
        *,
        products: Iterable[Product] = (),
        customers: Iterable[Customer] = (),
        orders: Iterable[Order] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._products: dict[int, Product] = {}
        self._orders: dict[int, Order] = {}
        self._customers: dict[int, Customer] = {}
        self._logs: list[InventoryLog] = []
        self._product_ids = itertools.count(1)
        self._order_ids = itertools.count(1)
        self._item_ids = itertools.count(1)
        self._customer_ids = itertools.count(1)
        self._log_ids = itertools.count(1)
        for product in products:
            self.insert_product(product)
        for customer in customers:
            self.insert_customer(customer)
        for order in orders:
            self.insert_order(order)

    # ---- reads

    def list_products(self) -> list[Product]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._products.values()]

    def list_orders(self) -> list[Order]:
        with self._lock:
            return [o.model_copy(deep=True) for o in self._orders.values()]

    def list_customers(self) -> list[Customer]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._customers.values()]

    def list_logs(self) -> list[InventoryLog]:
        with self._lock:
            return [log.model_copy(deep=True) for log in self._logs]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._lock:
            product = self._products.get(product_id)
            return product.model_copy(deep=True) if product else None

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return order.model_copy(deep=True) if order else None

    # ---- inserts / deletes

    def insert_product(self, product: Product) -> Product:
        with self._lock:
            if any(existing.code == product.code for existing in self._products.values()):
                raise ValueError(f"Product code {product.code} already exists")
            stored = product.model_copy(update={"id": next(self._product_ids), "version": 1}, deep=True)
            self._products[stored.id] = stored
            return stored.model_copy(deep=True)

    def delete_product(self, product_id: int) -> None:
        with self._lock:
            if self._products.pop(product_id, None) is None:
                raise ProductNotFoundError(product_id)

    def insert_order(self, order: Order) -> Order:
        with self._lock:
            order_id = next(self._order_ids)
            items = [
                item.model_copy(update={"id": next(self._item_ids), "order_id": order_id, "version": 1}, deep=True)
                for item in order.items
            ]
            stored = order.model_copy(update={"id": order_id, "items": items, "version": 1}, deep=True)
            self._orders[order_id] = stored
            return stored.model_copy(deep=True)

    def delete_order(self, order_id: int) -> None:
        with self._lock:
            if self._orders.pop(order_id, None) is None:
                raise OrderNotFoundError(order_id)

    def insert_customer(self, customer: Customer) -> Customer:
        with self._lock:
            stored = customer.model_copy(update={"id": next(self._customer_ids)}, deep=True)
            self._customers[stored.id] = stored
            return stored.model_copy(deep=True)

    # ---- versioned writes

    def commit(self, changeset: LedgerChangeset) -> LedgerCommit:
        with self._lock:
            # Validate everything first so a stale row leaves storage untouched.
            self._check_versions(changeset)

            products: list[Product] = []
            for product in changeset.products:
                current = self._products[product.id]
                stored = current.model_copy(
                    update={
                        **{field: getattr(product, field) for field in PRODUCT_MUTABLE_FIELDS},
                        "version": current.version + 1,
                    },
                    deep=True,
                )
                self._products[stored.id] = stored
                products.append(stored.model_copy(deep=True))

            touched: dict[int, None] = {}
            for order in changeset.orders:
                current = self._orders[order.id]
                self._orders[order.id] = current.model_copy(
                    update={
                        **{field: getattr(order, field) for field in ORDER_HEADER_FIELDS},
                        "version": current.version + 1,
                    },
                    deep=True,
                )
                touched[order.id] = None

            for item in changeset.items:
                order = self._orders[item.order_id]
                items = []
                for existing in order.items:
                    if existing.id == item.id:
                        existing = existing.model_copy(
                            update={
                                **{field: getattr(item, field) for field in ITEM_MUTABLE_FIELDS},
                                "version": existing.version + 1,
                            },
                            deep=True,
                        )
                    items.append(existing)
                self._orders[order.id] = order.model_copy(update={"items": items})
                touched[order.id] = None

            for item in changeset.new_items:
                order = self._orders[item.order_id]
                added = item.model_copy(
                    update={"id": next(self._item_ids), "order_id": order.id, "version": 1},
                    deep=True,
                )
                self._orders[order.id] = order.model_copy(update={"items": [*order.items, added]})
                touched[order.id] = None

            logs: list[InventoryLog] = []
            for log in changeset.logs:
                stored_log = log.model_copy(update={"id": next(self._log_ids)}, deep=True)
                self._logs.append(stored_log)
                logs.append(stored_log.model_copy(deep=True))

            return LedgerCommit(
                products=products,
                orders=[self._orders[order_id].model_copy(deep=True) for order_id in touched],
                logs=logs,
            )

    def _check_versions(self, changeset: LedgerChangeset) -> None:
        for product in changeset.products:
            current = self._products.get(product.id)
            if current is None or current.version != product.version:
                raise ConcurrentUpdateError(
                    f"Product {product.id} changed since it was read",
                    details={"entity": "product", "id": product.id},
                )
        for order in changeset.orders:
            current = self._orders.get(order.id)
            if current is None or current.version != order.version:
                raise ConcurrentUpdateError(
                    f"Order {order.id} changed since it was read",
                    details={"entity": "order", "id": order.id},
                )
        for item in changeset.items:
            order = self._orders.get(item.order_id)
            current_item: Optional[OrderItem] = None
            if order is not None:
                current_item = next((existing for existing in order.items if existing.id == item.id), None)
            if current_item is None or current_item.version != item.version:
                raise ConcurrentUpdateError(
                    f"Order item {item.id} changed since it was read",
                    details={"entity": "order item", "id": item.id},
                )
        for item in changeset.new_items:
            if item.order_id not in self._orders:
                raise ConcurrentUpdateError(
                    f"Order {item.order_id} disappeared before its new line was stored",
                    details={"entity": "order", "id": item.order_id},
                )
