"""Beginner-friendly overview for this module.

WHAT: ``Store`` is the in-memory mirror of products, orders, customers and
inventory logs that every query reads from.
WHEN: Built once by the application factory (or by a test), filled with
``refresh()`` and then kept current with ``absorb()`` after each confirmed
repository write.
WHY: Availability and forecast questions are asked constantly; answering them
from memory keeps them fast and side-effect free.
HOW: The repository stays the authority. Mutations read fresh rows from the
repository, commit, and only then hand the confirmed rows to ``absorb``. If
the commit fails nothing here changes.

File: rental_ledger/services/store.py
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from ..core.exceptions import CustomerNotFoundError, OrderNotFoundError, ProductNotFoundError
from ..repositories.interface import Repository
from ..schemas.customer import Customer
from ..schemas.inventory import InventoryLog, LedgerCommit
from ..schemas.order import Order
from ..schemas.product import Product

logger = logging.getLogger(__name__)


def _keep_newest(rows: dict[int, Any], row: Any) -> None:
    # Confirmed writes can arrive out of order; never step back to a lower version.
    current = rows.get(row.id)
    if current is None or row.version >= current.version:
        rows[row.id] = row


def _merge(cached: dict[int, Any], fresh: list[Any]) -> dict[int, Any]:
    merged: dict[int, Any] = {}
    for row in fresh:
        current = cached.get(row.id)
        merged[row.id] = current if current is not None and current.version > row.version else row
    return merged


class Store:
    def __init__(self, repository: Repository) -> None:
        self.repository = repository
        self._lock = threading.RLock()
        self._products: dict[int, Product] = {}
        self._orders: dict[int, Order] = {}
        self._customers: dict[int, Customer] = {}
        self._logs: list[InventoryLog] = []

    def refresh(self) -> None:
        """Rebuild the mirror from what the repository holds right now.

        Rows absorbed while the repository was being read are kept when they
        are newer than the snapshot, and so are logs stored after it.
        """

        products = self.repository.list_products()
        orders = self.repository.list_orders()
        customers = self.repository.list_customers()
        logs = self.repository.list_logs()
        with self._lock:
            self._products = _merge(self._products, products)
            self._orders = _merge(self._orders, orders)
            self._customers = {customer.id: customer for customer in customers}
            last_log_id = max((log.id or 0 for log in logs), default=0)
            self._logs = list(logs) + [log for log in self._logs if (log.id or 0) > last_log_id]
        logger.info(
            "store.refreshed",
            extra={
                "extra_data": {
                    "products": len(products),
                    "orders": len(orders),
                    "customers": len(customers),
                    "logs": len(logs),
                }
            },
        )

    # ---- snapshots

    @property
    def products(self) -> list[Product]:
        with self._lock:
            return list(self._products.values())

    @property
    def orders(self) -> list[Order]:
        with self._lock:
            return list(self._orders.values())

    @property
    def customers(self) -> list[Customer]:
        with self._lock:
            return list(self._customers.values())

    @property
    def logs(self) -> list[InventoryLog]:
        with self._lock:
            return list(self._logs)

    def logs_for(self, product_id: Optional[int] = None) -> list[InventoryLog]:
        """Newest first, optionally for one product."""

        logs = [log for log in self.logs if product_id is None or log.product_id == product_id]
        return sorted(logs, key=lambda log: (log.timestamp, log.id or 0), reverse=True)

    # ---- lookups

    def get_product(self, product_id: int) -> Product:
        with self._lock:
            product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def get_order(self, order_id: int) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_customer(self, customer_id: int) -> Customer:
        with self._lock:
            customer = self._customers.get(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    def find_customer(self, customer_id: int) -> Optional[Customer]:
        with self._lock:
            return self._customers.get(customer_id)

    # ---- applying confirmed writes

    def absorb(self, commit: LedgerCommit) -> None:
        with self._lock:
            for product in commit.products:
                _keep_newest(self._products, product)
            for order in commit.orders:
                _keep_newest(self._orders, order)
            known = {log.id for log in self._logs}
            self._logs.extend(log for log in commit.logs if log.id not in known)

    def put_product(self, product: Product) -> None:
        with self._lock:
            _keep_newest(self._products, product)

    def put_order(self, order: Order) -> None:
        with self._lock:
            _keep_newest(self._orders, order)

    def put_customer(self, customer: Customer) -> None:
        with self._lock:
            self._customers[customer.id] = customer

    def remove_product(self, product_id: int) -> None:
        with self._lock:
            self._products.pop(product_id, None)

    def remove_order(self, order_id: int) -> None:
        with self._lock:
            self._orders.pop(order_id, None)
