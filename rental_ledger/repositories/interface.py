from __future__ import annotations

from typing import Optional, Protocol

from ..schemas.customer import Customer
from ..schemas.inventory import InventoryLog, LedgerChangeset, LedgerCommit
from ..schemas.order import Order
from ..schemas.product import Product


class Repository(Protocol):
    """
    Backend-agnostic storage contract for the ledger.

    - Reads return detached copies; mutating them never changes storage.
    - ``commit`` is all-or-nothing and checks every row's ``version``. A stale
      version raises ``ConcurrentUpdateError``; any other storage failure
      raises ``PersistenceError``.
    - Inventory logs are append-only: they only enter storage through
      ``commit``.
    """

    # Reads used to (re)build the Store

    def list_products(self) -> list[Product]:
        """Return every product."""
        ...

    def list_orders(self) -> list[Order]:
        """Return every order with its items."""
        ...

    def list_customers(self) -> list[Customer]:
        """Return every customer."""
        ...

    def list_logs(self) -> list[InventoryLog]:
        """Return the whole inventory log feed."""
        ...

    # Authoritative single-row reads used by mutations

    def get_product(self, product_id: int) -> Optional[Product]:
        ...

    def get_order(self, order_id: int) -> Optional[Order]:
        ...

    # Inserts and deletes

    def insert_product(self, product: Product) -> Product:
        """Store a new product; raises ``ValueError`` on a duplicate code."""
        ...

    def delete_product(self, product_id: int) -> None:
        ...

    def insert_order(self, order: Order) -> Order:
        """Store a new order together with its items."""
        ...

    def delete_order(self, order_id: int) -> None:
        ...

    def insert_customer(self, customer: Customer) -> Customer:
        ...

    # Versioned writes

    def commit(self, changeset: LedgerChangeset) -> LedgerCommit:
        """Apply ``changeset`` atomically and return the confirmed rows."""
        ...


# Order columns a changeset may rewrite; items are updated row by row.
ORDER_HEADER_FIELDS = (
    "customer_id",
    "rental_start_date",
    "expected_return_date",
    "actual_return_date",
    "status",
    "total_amount",
    "final_amount",
    "completed_by",
    "note",
)

# Item columns a changeset may rewrite; ``order_id`` and ``product_id`` stay put.
ITEM_MUTABLE_FIELDS = (
    "quantity",
    "is_external",
    "supplier_id",
    "cost_price",
    "exported_quantity",
    "returned_quantity",
    "returned_at",
    "returned_by",
    "note",
)

PRODUCT_MUTABLE_FIELDS = (
    "code",
    "name",
    "category",
    "price_per_day",
    "total_owned",
    "current_physical_stock",
    "location",
    "specs",
)
