"""Domain exceptions raised by the ledger services and repositories."""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for every error the ledger raises on purpose."""

    code = "ledger_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(LedgerError):
    code = "not_found"
    entity = "record"

    def __init__(self, record_id: object) -> None:
        super().__init__(
            f"{self.entity.capitalize()} {record_id} not found",
            details={"entity": self.entity, "id": record_id},
        )
        self.record_id = record_id


class ProductNotFoundError(NotFoundError):
    entity = "product"


class OrderNotFoundError(NotFoundError):
    entity = "order"


class CustomerNotFoundError(NotFoundError):
    entity = "customer"


class OrderItemNotFoundError(NotFoundError):
    entity = "order item"

    def __init__(self, order_id: int, product_id: int, item_id: int | None = None) -> None:
        LedgerError.__init__(
            self,
            f"Order {order_id} has no item for product {product_id}",
            details={"entity": self.entity, "order_id": order_id, "product_id": product_id, "item_id": item_id},
        )
        self.record_id = item_id


class InsufficientStockError(LedgerError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, in warehouse {available}",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class QuantityExceededError(LedgerError):
    """An export or return would push an item's counters past the ordered quantity."""

    code = "quantity_exceeded"


class OrderStateError(LedgerError):
    code = "invalid_order_state"

    def __init__(self, order_id: int, status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} order {order_id} while it is {status}",
            details={"order_id": order_id, "status": status, "action": action},
        )


class AvailabilityError(LedgerError):
    code = "unavailable"

    def __init__(self, shortages: list[dict[str, Any]]) -> None:
        products = ", ".join(str(line["product_id"]) for line in shortages)
        super().__init__(
            f"Not enough free units for product(s) {products}",
            details={"shortages": shortages},
        )
        self.shortages = shortages


class PersistenceError(LedgerError):
    """The repository could not confirm a write; nothing was applied locally."""

    code = "persistence_failure"


class ConcurrentUpdateError(PersistenceError):
    code = "concurrent_update"
