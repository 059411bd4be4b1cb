"""Pydantic schemas describing orders, their items and order payloads."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OrderStatus(str, Enum):
    BOOKED = "BOOKED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Orders in these states hold capacity and still expect stock movements.
OPEN_STATUSES = frozenset({OrderStatus.BOOKED, OrderStatus.ACTIVE})


class OrderItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    quantity: int = Field(gt=0)
    is_external: bool = False
    supplier_id: Optional[int] = None
    cost_price: Optional[float] = None
    exported_quantity: int = Field(default=0, ge=0)
    returned_quantity: int = Field(default=0, ge=0)
    returned_at: Optional[datetime] = None
    returned_by: Optional[str] = None
    note: Optional[str] = None
    version: int = 1

    @property
    def outstanding(self) -> int:
        """Units handed out and not yet back."""
        return self.exported_quantity - self.returned_quantity

    @property
    def pending_export(self) -> int:
        return self.quantity - self.exported_quantity

    @property
    def fully_returned(self) -> bool:
        return self.returned_quantity >= self.quantity


class Order(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    customer_id: int
    rental_start_date: date
    expected_return_date: date
    actual_return_date: Optional[datetime] = None
    status: OrderStatus = OrderStatus.BOOKED
    items: list[OrderItem] = Field(default_factory=list)
    total_amount: float = 0.0
    final_amount: Optional[float] = None
    completed_by: Optional[str] = None
    note: Optional[str] = None
    version: int = 1

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def overlaps(self, start: date, end: date) -> bool:
        return self.rental_start_date <= end and self.expected_return_date >= start

    def find_item(self, product_id: int, item_id: int | None = None) -> OrderItem | None:
        """Locate the line for ``product_id``.

        An explicit ``item_id`` wins; otherwise own-stock lines are preferred
        over sub-rented ones when a product appears twice.
        """
        if item_id is not None:
            return next(
                (item for item in self.items if item.id == item_id and item.product_id == product_id),
                None,
            )
        candidates = [item for item in self.items if item.product_id == product_id]
        for item in candidates:
            if not item.is_external:
                return item
        return candidates[0] if candidates else None


class OrderLineIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    is_external: bool = False
    supplier_id: Optional[int] = None
    cost_price: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None


class OrderCreate(BaseModel):
    customer_id: int
    rental_start_date: date
    expected_return_date: date
    items: list[OrderLineIn] = Field(min_length=1)
    total_amount: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "OrderCreate":
        if self.expected_return_date < self.rental_start_date:
            raise ValueError("expected_return_date must not be before rental_start_date")
        return self


class OrderUpdate(BaseModel):
    expected_return_date: Optional[date] = None
    note: Optional[str] = None
    total_amount: Optional[float] = Field(default=None, ge=0)
