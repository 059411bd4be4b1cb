from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .order import Order, OrderItem
from .product import Product


class LogAction(str, Enum):
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"
    ADJUST = "ADJUST"
    CLEAN = "CLEAN"


class InventoryLog(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    product_id: int
    order_id: int = 0
    action_type: LogAction
    quantity: int
    timestamp: datetime
    note: Optional[str] = None
    staff_id: Optional[int] = None
    staff_name: Optional[str] = None


class StaffContext(BaseModel):
    """Who is acting. Opaque to the ledger; copied into logs as-is."""

    staff_id: Optional[int] = None
    staff_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.staff_name or "System"


class LedgerChangeset(BaseModel):
    """Row updates and log appends that must land together or not at all.

    Every product, order and item carries the ``version`` it was computed
    from; the repository refuses the whole changeset if any of them is stale.
    Orders contribute header fields only, item rows travel in ``items``.
    ``new_items`` are lines added to an existing order; they carry its
    ``order_id`` and get their own id and version 1 on commit.
    """

    products: list[Product] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    items: list[OrderItem] = Field(default_factory=list)
    new_items: list[OrderItem] = Field(default_factory=list)
    logs: list[InventoryLog] = Field(default_factory=list)


class LedgerCommit(BaseModel):
    """What the repository confirmed: fresh products, whole orders, stored logs."""

    products: list[Product] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    logs: list[InventoryLog] = Field(default_factory=list)


class StockMovement(BaseModel):
    order_id: int
    product_id: int
    quantity: int = Field(gt=0)
    item_id: Optional[int] = None
    note: Optional[str] = None


class StockAdjustment(BaseModel):
    product_id: int
    new_stock: int = Field(ge=0)
    action_type: LogAction = LogAction.ADJUST
    quantity: int = Field(default=0, ge=0)
    note: Optional[str] = None


class AvailabilityLineIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class AvailabilityRequest(BaseModel):
    start: date
    end: date
    items: list[AvailabilityLineIn] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityRequest":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class AvailabilityLine(BaseModel):
    product_id: int
    requested: int
    available: int
    is_enough: bool


class AvailabilityOut(BaseModel):
    product_id: int
    start: date
    end: date
    available: int
    total_owned: int
    busy_quantity: int
