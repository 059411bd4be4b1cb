from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps.auth import get_staff, require_api_key
from ..deps.ledger import get_availability, get_mutator, get_store
from ..schemas.inventory import (
    AvailabilityLine,
    AvailabilityOut,
    AvailabilityRequest,
    InventoryLog,
    LedgerCommit,
    StaffContext,
    StockAdjustment,
    StockMovement,
)
from ..services.availability import AvailabilityEngine
from ..services.stock import StockMutator
from ..services.store import Store

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"], dependencies=[Depends(require_api_key)])


@router.get("/logs", response_model=list[InventoryLog])
def api_inventory_logs(
    product_id: Optional[int] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    store: Store = Depends(get_store),
):
    return store.logs_for(product_id)[offset : offset + limit]


@router.get("/availability", response_model=AvailabilityOut)
def api_check_availability(
    product_id: int,
    start: date,
    end: date,
    store: Store = Depends(get_store),
    availability: AvailabilityEngine = Depends(get_availability),
):
    product = store.get_product(product_id)
    return AvailabilityOut(
        product_id=product_id,
        start=start,
        end=end,
        available=availability.check_availability(product_id, start, end),
        total_owned=product.total_owned,
        busy_quantity=availability.reserved_quantity(product_id, start, end),
    )


@router.post("/availability", response_model=list[AvailabilityLine])
def api_check_items(payload: AvailabilityRequest, availability: AvailabilityEngine = Depends(get_availability)):
    return availability.check_items(payload.items, payload.start, payload.end)


@router.post("/export", response_model=LedgerCommit)
def api_export_stock(
    payload: StockMovement,
    staff: StaffContext = Depends(get_staff),
    mutator: StockMutator = Depends(get_mutator),
):
    return mutator.export_stock(
        payload.order_id,
        payload.product_id,
        payload.quantity,
        note=payload.note,
        staff=staff,
        item_id=payload.item_id,
    )


@router.post("/import", response_model=LedgerCommit)
def api_import_stock(
    payload: StockMovement,
    staff: StaffContext = Depends(get_staff),
    mutator: StockMutator = Depends(get_mutator),
):
    return mutator.import_stock(
        payload.order_id,
        payload.product_id,
        payload.quantity,
        note=payload.note,
        staff=staff,
        item_id=payload.item_id,
    )


@router.post("/adjust", response_model=LedgerCommit)
def api_adjust_stock(
    payload: StockAdjustment,
    staff: StaffContext = Depends(get_staff),
    mutator: StockMutator = Depends(get_mutator),
):
    return mutator.update_product_stock(
        payload.product_id,
        payload.new_stock,
        action_type=payload.action_type,
        quantity=payload.quantity,
        note=payload.note,
        staff=staff,
    )


@router.post("/refresh")
def api_refresh_store(store: Store = Depends(get_store)) -> dict[str, int]:
    store.refresh()
    return {
        "products": len(store.products),
        "orders": len(store.orders),
        "customers": len(store.customers),
        "logs": len(store.logs),
    }
