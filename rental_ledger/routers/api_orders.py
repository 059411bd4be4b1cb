from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response

from ..deps.auth import get_staff, require_api_key
from ..deps.ledger import get_mutator, get_order_book, get_store
from ..schemas.inventory import StaffContext
from ..schemas.order import Order, OrderCreate, OrderLineIn, OrderStatus, OrderUpdate
from ..services.orders import OrderBook
from ..services.stock import StockMutator
from ..services.store import Store

router = APIRouter(prefix="/api/v1/orders", tags=["orders"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[Order])
def api_list_orders(status: Optional[OrderStatus] = None, store: Store = Depends(get_store)):
    orders = [order for order in store.orders if status is None or order.status == status]
    return sorted(orders, key=lambda order: (order.rental_start_date, order.id), reverse=True)


@router.get("/{order_id}", response_model=Order)
def api_get_order(order_id: int, store: Store = Depends(get_store)):
    return store.get_order(order_id)


@router.post("", response_model=Order, status_code=201)
def api_book_order(payload: OrderCreate, book: OrderBook = Depends(get_order_book)):
    return book.book_order(
        payload.customer_id,
        payload.rental_start_date,
        payload.expected_return_date,
        payload.items,
        total_amount=payload.total_amount,
        note=payload.note,
    )


@router.patch("/{order_id}", response_model=Order)
def api_update_order(order_id: int, payload: OrderUpdate, book: OrderBook = Depends(get_order_book)):
    return book.update_order(order_id, payload)


@router.post("/{order_id}/items", response_model=Order, status_code=201)
def api_add_order_item(order_id: int, payload: OrderLineIn, book: OrderBook = Depends(get_order_book)):
    return book.add_item(order_id, payload)


@router.post("/{order_id}/cancel", response_model=Order)
def api_cancel_order(order_id: int, book: OrderBook = Depends(get_order_book)):
    return book.cancel_order(order_id)


@router.post("/{order_id}/complete", response_model=Order)
def api_complete_order(
    order_id: int,
    staff: StaffContext = Depends(get_staff),
    mutator: StockMutator = Depends(get_mutator),
    store: Store = Depends(get_store),
):
    mutator.force_complete_order(order_id, staff=staff)
    return store.get_order(order_id)


@router.delete("/{order_id}", status_code=204)
def api_delete_order(order_id: int, book: OrderBook = Depends(get_order_book)):
    book.delete_order(order_id)
    return Response(status_code=204)
