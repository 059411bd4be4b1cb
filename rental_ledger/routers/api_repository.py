"""Beginner-friendly overview for this module.

WHAT: The raw storage API that a ``RestRepository`` on another instance talks to.
WHEN: Only used when a second ledger runs with ``REPOSITORY_BACKEND=rest`` and
points ``REMOTE_LEDGER_URL`` at this one.
WHY: Lets several front ends share one authoritative ledger while each keeps
its own in-memory Store.
HOW: Every call goes straight to this instance's repository. Confirmed writes
are also applied to the local Store so this instance's own queries stay
current. A stale changeset surfaces as ``409 concurrent_update``.

File: rental_ledger/routers/api_repository.py
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from ..deps.auth import require_api_key
from ..deps.ledger import get_repository, get_store
from ..repositories.interface import Repository
from ..schemas.customer import Customer
from ..schemas.inventory import InventoryLog, LedgerChangeset, LedgerCommit
from ..schemas.order import Order
from ..schemas.product import Product
from ..services.store import Store

router = APIRouter(prefix="/api/v1/repository", tags=["repository"], dependencies=[Depends(require_api_key)])


@router.get("/products", response_model=list[Product])
def repo_list_products(repository: Repository = Depends(get_repository)):
    return repository.list_products()


@router.get("/products/{product_id}", response_model=Product)
def repo_get_product(product_id: int, repository: Repository = Depends(get_repository)):
    product = repository.get_product(product_id)
    if product is None:
        raise HTTPException(404, "Not found")
    return product


@router.post("/products", response_model=Product, status_code=201)
def repo_insert_product(
    payload: Product,
    repository: Repository = Depends(get_repository),
    store: Store = Depends(get_store),
):
    product = repository.insert_product(payload)
    store.put_product(product)
    return product


@router.delete("/products/{product_id}", status_code=204)
def repo_delete_product(
    product_id: int,
    repository: Repository = Depends(get_repository),
    store: Store = Depends(get_store),
):
    repository.delete_product(product_id)
    store.remove_product(product_id)
    return Response(status_code=204)


@router.get("/orders", response_model=list[Order])
def repo_list_orders(repository: Repository = Depends(get_repository)):
    return repository.list_orders()


@router.get("/orders/{order_id}", response_model=Order)
def repo_get_order(order_id: int, repository: Repository = Depends(get_repository)):
    order = repository.get_order(order_id)
    if order is None:
        raise HTTPException(404, "Not found")
    return order


@router.post("/orders", response_model=Order, status_code=201)
def repo_insert_order(
    payload: Order,
    repository: Repository = Depends(get_repository),
    store: Store = Depends(get_store),
):
    order = repository.insert_order(payload)
    store.put_order(order)
    return order


@router.delete("/orders/{order_id}", status_code=204)
def repo_delete_order(
    order_id: int,
    repository: Repository = Depends(get_repository),
    store: Store = Depends(get_store),
):
    repository.delete_order(order_id)
    store.remove_order(order_id)
    return Response(status_code=204)


@router.get("/customers", response_model=list[Customer])
def repo_list_customers(repository: Repository = Depends(get_repository)):
    return repository.list_customers()


@router.post("/customers", response_model=Customer, status_code=201)
def repo_insert_customer(
    payload: Customer,
    repository: Repository = Depends(get_repository),
    store: Store = Depends(get_store),
):
    customer = repository.insert_customer(payload)
    store.put_customer(customer)
    return customer


@router.get("/logs", response_model=list[InventoryLog])
def repo_list_logs(repository: Repository = Depends(get_repository)):
    return repository.list_logs()


@router.post("/changesets", response_model=LedgerCommit)
def repo_commit(
    payload: LedgerChangeset,
    repository: Repository = Depends(get_repository),
    store: Store = Depends(get_store),
):
    commit = repository.commit(payload)
    store.absorb(commit)
    return commit
