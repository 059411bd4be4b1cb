from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from ..deps.auth import require_api_key
from ..deps.ledger import get_catalog, get_store
from ..schemas.product import Product, ProductCreate, ProductUpdate
from ..services.catalog import Catalog
from ..services.store import Store

router = APIRouter(prefix="/api/v1/products", tags=["products"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[Product])
def api_list_products(store: Store = Depends(get_store)):
    return sorted(store.products, key=lambda product: product.code)


@router.get("/{product_id}", response_model=Product)
def api_get_product(product_id: int, store: Store = Depends(get_store)):
    return store.get_product(product_id)


@router.post("", response_model=Product, status_code=201)
def api_create_product(payload: ProductCreate, catalog: Catalog = Depends(get_catalog)):
    return catalog.create_product(payload)


@router.put("/{product_id}", response_model=Product)
def api_update_product(product_id: int, payload: ProductUpdate, catalog: Catalog = Depends(get_catalog)):
    return catalog.update_product(product_id, payload)


@router.delete("/{product_id}", status_code=204)
def api_delete_product(product_id: int, catalog: Catalog = Depends(get_catalog)):
    catalog.delete_product(product_id)
    return Response(status_code=204)
