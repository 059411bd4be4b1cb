from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps.auth import require_api_key
from ..deps.ledger import get_catalog, get_store
from ..schemas.customer import Customer, CustomerCreate
from ..services.catalog import Catalog
from ..services.store import Store

router = APIRouter(prefix="/api/v1/customers", tags=["customers"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[Customer])
def api_list_customers(store: Store = Depends(get_store)):
    return sorted(store.customers, key=lambda customer: customer.name.lower())


@router.post("", response_model=Customer, status_code=201)
def api_create_customer(payload: CustomerCreate, catalog: Catalog = Depends(get_catalog)):
    return catalog.create_customer(payload)
