"""Product and customer maintenance."""

from __future__ import annotations

import logging

from ..repositories.interface import Repository
from ..schemas.customer import Customer, CustomerCreate
from ..schemas.inventory import LedgerChangeset
from ..schemas.product import Product, ProductCreate, ProductUpdate
from .stock import StockMutator
from .store import Store

logger = logging.getLogger(__name__)


class Catalog:
    def __init__(self, store: Store, repository: Repository, mutator: StockMutator) -> None:
        self.store = store
        self.repository = repository
        self.mutator = mutator

    def create_product(self, data: ProductCreate) -> Product:
        """New equipment arrives fully in the warehouse: physical stock starts at ``total_owned``."""

        product = self.repository.insert_product(
            Product(**data.model_dump(), current_physical_stock=data.total_owned)
        )
        self.store.put_product(product)
        logger.info("product.created", extra={"extra_data": {"product_id": product.id, "code": product.code}})
        return product

    def update_product(self, product_id: int, data: ProductUpdate) -> Product:
        """Edit a product; buying or retiring units moves physical stock by the same amount."""

        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        def build() -> LedgerChangeset:
            current = self.mutator.load_product(product_id)
            code = changes.get("code")
            if code and code != current.code and any(
                other.code == code for other in self.repository.list_products() if other.id != product_id
            ):
                raise ValueError(f"Product code {code} already exists")
            update = dict(changes)
            if "total_owned" in update:
                delta = update["total_owned"] - current.total_owned
                if current.current_physical_stock + delta < 0:
                    raise ValueError("cannot retire more units than are in the warehouse")
                update["current_physical_stock"] = current.current_physical_stock + delta
            return LedgerChangeset(products=[current.model_copy(update=update)])

        commit = self.mutator.commit_changeset("update_product", build)
        product = commit.products[0]
        logger.info("product.updated", extra={"extra_data": {"product_id": product_id, "fields": sorted(changes)}})
        return product

    def delete_product(self, product_id: int) -> None:
        self.repository.delete_product(product_id)
        self.store.remove_product(product_id)
        logger.info("product.deleted", extra={"extra_data": {"product_id": product_id}})

    def create_customer(self, data: CustomerCreate) -> Customer:
        customer = self.repository.insert_customer(Customer(**data.model_dump()))
        self.store.put_customer(customer)
        return customer
