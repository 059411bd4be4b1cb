"""SQLAlchemy-backed repository.

Each public call runs in its own session and transaction. ``commit`` relies on
the ``version`` columns: the version the caller read is compared up front, and
SQLAlchemy's ``version_id_col`` guards the gap between that read and the
UPDATE, so a lost update surfaces as ``ConcurrentUpdateError`` instead of
silently overwriting someone else's stock count.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from enum import Enum
from typing import Any, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    PersistenceError,
    ProductNotFoundError,
)
from ..models.customer import Customer as CustomerRow
from ..models.inventory import InventoryLog as InventoryLogRow
from ..models.order import Order as OrderRow
from ..models.order import OrderItem as OrderItemRow
from ..models.product import Product as ProductRow
from ..schemas.customer import Customer
from ..schemas.inventory import InventoryLog, LedgerChangeset, LedgerCommit
from ..schemas.order import Order
from ..schemas.product import Product
from .interface import ITEM_MUTABLE_FIELDS, ORDER_HEADER_FIELDS, PRODUCT_MUTABLE_FIELDS

logger = logging.getLogger(__name__)


def _to_column(value: Any) -> Any:
    """Dates, timestamps and enums are stored as plain text."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def _expect_version(row: Any, version: int, entity: str, record_id: object) -> None:
    if row is None or row.version != version:
        raise ConcurrentUpdateError(
            f"{entity.capitalize()} {record_id} changed since it was read",
            details={"entity": entity, "id": record_id},
        )


class SqlRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except StaleDataError as exc:
            session.rollback()
            raise ConcurrentUpdateError("A row changed while the changeset was being written") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "repository.sql_failure",
                extra={"extra_data": {"error": exc.__class__.__name__}},
            )
            raise PersistenceError(f"Database operation failed: {exc.__class__.__name__}") from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    # ---- reads

    def list_products(self) -> list[Product]:
        with self._session() as db:
            rows = db.execute(select(ProductRow).order_by(ProductRow.id)).scalars().all()
            return [Product.model_validate(row) for row in rows]

    def list_orders(self) -> list[Order]:
        with self._session() as db:
            rows = db.execute(select(OrderRow).order_by(OrderRow.id)).scalars().all()
            return [Order.model_validate(row) for row in rows]

    def list_customers(self) -> list[Customer]:
        with self._session() as db:
            rows = db.execute(select(CustomerRow).order_by(CustomerRow.id)).scalars().all()
            return [Customer.model_validate(row) for row in rows]

    def list_logs(self) -> list[InventoryLog]:
        with self._session() as db:
            stmt = select(InventoryLogRow).order_by(InventoryLogRow.timestamp, InventoryLogRow.id)
            return [InventoryLog.model_validate(row) for row in db.execute(stmt).scalars().all()]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._session() as db:
            row = db.get(ProductRow, product_id)
            return Product.model_validate(row) if row else None

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._session() as db:
            row = db.get(OrderRow, order_id)
            return Order.model_validate(row) if row else None

    # ---- inserts / deletes

    def insert_product(self, product: Product) -> Product:
        with self._session() as db:
            clash = db.execute(select(ProductRow.id).where(ProductRow.code == product.code)).scalars().first()
            if clash:
                raise ValueError(f"Product code {product.code} already exists")
            row = ProductRow(**{field: getattr(product, field) for field in PRODUCT_MUTABLE_FIELDS})
            db.add(row)
            try:
                db.flush()
            except IntegrityError as exc:
                raise ValueError(f"Product code {product.code} already exists") from exc
            return Product.model_validate(row)

    def delete_product(self, product_id: int) -> None:
        with self._session() as db:
            row = db.get(ProductRow, product_id)
            if row is None:
                raise ProductNotFoundError(product_id)
            db.delete(row)

    def insert_order(self, order: Order) -> Order:
        with self._session() as db:
            row = OrderRow(**{field: _to_column(getattr(order, field)) for field in ORDER_HEADER_FIELDS})
            row.items = [
                OrderItemRow(
                    product_id=item.product_id,
                    **{field: _to_column(getattr(item, field)) for field in ITEM_MUTABLE_FIELDS},
                )
                for item in order.items
            ]
            db.add(row)
            db.flush()
            return Order.model_validate(row)

    def delete_order(self, order_id: int) -> None:
        with self._session() as db:
            row = db.get(OrderRow, order_id)
            if row is None:
                raise OrderNotFoundError(order_id)
            db.delete(row)

    def insert_customer(self, customer: Customer) -> Customer:
        with self._session() as db:
            row = CustomerRow(name=customer.name, phone=customer.phone)
            db.add(row)
            db.flush()
            return Customer.model_validate(row)

    # ---- versioned writes

    def commit(self, changeset: LedgerChangeset) -> LedgerCommit:
        # flag_modified forces an UPDATE, so every row named in the changeset
        # gets a new version even when its values did not change.
        with self._session() as db:
            product_rows: list[ProductRow] = []
            for product in changeset.products:
                row = db.get(ProductRow, product.id)
                _expect_version(row, product.version, "product", product.id)
                for field in PRODUCT_MUTABLE_FIELDS:
                    setattr(row, field, getattr(product, field))
                flag_modified(row, "current_physical_stock")
                product_rows.append(row)

            touched: dict[int, None] = {}
            for order in changeset.orders:
                row = db.get(OrderRow, order.id)
                _expect_version(row, order.version, "order", order.id)
                for field in ORDER_HEADER_FIELDS:
                    setattr(row, field, _to_column(getattr(order, field)))
                flag_modified(row, "status")
                touched[order.id] = None

            for item in changeset.items:
                row = db.get(OrderItemRow, item.id)
                if row is not None and row.order_id != item.order_id:
                    row = None
                _expect_version(row, item.version, "order item", item.id)
                for field in ITEM_MUTABLE_FIELDS:
                    setattr(row, field, _to_column(getattr(item, field)))
                flag_modified(row, "exported_quantity")
                touched[item.order_id] = None

            for item in changeset.new_items:
                order_row = db.get(OrderRow, item.order_id)
                if order_row is None:
                    raise ConcurrentUpdateError(
                        f"Order {item.order_id} disappeared before its new line was stored",
                        details={"entity": "order", "id": item.order_id},
                    )
                order_row.items.append(
                    OrderItemRow(
                        product_id=item.product_id,
                        **{field: _to_column(getattr(item, field)) for field in ITEM_MUTABLE_FIELDS},
                    )
                )
                touched[item.order_id] = None

            log_rows = [
                InventoryLogRow(
                    product_id=log.product_id,
                    order_id=log.order_id,
                    action_type=_to_column(log.action_type),
                    quantity=log.quantity,
                    timestamp=_to_column(log.timestamp),
                    note=log.note,
                    staff_id=log.staff_id,
                    staff_name=log.staff_name,
                )
                for log in changeset.logs
            ]
            db.add_all(log_rows)
            db.flush()

            return LedgerCommit(
                products=[Product.model_validate(row) for row in product_rows],
                orders=[Order.model_validate(db.get(OrderRow, order_id)) for order_id in touched],
                logs=[InventoryLog.model_validate(row) for row in log_rows],
            )
