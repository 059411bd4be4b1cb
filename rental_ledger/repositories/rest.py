"""Repository that forwards every storage call to a remote ledger over HTTP.

The remote side exposes ``/api/v1/repository/...`` (see
``rental_ledger/routers/api_repository.py``) and performs the version checks
itself; a stale changeset comes back as ``409 concurrent_update``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.exceptions import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    PersistenceError,
    ProductNotFoundError,
)
from ..schemas.customer import Customer
from ..schemas.inventory import InventoryLog, LedgerChangeset, LedgerCommit
from ..schemas.order import Order
from ..schemas.product import Product

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/repository"


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _raise_for_status(response: httpx.Response, context: str) -> None:
    if response.status_code < 400:
        return
    body = _error_body(response)
    message = body.get("message") or f"Remote ledger answered {response.status_code} during {context}"
    if response.status_code == 409 and body.get("code") == ConcurrentUpdateError.code:
        logger.info("Remote ledger rejected a stale write during %s", context)
        raise ConcurrentUpdateError(message, details=body.get("details"))
    if response.status_code == 422:
        raise ValueError(message)
    if response.status_code in {401, 403}:
        logger.warning("Remote ledger authentication failed for %s", context)
    elif response.status_code >= 500:
        logger.error("Remote ledger error %s during %s", response.status_code, context)
    else:
        logger.error("Remote ledger request error %s during %s", response.status_code, context)
    raise PersistenceError(message, details={"status": response.status_code, "context": context})


class RestRepository:
    """``Repository`` implementation on top of ``httpx.Client``.

    ``client`` may be any ``httpx.Client`` (a FastAPI ``TestClient`` included);
    when omitted one is built from ``base_url``, ``api_key`` and ``timeout``.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {"X-API-Key": api_key} if api_key else {}
        if client is None:
            client = httpx.Client(base_url=base_url, headers=headers, timeout=httpx.Timeout(timeout))
        elif headers:
            client.headers.update(headers)
        self._client = client

    def close(self) -> None:
        self._client.close()

    def _send(self, method: str, path: str, context: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                "repository.remote_unreachable",
                extra={"extra_data": {"context": context, "error": str(exc)}},
            )
            raise PersistenceError(f"Remote ledger unreachable during {context}") from exc

    def _call(self, method: str, path: str, context: str, **kwargs: Any) -> Any:
        response = self._send(method, path, context, **kwargs)
        _raise_for_status(response, context)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _get_optional(self, path: str, context: str) -> Optional[dict[str, Any]]:
        response = self._send("GET", path, context)
        if response.status_code == 404:
            return None
        _raise_for_status(response, context)
        return response.json()

    # ---- reads

    def list_products(self) -> list[Product]:
        return [Product.model_validate(row) for row in self._call("GET", "/products", "list products")]

    def list_orders(self) -> list[Order]:
        return [Order.model_validate(row) for row in self._call("GET", "/orders", "list orders")]

    def list_customers(self) -> list[Customer]:
        return [Customer.model_validate(row) for row in self._call("GET", "/customers", "list customers")]

    def list_logs(self) -> list[InventoryLog]:
        return [InventoryLog.model_validate(row) for row in self._call("GET", "/logs", "list logs")]

    def get_product(self, product_id: int) -> Optional[Product]:
        row = self._get_optional(f"/products/{product_id}", "get product")
        return Product.model_validate(row) if row is not None else None

    def get_order(self, order_id: int) -> Optional[Order]:
        row = self._get_optional(f"/orders/{order_id}", "get order")
        return Order.model_validate(row) if row is not None else None

    # ---- inserts / deletes

    def insert_product(self, product: Product) -> Product:
        row = self._call("POST", "/products", "insert product", json=product.model_dump(mode="json"))
        return Product.model_validate(row)

    def delete_product(self, product_id: int) -> None:
        response = self._send("DELETE", f"/products/{product_id}", "delete product")
        if response.status_code == 404:
            raise ProductNotFoundError(product_id)
        _raise_for_status(response, "delete product")

    def insert_order(self, order: Order) -> Order:
        row = self._call("POST", "/orders", "insert order", json=order.model_dump(mode="json"))
        return Order.model_validate(row)

    def delete_order(self, order_id: int) -> None:
        response = self._send("DELETE", f"/orders/{order_id}", "delete order")
        if response.status_code == 404:
            raise OrderNotFoundError(order_id)
        _raise_for_status(response, "delete order")

    def insert_customer(self, customer: Customer) -> Customer:
        row = self._call("POST", "/customers", "insert customer", json=customer.model_dump(mode="json"))
        return Customer.model_validate(row)

    # ---- versioned writes

    def commit(self, changeset: LedgerChangeset) -> LedgerCommit:
        row = self._call("POST", "/changesets", "commit changeset", json=changeset.model_dump(mode="json"))
        return LedgerCommit.model_validate(row)
