"""Application factory and top-level wiring for the Rental Ledger service.

This module is the glue that brings together configuration, the storage
backend, the in-memory Store, the ledger services, API routers and error
handling. Reading ``create_app`` top to bottom shows *what* pieces exist and
*when* they are built.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.clock import Clock, SystemClock
from .core.config import AppSettings, get_settings
from .core.errors import (
    http_exception_handler,
    ledger_exception_handler,
    validation_exception_handler,
    value_error_handler,
)
from .core.exceptions import LedgerError
from .middlewares import RequestIdMiddleware
from .repositories import Repository, build_repository
from .routers import api_customers, api_forecast, api_inventory, api_orders, api_products, api_repository
from .services.availability import AvailabilityEngine
from .services.catalog import Catalog
from .services.forecast import ForecastEngine
from .services.orders import OrderBook
from .services.stock import StockMutator
from .services.store import Store

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[AppSettings] = None,
    repository: Optional[Repository] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Build a fully wired application.

    Tests pass their own ``repository`` and ``clock``; production relies on
    the settings to pick the backend and time zone.
    """

    settings = settings or get_settings()
    repository = repository if repository is not None else build_repository(settings)
    clock = clock or SystemClock(settings.TZ)

    # ---------- Ledger services ----------
    # One Store per app. It is filled once here and afterwards only changes
    # through confirmed repository writes.
    store = Store(repository)
    store.refresh()
    availability = AvailabilityEngine(store)
    mutator = StockMutator(store, repository, clock, retries=settings.MUTATION_RETRIES)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.repository = repository
    app.state.clock = clock
    app.state.store = store
    app.state.availability = availability
    app.state.forecast = ForecastEngine(store, clock, low_stock_threshold=settings.LOW_STOCK_THRESHOLD)
    app.state.mutator = mutator
    app.state.order_book = OrderBook(store, repository, availability, mutator)
    app.state.catalog = Catalog(store, repository, mutator)

    app.add_middleware(RequestIdMiddleware)

    # ---------- Routers ----------
    app.include_router(api_products.router)
    app.include_router(api_customers.router)
    app.include_router(api_orders.router)
    app.include_router(api_inventory.router)
    app.include_router(api_forecast.router)
    app.include_router(api_repository.router)

    # ---------- Exception handling ----------
    # Domain errors, bad input and framework errors all leave as the same
    # ``{"code", "message", "details"}`` envelope.
    app.add_exception_handler(LedgerError, ledger_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    logger.info(
        "app.created",
        extra={"extra_data": {"backend": type(repository).__name__, "tz": settings.TZ}},
    )
    return app


__all__ = ["create_app"]
