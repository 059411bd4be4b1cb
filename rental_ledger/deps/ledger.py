from __future__ import annotations

from fastapi import Request

from ..repositories.interface import Repository
from ..services.availability import AvailabilityEngine
from ..services.catalog import Catalog
from ..services.forecast import ForecastEngine
from ..services.orders import OrderBook
from ..services.stock import StockMutator
from ..services.store import Store


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_availability(request: Request) -> AvailabilityEngine:
    return request.app.state.availability


def get_forecast(request: Request) -> ForecastEngine:
    return request.app.state.forecast


def get_mutator(request: Request) -> StockMutator:
    return request.app.state.mutator


def get_order_book(request: Request) -> OrderBook:
    return request.app.state.order_book


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog
