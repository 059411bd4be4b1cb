from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class ForecastEntry(BaseModel):
    order_id: int
    customer_name: str
    quantity: int
    type: Literal["export", "return"]
    date: date


class ForecastResult(BaseModel):
    product_id: int
    date: date
    physical_stock: int
    expected_returns: int
    expected_exports: int
    forecast_stock: int
    orders: list[ForecastEntry] = Field(default_factory=list)


class ForecastDay(BaseModel):
    date: date
    physical_stock: int
    forecast_stock: int
    expected_returns: int
    expected_exports: int


class ProductForecast(BaseModel):
    product_id: int
    product_code: str
    product_name: str
    current_stock: int
    forecast_stock: int
    expected_returns: int
    expected_exports: int
    low_stock: bool
