from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..deps.auth import require_api_key
from ..deps.ledger import get_forecast
from ..schemas.forecast import ForecastDay, ForecastResult, ProductForecast
from ..services.forecast import ForecastEngine

router = APIRouter(prefix="/api/v1/forecast", tags=["forecast"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[ProductForecast])
def api_forecast_all(target: Optional[date] = Query(default=None, alias="date"), forecast: ForecastEngine = Depends(get_forecast)):
    return forecast.all_products(target or forecast.clock.today())


@router.get("/products/{product_id}", response_model=ForecastResult)
def api_forecast_product(
    product_id: int,
    target: Optional[date] = Query(default=None, alias="date"),
    forecast: ForecastEngine = Depends(get_forecast),
):
    return forecast.for_date(product_id, target or forecast.clock.today())


@router.get("/products/{product_id}/range", response_model=list[ForecastDay])
def api_forecast_range(
    product_id: int,
    request: Request,
    start: Optional[date] = None,
    days: Optional[int] = Query(default=None, ge=1, le=366),
    forecast: ForecastEngine = Depends(get_forecast),
):
    days = days or request.app.state.settings.FORECAST_DEFAULT_DAYS
    return forecast.for_range(product_id, start or forecast.clock.today(), days)
