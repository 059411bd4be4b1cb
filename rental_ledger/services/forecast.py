from __future__ import annotations

from datetime import date, timedelta

from ..core.clock import Clock
from ..schemas.forecast import ForecastDay, ForecastEntry, ForecastResult, ProductForecast
from ..schemas.order import Order
from .store import Store


class ForecastEngine:
    """Projects warehouse stock for a future date from open orders.

    Exports count only when the rental starts between today and the target
    date; an export whose start date already passed is treated as overdue and
    left out. Returns count once the expected return date is on or before the
    target date.
    """

    def __init__(self, store: Store, clock: Clock, low_stock_threshold: int = 5) -> None:
        self.store = store
        self.clock = clock
        self.low_stock_threshold = low_stock_threshold

    def _customer_name(self, order: Order) -> str:
        customer = self.store.find_customer(order.customer_id)
        return customer.name if customer else f"Order #{order.id}"

    def for_date(self, product_id: int, target: date) -> ForecastResult:
        product = self.store.get_product(product_id)
        today = self.clock.today()
        expected_exports = 0
        expected_returns = 0
        entries: list[ForecastEntry] = []

        for order in self.store.orders:
            if not order.is_open:
                continue
            lines = [item for item in order.items if item.product_id == product_id and not item.is_external]
            if not lines:
                continue
            pending_export = sum(item.pending_export for item in lines)
            pending_return = sum(item.outstanding for item in lines)

            if pending_export > 0 and today <= order.rental_start_date <= target:
                expected_exports += pending_export
                entries.append(
                    ForecastEntry(
                        order_id=order.id,
                        customer_name=self._customer_name(order),
                        quantity=pending_export,
                        type="export",
                        date=order.rental_start_date,
                    )
                )
            if pending_return > 0 and order.expected_return_date <= target:
                expected_returns += pending_return
                entries.append(
                    ForecastEntry(
                        order_id=order.id,
                        customer_name=self._customer_name(order),
                        quantity=pending_return,
                        type="return",
                        date=order.expected_return_date,
                    )
                )

        entries.sort(key=lambda entry: entry.date)
        physical = product.current_physical_stock
        return ForecastResult(
            product_id=product_id,
            date=target,
            physical_stock=physical,
            expected_returns=expected_returns,
            expected_exports=expected_exports,
            forecast_stock=max(0, physical + expected_returns - expected_exports),
            orders=entries,
        )

    def for_range(self, product_id: int, start: date, days: int) -> list[ForecastDay]:
        # Every day is projected from today's physical stock; days are not chained.
        if days < 0:
            raise ValueError("days must not be negative")
        series = []
        for offset in range(days):
            result = self.for_date(product_id, start + timedelta(days=offset))
            series.append(
                ForecastDay(
                    date=result.date,
                    physical_stock=result.physical_stock,
                    forecast_stock=result.forecast_stock,
                    expected_returns=result.expected_returns,
                    expected_exports=result.expected_exports,
                )
            )
        return series

    def all_products(self, target: date) -> list[ProductForecast]:
        forecasts = []
        for product in self.store.products:
            result = self.for_date(product.id, target)
            forecasts.append(
                ProductForecast(
                    product_id=product.id,
                    product_code=product.code,
                    product_name=product.name,
                    current_stock=product.current_physical_stock,
                    forecast_stock=result.forecast_stock,
                    expected_returns=result.expected_returns,
                    expected_exports=result.expected_exports,
                    low_stock=result.forecast_stock < self.low_stock_threshold,
                )
            )
        return forecasts
