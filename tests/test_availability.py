import sys
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rental_ledger.core.exceptions import ProductNotFoundError
from rental_ledger.repositories.memory import InMemoryRepository
from rental_ledger.schemas.customer import Customer
from rental_ledger.schemas.inventory import AvailabilityLineIn
from rental_ledger.schemas.order import Order, OrderItem, OrderStatus
from rental_ledger.schemas.product import Product
from rental_ledger.services.availability import AvailabilityEngine
from rental_ledger.services.store import Store


def _order(start, end, quantity, status=OrderStatus.BOOKED, is_external=False, product_id=1):
    return Order(
        customer_id=1,
        rental_start_date=start,
        expected_return_date=end,
        status=status,
        items=[OrderItem(product_id=product_id, quantity=quantity, is_external=is_external)],
    )


@pytest.fixture()
def repository():
    return InMemoryRepository(
        products=[
            Product(code="PRJ-01", name="Projector", total_owned=10, current_physical_stock=10),
            Product(code="SPK-01", name="Speaker", total_owned=2, current_physical_stock=0),
        ],
        customers=[Customer(name="Acme Events")],
        orders=[_order(date(2024, 1, 10), date(2024, 1, 15), 4)],
    )


@pytest.fixture()
def store(repository):
    store = Store(repository)
    store.refresh()
    return store


@pytest.fixture()
def engine(store):
    return AvailabilityEngine(store)


def _book(repository, store, order):
    repository.insert_order(order)
    store.refresh()


def test_booked_units_are_not_available_inside_the_window(engine):
    assert engine.check_availability(1, date(2024, 1, 12), date(2024, 1, 12)) == 6


def test_window_edges_count_as_overlap(engine):
    assert engine.check_availability(1, date(2024, 1, 15), date(2024, 1, 20)) == 6
    assert engine.check_availability(1, date(2024, 1, 1), date(2024, 1, 10)) == 6
    assert engine.check_availability(1, date(2024, 1, 16), date(2024, 1, 20)) == 10


def test_physical_stock_is_ignored(engine):
    # Nothing of SPK-01 is in the warehouse today, but nothing is booked either.
    assert engine.check_availability(2, date(2024, 3, 1), date(2024, 3, 2)) == 2


def test_availability_never_increases_as_bookings_pile_up(repository, store, engine):
    window = (date(2024, 1, 11), date(2024, 1, 13))
    seen = [engine.check_availability(1, *window)]
    for quantity in (3, 2, 5):
        _book(repository, store, _order(date(2024, 1, 12), date(2024, 1, 14), quantity))
        seen.append(engine.check_availability(1, *window))

    assert seen == sorted(seen, reverse=True)
    assert seen[-1] == 0


def test_closed_orders_and_external_lines_hold_no_capacity(repository, store, engine):
    _book(repository, store, _order(date(2024, 1, 12), date(2024, 1, 12), 3, status=OrderStatus.COMPLETED))
    _book(repository, store, _order(date(2024, 1, 12), date(2024, 1, 12), 3, status=OrderStatus.CANCELLED))
    _book(repository, store, _order(date(2024, 1, 12), date(2024, 1, 12), 3, is_external=True))

    assert engine.check_availability(1, date(2024, 1, 12), date(2024, 1, 12)) == 6


def test_active_orders_still_reserve(repository, store, engine):
    _book(repository, store, _order(date(2024, 1, 11), date(2024, 1, 12), 2, status=OrderStatus.ACTIVE))

    assert engine.reserved_quantity(1, date(2024, 1, 12), date(2024, 1, 12)) == 6
    assert engine.check_availability(1, date(2024, 1, 12), date(2024, 1, 12)) == 4


def test_check_items_sums_repeated_products(engine):
    lines = [
        AvailabilityLineIn(product_id=1, quantity=4),
        AvailabilityLineIn(product_id=1, quantity=3),
        AvailabilityLineIn(product_id=2, quantity=1),
    ]
    result = {line.product_id: line for line in engine.check_items(lines, date(2024, 1, 12), date(2024, 1, 13))}

    assert result[1].requested == 7
    assert result[1].available == 6
    assert result[1].is_enough is False
    assert result[2].is_enough is True


def test_bad_input_is_rejected(engine):
    with pytest.raises(ProductNotFoundError):
        engine.check_availability(99, date(2024, 1, 1), date(2024, 1, 2))
    with pytest.raises(ValueError):
        engine.check_availability(1, date(2024, 1, 5), date(2024, 1, 2))
