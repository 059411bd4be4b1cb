import sys
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rental_ledger.core.clock import FixedClock
from rental_ledger.core.exceptions import (
    ConcurrentUpdateError,
    InsufficientStockError,
    OrderItemNotFoundError,
    OrderNotFoundError,
    OrderStateError,
    PersistenceError,
    QuantityExceededError,
)
from rental_ledger.repositories.memory import InMemoryRepository
from rental_ledger.schemas.customer import Customer
from rental_ledger.schemas.inventory import LedgerChangeset, LogAction, StaffContext
from rental_ledger.schemas.order import Order, OrderItem, OrderStatus
from rental_ledger.schemas.product import Product
from rental_ledger.services.stock import PHANTOM_EXPORT_NOTE, StockMutator
from rental_ledger.services.store import Store

TZ = ZoneInfo("Asia/Ho_Chi_Minh")


def _seed(repository_cls=InMemoryRepository, items=None):
    return repository_cls(
        products=[
            Product(code="PRJ-01", name="Projector", price_per_day=100.0, total_owned=10, current_physical_stock=10),
        ],
        customers=[Customer(name="Acme Events")],
        orders=[
            Order(
                customer_id=1,
                rental_start_date=date(2024, 1, 10),
                expected_return_date=date(2024, 1, 15),
                items=items or [OrderItem(product_id=1, quantity=4)],
            )
        ],
    )


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 1, 10, 9, 0, tzinfo=TZ))


@pytest.fixture()
def repository():
    return _seed()


@pytest.fixture()
def store(repository):
    store = Store(repository)
    store.refresh()
    return store


@pytest.fixture()
def mutator(store, repository, clock):
    return StockMutator(store, repository, clock)


def _item(store, order_id=1):
    return store.get_order(order_id).items[0]


def test_export_moves_stock_and_activates_order(mutator, store, repository):
    mutator.export_stock(1, 1, 4, note="Truck 2", staff=StaffContext(staff_id=7, staff_name="Binh"))

    assert store.get_product(1).current_physical_stock == 6
    assert repository.get_product(1).current_physical_stock == 6
    assert _item(store).exported_quantity == 4
    assert store.get_order(1).status == OrderStatus.ACTIVE

    logs = store.logs
    assert len(logs) == 1
    assert logs[0].action_type == LogAction.EXPORT
    assert logs[0].quantity == 4
    assert logs[0].staff_id == 7
    assert logs[0].staff_name == "Binh"
    assert logs[0].note == "Truck 2"


def test_full_return_completes_order(mutator, store, clock):
    mutator.export_stock(1, 1, 4)
    mutator.import_stock(1, 1, 4)

    order = store.get_order(1)
    assert store.get_product(1).current_physical_stock == 10
    assert order.items[0].returned_quantity == 4
    assert order.status == OrderStatus.COMPLETED
    assert order.actual_return_date == clock.now()


def test_partial_return_keeps_order_active(mutator, store):
    mutator.export_stock(1, 1, 4)
    mutator.import_stock(1, 1, 1)

    assert store.get_order(1).status == OrderStatus.ACTIVE
    assert store.get_product(1).current_physical_stock == 7


def test_return_of_unscanned_units_books_missing_export(mutator, store):
    mutator.import_stock(1, 1, 3)

    item = _item(store)
    assert store.get_product(1).current_physical_stock == 10
    assert item.exported_quantity == 3
    assert item.returned_quantity == 3

    actions = [(log.action_type, log.quantity) for log in store.logs]
    assert actions == [(LogAction.ADJUST, 3), (LogAction.IMPORT, 3)]
    assert store.logs[0].note == PHANTOM_EXPORT_NOTE


def test_partial_phantom_only_covers_the_excess(mutator, store):
    mutator.export_stock(1, 1, 1)
    mutator.import_stock(1, 1, 3)

    item = _item(store)
    assert item.exported_quantity == 3
    assert item.returned_quantity == 3
    assert store.get_product(1).current_physical_stock == 10
    adjust = [log for log in store.logs if log.action_type == LogAction.ADJUST]
    assert [log.quantity for log in adjust] == [2]


def test_force_complete_restocks_outstanding_units(mutator, store, clock):
    mutator.export_stock(1, 1, 4)
    mutator.import_stock(1, 1, 2)
    clock.advance(days=2)

    mutator.force_complete_order(1, staff=StaffContext(staff_name="Alice"))

    order = store.get_order(1)
    assert store.get_product(1).current_physical_stock == 10
    assert order.items[0].returned_quantity == 4
    assert order.items[0].returned_by == "Alice"
    assert order.status == OrderStatus.COMPLETED
    assert order.completed_by == "Alice"
    assert order.actual_return_date == clock.now()
    # 2024-01-10 00:00 -> 2024-01-12 09:00 is 2 days 9 hours: 3 started days + 1.
    assert order.final_amount == pytest.approx(100.0 * 4 * 4)

    restock = store.logs[-1]
    assert restock.action_type == LogAction.IMPORT
    assert restock.quantity == 2
    assert restock.note == "Auto Restock - Staff: Alice"


def test_force_complete_without_staff_uses_system(mutator, store):
    mutator.export_stock(1, 1, 4)
    mutator.force_complete_order(1)

    assert store.get_order(1).completed_by == "System"
    assert store.logs[-1].note == "Auto Restock - Staff: System"


def test_force_complete_skips_external_items(clock):
    repository = _seed(items=[OrderItem(product_id=1, quantity=2), OrderItem(product_id=1, quantity=3, is_external=True)])
    store = Store(repository)
    store.refresh()
    mutator = StockMutator(store, repository, clock)
    external = store.get_order(1).items[1]
    mutator.export_stock(1, 1, 2)
    mutator.export_stock(1, 1, 3, item_id=external.id)

    mutator.force_complete_order(1)

    items = store.get_order(1).items
    assert items[0].returned_quantity == 2
    assert items[1].returned_quantity == 0
    assert store.get_product(1).current_physical_stock == 10


def test_export_beyond_physical_stock_is_refused(mutator, store):
    mutator.update_product_stock(1, 2)

    with pytest.raises(InsufficientStockError) as excinfo:
        mutator.export_stock(1, 1, 4)

    assert excinfo.value.available == 2
    assert store.get_product(1).current_physical_stock == 2
    assert _item(store).exported_quantity == 0
    assert store.get_order(1).status == OrderStatus.BOOKED


def test_export_beyond_ordered_quantity_is_refused(mutator, store):
    with pytest.raises(QuantityExceededError):
        mutator.export_stock(1, 1, 5)
    assert store.get_product(1).current_physical_stock == 10


def test_return_beyond_ordered_quantity_is_refused(mutator):
    mutator.export_stock(1, 1, 4)
    with pytest.raises(QuantityExceededError):
        mutator.import_stock(1, 1, 5)


def test_completed_order_rejects_further_movements(mutator):
    mutator.export_stock(1, 1, 4)
    mutator.import_stock(1, 1, 4)

    with pytest.raises(OrderStateError):
        mutator.export_stock(1, 1, 1)
    with pytest.raises(OrderStateError):
        mutator.force_complete_order(1)


def test_missing_records_raise_distinct_errors(mutator):
    with pytest.raises(OrderNotFoundError):
        mutator.export_stock(99, 1, 1)
    with pytest.raises(OrderItemNotFoundError):
        mutator.import_stock(1, 42, 1)


def test_non_positive_quantity_is_rejected(mutator):
    with pytest.raises(ValueError):
        mutator.export_stock(1, 1, 0)


def test_external_item_never_touches_own_stock(clock):
    repository = _seed(items=[OrderItem(product_id=1, quantity=20, is_external=True, supplier_id=3)])
    store = Store(repository)
    store.refresh()
    mutator = StockMutator(store, repository, clock)

    mutator.export_stock(1, 1, 20)
    assert store.get_product(1).current_physical_stock == 10
    assert _item(store).exported_quantity == 20

    mutator.import_stock(1, 1, 20)
    assert store.get_product(1).current_physical_stock == 10
    assert store.get_order(1).status == OrderStatus.COMPLETED
    assert [log.action_type for log in store.logs] == [LogAction.EXPORT, LogAction.IMPORT]


def test_standalone_correction_logs_without_order(mutator, store):
    mutator.update_product_stock(1, 8, action_type=LogAction.CLEAN, note="Two lamps broken")

    assert store.get_product(1).current_physical_stock == 8
    log = store.logs[-1]
    assert log.order_id == 0
    assert log.action_type == LogAction.CLEAN
    assert log.quantity == 2

    with pytest.raises(ValueError):
        mutator.update_product_stock(1, -1)


def test_counters_stay_ordered_through_a_busy_day(mutator, store):
    steps = [
        ("export", 1),
        ("import", 2),
        ("export", 1),
        ("import", 1),
        ("export", 1),
        ("import", 1),
    ]
    for kind, qty in steps:
        if kind == "export":
            mutator.export_stock(1, 1, qty)
        else:
            mutator.import_stock(1, 1, qty)
        item = _item(store)
        assert 0 <= item.returned_quantity <= item.exported_quantity <= item.quantity
        assert store.get_product(1).current_physical_stock >= 0

    assert store.get_order(1).status == OrderStatus.COMPLETED
    assert store.get_product(1).current_physical_stock == 10


class FailingRepository(InMemoryRepository):
    def commit(self, changeset):
        raise PersistenceError("disk full")


def test_failed_commit_leaves_store_untouched(clock):
    repository = _seed(FailingRepository)
    store = Store(repository)
    store.refresh()
    mutator = StockMutator(store, repository, clock)

    with pytest.raises(PersistenceError):
        mutator.export_stock(1, 1, 4)

    assert store.get_product(1).current_physical_stock == 10
    assert _item(store).exported_quantity == 0
    assert store.logs == []


class RacingRepository(InMemoryRepository):
    """Lets a rival writer take one unit right before the first commit lands."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.commits = 0
        self.raced = False

    def commit(self, changeset):
        self.commits += 1
        if not self.raced:
            self.raced = True
            rival = self.get_product(1)
            super().commit(
                LedgerChangeset(
                    products=[rival.model_copy(update={"current_physical_stock": rival.current_physical_stock - 1})]
                )
            )
        return super().commit(changeset)


def test_stale_write_is_retried_against_fresh_rows(clock):
    repository = _seed(RacingRepository)
    store = Store(repository)
    store.refresh()
    mutator = StockMutator(store, repository, clock)

    mutator.export_stock(1, 1, 4)

    assert repository.commits == 2
    assert repository.get_product(1).current_physical_stock == 5
    assert store.get_product(1).current_physical_stock == 5
    assert len(store.logs) == 1


class AlwaysStaleRepository(InMemoryRepository):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.commits = 0

    def commit(self, changeset):
        self.commits += 1
        raise ConcurrentUpdateError("someone else wrote first")


def test_retries_are_bounded(clock):
    repository = _seed(AlwaysStaleRepository)
    store = Store(repository)
    store.refresh()
    mutator = StockMutator(store, repository, clock, retries=2)

    with pytest.raises(ConcurrentUpdateError):
        mutator.export_stock(1, 1, 4)

    assert repository.commits == 3
    assert store.get_product(1).current_physical_stock == 10


def test_memory_repository_rejects_stale_versions(repository):
    product = repository.get_product(1)
    repository.commit(LedgerChangeset(products=[product.model_copy(update={"current_physical_stock": 9})]))

    with pytest.raises(ConcurrentUpdateError):
        repository.commit(LedgerChangeset(products=[product.model_copy(update={"current_physical_stock": 8})]))
    assert repository.get_product(1).current_physical_stock == 9
    assert repository.get_product(1).version == 2


def test_store_ignores_commits_absorbed_out_of_order(mutator, store, repository):
    first = mutator.export_stock(1, 1, 1)
    mutator.export_stock(1, 1, 1)

    # A slow request thread hands its older commit over last.
    store.absorb(first)

    assert repository.get_product(1).current_physical_stock == 8
    assert store.get_product(1).current_physical_stock == 8
    assert _item(store).exported_quantity == 2
    assert store.get_order(1).version == repository.get_order(1).version
    assert len(store.logs) == 2


def test_put_order_keeps_the_newer_cached_version(mutator, store):
    stale = store.get_order(1)
    mutator.export_stock(1, 1, 2)

    store.put_order(stale)

    assert store.get_order(1).status == OrderStatus.ACTIVE
    assert _item(store).exported_quantity == 2


def test_refresh_keeps_rows_absorbed_after_the_snapshot(mutator, store, repository, monkeypatch):
    products, orders = repository.list_products(), repository.list_orders()
    mutator.export_stock(1, 1, 3)
    # The repository answers with what it held before the export landed.
    monkeypatch.setattr(repository, "list_products", lambda: products)
    monkeypatch.setattr(repository, "list_orders", lambda: orders)
    monkeypatch.setattr(repository, "list_logs", lambda: [])

    store.refresh()

    assert store.get_product(1).current_physical_stock == 7
    assert _item(store).exported_quantity == 3
    assert [log.action_type for log in store.logs] == [LogAction.EXPORT]
