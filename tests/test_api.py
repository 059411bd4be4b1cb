import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rental_ledger import create_app
from rental_ledger.core.clock import FixedClock
from rental_ledger.core.config import AppSettings
from rental_ledger.repositories.memory import InMemoryRepository

STAFF = {"X-Staff-Id": "3", "X-Staff-Name": "Binh"}


def _settings(**overrides):
    values = {"REPOSITORY_BACKEND": "memory", "API_KEY": "", "TZ": "Asia/Ho_Chi_Minh"}
    values.update(overrides)
    return AppSettings(**values)


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 1, 10, 9, 0, tzinfo=ZoneInfo("Asia/Ho_Chi_Minh")))


@pytest.fixture()
def client(clock):
    app = create_app(settings=_settings(), repository=InMemoryRepository(), clock=clock)
    return TestClient(app)


@pytest.fixture()
def booked(client):
    product = client.post(
        "/api/v1/products",
        json={"code": "prj-01", "name": "Projector", "price_per_day": 100, "total_owned": 10},
    ).json()
    customer = client.post("/api/v1/customers", json={"name": "Acme Events"}).json()
    order = client.post(
        "/api/v1/orders",
        json={
            "customer_id": customer["id"],
            "rental_start_date": "2024-01-10",
            "expected_return_date": "2024-01-15",
            "items": [{"product_id": product["id"], "quantity": 4}],
        },
    ).json()
    return product, order


def test_product_crud(client):
    created = client.post("/api/v1/products", json={"code": "spk-01", "name": "Speaker", "total_owned": 4})
    assert created.status_code == 201
    body = created.json()
    assert body["code"] == "SPK-01"
    assert body["current_physical_stock"] == 4

    updated = client.put(f"/api/v1/products/{body['id']}", json={"total_owned": 6})
    assert updated.json()["current_physical_stock"] == 6

    assert client.get("/api/v1/products").json()[0]["code"] == "SPK-01"
    assert client.delete(f"/api/v1/products/{body['id']}").status_code == 204
    missing = client.get(f"/api/v1/products/{body['id']}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"


def test_duplicate_code_is_unprocessable(client):
    client.post("/api/v1/products", json={"code": "SPK-01", "name": "Speaker"})
    response = client.post("/api/v1/products", json={"code": "spk-01", "name": "Speaker 2"})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_request"


def test_booking_and_availability(client, booked):
    product, order = booked
    assert order["status"] == "BOOKED"
    assert order["total_amount"] == 2400.0

    response = client.get(
        "/api/v1/inventory/availability",
        params={"product_id": product["id"], "start": "2024-01-12", "end": "2024-01-12"},
    )
    assert response.json()["available"] == 6
    assert response.json()["busy_quantity"] == 4

    batch = client.post(
        "/api/v1/inventory/availability",
        json={"start": "2024-01-12", "end": "2024-01-13", "items": [{"product_id": product["id"], "quantity": 7}]},
    ).json()
    assert batch == [{"product_id": product["id"], "requested": 7, "available": 6, "is_enough": False}]


def test_overbooking_is_a_conflict(client, booked):
    product, order = booked
    response = client.post(
        "/api/v1/orders",
        json={
            "customer_id": order["customer_id"],
            "rental_start_date": "2024-01-12",
            "expected_return_date": "2024-01-13",
            "items": [{"product_id": product["id"], "quantity": 7}],
        },
    )
    assert response.status_code == 409
    assert response.json()["code"] == "unavailable"
    assert response.json()["details"]["shortages"][0]["available"] == 6


def test_export_import_round_trip_with_staff(client, booked):
    product, order = booked
    movement = {"order_id": order["id"], "product_id": product["id"], "quantity": 4}

    exported = client.post("/api/v1/inventory/export", json=movement, headers=STAFF)
    assert exported.status_code == 200
    assert exported.json()["products"][0]["current_physical_stock"] == 6
    assert client.get(f"/api/v1/orders/{order['id']}").json()["status"] == "ACTIVE"

    client.post("/api/v1/inventory/import", json=movement, headers=STAFF)
    final = client.get(f"/api/v1/orders/{order['id']}").json()
    assert final["status"] == "COMPLETED"
    assert final["items"][0]["returned_by"] == "Binh"

    logs = client.get("/api/v1/inventory/logs", params={"product_id": product["id"]}).json()
    assert {log["action_type"] for log in logs} == {"EXPORT", "IMPORT"}
    assert all(log["staff_id"] == 3 and log["staff_name"] == "Binh" for log in logs)


def test_stock_errors_map_to_statuses(client, booked):
    product, order = booked
    client.post("/api/v1/inventory/adjust", json={"product_id": product["id"], "new_stock": 1})

    short = client.post(
        "/api/v1/inventory/export",
        json={"order_id": order["id"], "product_id": product["id"], "quantity": 2},
    )
    assert short.status_code == 409
    assert short.json()["code"] == "insufficient_stock"

    missing = client.post(
        "/api/v1/inventory/export",
        json={"order_id": 999, "product_id": product["id"], "quantity": 1},
    )
    assert missing.status_code == 404

    invalid = client.post(
        "/api/v1/inventory/export",
        json={"order_id": order["id"], "product_id": product["id"], "quantity": 0},
    )
    assert invalid.status_code == 422
    assert invalid.json()["code"] == "validation_error"


def test_complete_cancel_and_delete(client, booked, clock):
    product, order = booked
    client.post(
        "/api/v1/inventory/export",
        json={"order_id": order["id"], "product_id": product["id"], "quantity": 4},
    )
    clock.advance(days=1)
    completed = client.post(f"/api/v1/orders/{order['id']}/complete", headers={"X-Staff-Name": "Alice"}).json()
    assert completed["status"] == "COMPLETED"
    assert completed["completed_by"] == "Alice"
    assert client.get(f"/api/v1/products/{product['id']}").json()["current_physical_stock"] == 10

    again = client.post(f"/api/v1/orders/{order['id']}/cancel")
    assert again.status_code == 409
    assert client.delete(f"/api/v1/orders/{order['id']}").status_code == 409

    fresh = client.post(
        "/api/v1/orders",
        json={
            "customer_id": order["customer_id"],
            "rental_start_date": "2024-02-01",
            "expected_return_date": "2024-02-02",
            "items": [{"product_id": product["id"], "quantity": 1}],
        },
    ).json()
    patched = client.patch(f"/api/v1/orders/{fresh['id']}", json={"note": "Call before delivery"})
    assert patched.json()["note"] == "Call before delivery"
    assert client.post(f"/api/v1/orders/{fresh['id']}/cancel").json()["status"] == "CANCELLED"
    assert client.delete(f"/api/v1/orders/{fresh['id']}").status_code == 204


def test_forecast_endpoints(client, booked):
    product, order = booked
    client.post(
        "/api/v1/inventory/export",
        json={"order_id": order["id"], "product_id": product["id"], "quantity": 4},
    )

    single = client.get(f"/api/v1/forecast/products/{product['id']}", params={"date": "2024-01-16"}).json()
    assert single["forecast_stock"] == 10
    assert single["orders"][0]["customer_name"] == "Acme Events"

    series = client.get(
        f"/api/v1/forecast/products/{product['id']}/range", params={"start": "2024-01-14", "days": 3}
    ).json()
    assert [day["forecast_stock"] for day in series] == [6, 10, 10]

    default_series = client.get(f"/api/v1/forecast/products/{product['id']}/range").json()
    assert len(default_series) == 14
    assert default_series[0]["date"] == "2024-01-10"

    overview = client.get("/api/v1/forecast", params={"date": "2024-01-12"}).json()
    assert overview[0]["current_stock"] == 6
    assert overview[0]["low_stock"] is False


def test_refresh_rebuilds_the_store(client, booked):
    counts = client.post("/api/v1/inventory/refresh").json()
    assert counts == {"products": 1, "orders": 1, "customers": 1, "logs": 0}


def test_api_key_is_enforced_when_configured(clock):
    app = create_app(settings=_settings(API_KEY="s3cret"), repository=InMemoryRepository(), clock=clock)
    client = TestClient(app)

    assert client.get("/api/v1/products").status_code == 401
    assert client.get("/api/v1/products", headers={"X-API-Key": "nope"}).status_code == 401
    ok = client.get("/api/v1/products", headers={"X-API-Key": "s3cret"})
    assert ok.status_code == 200
    assert ok.headers["X-Request-ID"]


def test_add_item_and_extend_an_order(client, booked):
    product, order = booked

    added = client.post(f"/api/v1/orders/{order['id']}/items", json={"product_id": product["id"], "quantity": 2})
    assert added.status_code == 201
    assert [item["quantity"] for item in added.json()["items"]] == [4, 2]
    assert added.json()["total_amount"] == 3600.0

    short = client.post(f"/api/v1/orders/{order['id']}/items", json={"product_id": product["id"], "quantity": 5})
    assert short.status_code == 409
    assert short.json()["code"] == "unavailable"

    extended = client.patch(f"/api/v1/orders/{order['id']}", json={"expected_return_date": "2024-01-17"})
    assert extended.json()["total_amount"] == 4800.0
