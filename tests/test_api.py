"""
tests/test_api.py
HTTP-level tests for fleetdispatch.api using FastAPI's TestClient.

Tests cover:
- Create responses (201 body shape, per-kind message and key name)
- Error status mapping (400 / 404 / 409 / 500) and JSON error bodies
- List and single-record reads with joined labels
- Form-encoded bodies, malformed JSON
- /api/schemas, /health, CORS and the optional static mount
"""

from __future__ import annotations

import pathlib
from typing import Any, Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from fleetdispatch.api import create_app
from fleetdispatch.config import ServiceConfig
from fleetdispatch.exceptions import StorageError
from fleetdispatch.models import EntityKind
from fleetdispatch.storage import InMemoryRecordStore, SQLRecordStore


# ===========================================================================
# Fixtures
# ===========================================================================


class _BrokenWrites(InMemoryRecordStore):
    def create(self, kind: EntityKind, record: Dict[str, Any]) -> None:
        raise StorageError("disk full")


class _BrokenReads(InMemoryRecordStore):
    def exists(self, kind: EntityKind, key_field: str, value: Any) -> bool:
        raise ConnectionError("connection refused")

    def ping(self) -> bool:
        return False


@pytest.fixture()
def client(memory_store: InMemoryRecordStore) -> Iterator[TestClient]:
    app = create_app(ServiceConfig(database_url="sqlite://"), store=memory_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def seeded_client(seeded_memory_store: InMemoryRecordStore) -> Iterator[TestClient]:
    app = create_app(ServiceConfig(database_url="sqlite://"), store=seeded_memory_store)
    with TestClient(app) as test_client:
        yield test_client


# ===========================================================================
# Create
# ===========================================================================


class TestCreate:
    """POST /api/<resource>."""

    def test_create_driver(self, client: TestClient, make_payload) -> None:
        response = client.post("/api/drivers", json=make_payload(EntityKind.DRIVER))
        assert response.status_code == 201
        assert response.json() == {"message": "Driver registered", "driverId": 1}

    def test_create_payment_reports_payment_id(
        self, seeded_client: TestClient, make_payload
    ) -> None:
        response = seeded_client.post(
            "/api/payments", json=make_payload(EntityKind.PAYMENT, Payment_ID=9)
        )
        assert response.status_code == 201
        assert response.json() == {
            "message": "Payment processed successfully",
            "paymentId": 9,
        }

    def test_duplicate_is_409(self, client: TestClient, make_payload) -> None:
        client.post("/api/drivers", json=make_payload(EntityKind.DRIVER))
        response = client.post("/api/drivers", json=make_payload(EntityKind.DRIVER))
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "DUPLICATE_KEY"
        assert body["stage"] == "integrity"
        assert body["context"] == {"kind": "Driver", "value": 1}

    def test_missing_field_is_400(self, client: TestClient, make_payload) -> None:
        response = client.post(
            "/api/passengers", json=make_payload(EntityKind.PASSENGER, pname=...)
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Field 'pname' is required."

    def test_rating_out_of_range_is_400(self, seeded_client: TestClient, make_payload) -> None:
        response = seeded_client.post(
            "/api/feedback", json=make_payload(EntityKind.FEEDBACK, F_ID=2, Rating=6)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "CONSTRAINT_VIOLATION"

    def test_schedule_range_is_400(self, seeded_client: TestClient, make_payload) -> None:
        response = seeded_client.post(
            "/api/schedules",
            json=make_payload(
                EntityKind.SCHEDULE,
                Sch_ID=2,
                StartTime="2024-05-01T16:00:00",
                EndTime="2024-05-01T16:00:00",
            ),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "EndTime must be after StartTime."

    def test_unknown_reference_is_404(self, seeded_client: TestClient, make_payload) -> None:
        response = seeded_client.post(
            "/api/rides", json=make_payload(EntityKind.RIDE, Ride_ID=2, D_ID=42)
        )
        assert response.status_code == 404
        assert response.json()["error"] == "Driver not found."

    def test_form_encoded_body(self, client: TestClient, make_payload) -> None:
        form = {k: str(v) for k, v in make_payload(EntityKind.VEHICLE).items()}
        response = client.post("/api/vehicles", data=form)
        assert response.status_code == 201
        assert response.json()["vehicleId"] == 1

    def test_malformed_json_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/api/drivers",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Malformed JSON body"}

    def test_array_body_is_400(self, client: TestClient) -> None:
        response = client.post("/api/drivers", json=[1, 2, 3])
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TYPE"

    def test_store_write_failure_is_500(self, make_payload) -> None:
        app = create_app(ServiceConfig(database_url="sqlite://"), store=_BrokenWrites())
        with TestClient(app) as broken:
            response = broken.post("/api/drivers", json=make_payload(EntityKind.DRIVER))
        assert response.status_code == 500
        assert response.json() == {"error": "Database error", "details": "disk full"}

    def test_lookup_failure_is_500(self, make_payload) -> None:
        app = create_app(ServiceConfig(database_url="sqlite://"), store=_BrokenReads())
        with TestClient(app) as broken:
            response = broken.post("/api/drivers", json=make_payload(EntityKind.DRIVER))
        assert response.status_code == 500
        assert response.json()["code"] == "STORAGE_UNAVAILABLE"


# ===========================================================================
# Read
# ===========================================================================


class TestRead:
    """GET /api/<resource> and GET /api/<resource>/{key}."""

    def test_list_rides_with_labels(self, seeded_client: TestClient) -> None:
        response = seeded_client.get("/api/rides")
        assert response.status_code == 200
        rides = response.json()
        assert len(rides) == 1
        assert rides[0]["DriverName"] == "A"
        assert rides[0]["TimeStamp"] == "2024-05-01T09:30:00"

    def test_list_empty(self, client: TestClient) -> None:
        assert client.get("/api/support").json() == []

    def test_get_one(self, seeded_client: TestClient) -> None:
        response = seeded_client.get("/api/payments/1")
        assert response.status_code == 200
        body = response.json()
        assert body["Payment_ID"] == 1
        assert body["PickupLocation"] == "Airport"

    def test_get_by_string_key(self, seeded_client: TestClient) -> None:
        response = seeded_client.get("/api/promotions/SPRING10")
        assert response.status_code == 200
        assert response.json()["Percentage"] == 10

    def test_get_missing_is_404(self, seeded_client: TestClient) -> None:
        response = seeded_client.get("/api/drivers/99")
        assert response.status_code == 404
        assert response.json() == {"error": "Driver not found"}

    def test_get_unparsable_key_is_404(self, seeded_client: TestClient) -> None:
        response = seeded_client.get("/api/support/abc")
        assert response.status_code == 404
        assert response.json() == {"error": "SupportReq not found"}

    def test_unknown_resource_is_404(self, client: TestClient) -> None:
        assert client.get("/api/bicycles").status_code == 404


# ===========================================================================
# Meta endpoints
# ===========================================================================


class TestMeta:
    """Schemas, health, CORS and static files."""

    def test_schemas(self, client: TestClient) -> None:
        schemas = client.get("/api/schemas").json()
        assert [s["kind"] for s in schemas][:3] == ["Driver", "Passenger", "Vehicle"]
        assert len(schemas) == 10

    def test_health_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_degraded(self) -> None:
        app = create_app(ServiceConfig(database_url="sqlite://"), store=_BrokenReads())
        with TestClient(app) as broken:
            response = broken.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_cors_header(self, client: TestClient) -> None:
        response = client.get("/api/drivers", headers={"Origin": "http://admin.local"})
        assert "access-control-allow-origin" in response.headers

    def test_static_pages(self, tmp_path: pathlib.Path, memory_store: InMemoryRecordStore) -> None:
        (tmp_path / "index.html").write_text("<h1>Fleet</h1>", encoding="utf-8")
        config = ServiceConfig(database_url="sqlite://", static_dir=str(tmp_path))
        with TestClient(create_app(config, store=memory_store)) as static_client:
            page = static_client.get("/")
            api = static_client.get("/api/drivers")
        assert page.status_code == 200
        assert "Fleet" in page.text
        assert api.json() == []

    def test_sql_store_tables_created_on_startup(self, make_payload) -> None:
        config = ServiceConfig(database_url="sqlite://")
        store = SQLRecordStore.from_config(config)
        try:
            with TestClient(create_app(config, store=store)) as sql_client:
                created = sql_client.post("/api/drivers", json=make_payload(EntityKind.DRIVER))
                fetched = sql_client.get("/api/drivers/1")
        finally:
            store.dispose()
        assert created.status_code == 201
        assert fetched.json()["dname"] == "A"

    def test_oversized_id_is_400_on_sql_store(self, make_payload) -> None:
        config = ServiceConfig(database_url="sqlite://")
        store = SQLRecordStore.from_config(config)
        try:
            with TestClient(create_app(config, store=store)) as sql_client:
                response = sql_client.post(
                    "/api/drivers", json=make_payload(EntityKind.DRIVER, D_ID=2**70)
                )
        finally:
            store.dispose()
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "CONSTRAINT_VIOLATION"
        assert body["context"]["field"] == "D_ID"
