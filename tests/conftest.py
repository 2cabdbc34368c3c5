"""
tests/conftest.py
Shared fixtures for the fleetdispatch test suite.

No external mocking libraries are used: lookups are replaced by a small
recording fake, and storage runs against the in-memory store or an
in-memory SQLite database.
"""

from __future__ import annotations

import copy
import pathlib
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

import pytest
import yaml

from fleetdispatch.config import ServiceConfig
from fleetdispatch.models import EntityKind
from fleetdispatch.pipeline import validate_and_create
from fleetdispatch.registry import dependency_order
from fleetdispatch.storage import InMemoryRecordStore, SQLRecordStore


# ---------------------------------------------------------------------------
# Lookup fake
# ---------------------------------------------------------------------------


class RecordingLookup:
    """
    ``ExistenceLookup`` fake that answers from a set of known keys and
    records every call as ``(kind_value, key_field, value)``.
    """

    def __init__(
        self,
        existing: Optional[Set[Tuple[str, str, Any]]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.existing: Set[Tuple[str, str, Any]] = set(existing or ())
        self.error: Optional[Exception] = error
        self.calls: List[Tuple[str, str, Any]] = []

    def add(self, kind: str, key_field: str, value: Any) -> "RecordingLookup":
        self.existing.add((kind, key_field, value))
        return self

    def exists(self, kind: EntityKind, key_field: str, value: Any) -> bool:
        call: Tuple[str, str, Any] = (kind.value, key_field, value)
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return call in self.existing


# ---------------------------------------------------------------------------
# Valid payloads, one per kind
# ---------------------------------------------------------------------------

VALID_PAYLOADS: Dict[EntityKind, Dict[str, Any]] = {
    EntityKind.DRIVER: {
        "D_ID": 1,
        "dname": "A",
        "contactnum": "5551234",
        "insuranceDoc": "x",
        "PaymentMethod": "card",
        "Statuss": 1,
        "LicenceNumber": 987,
    },
    EntityKind.PASSENGER: {
        "P_ID": 1,
        "pname": "Bea",
        "contactnum": 5559876,
        "CreditCardInfo": "4111-0000",
    },
    EntityKind.VEHICLE: {
        "V_ID": 1,
        "vtype": "Sedan",
        "LicencePlate": "ABC-123",
        "MaintenanceStat": "OK",
        "ChildSeat": 0,
    },
    EntityKind.PROMOTION: {
        "P_Code": "SPRING10",
        "PDescription": "Ten percent off in spring",
        "Percentage": 10,
        "Startt": "2024-03-01",
        "Endd": "2024-03-31",
        "Statuss": 1,
    },
    EntityKind.SCHEDULE: {
        "Sch_ID": 1,
        "D_ID": 1,
        "V_ID": 1,
        "StartTime": "2024-05-01T08:00:00",
        "EndTime": "2024-05-01T16:00:00",
        "Statuss": "Planned",
    },
    EntityKind.MAINTENANCE: {
        "M_ID": 1,
        "V_ID": 1,
        "Description": "Oil change",
        "DatePerformed": "2024-04-02",
        "Cost": 0,
        "Statuss": "Done",
    },
    EntityKind.SUPPORT_REQ: {
        "S_ID": 1,
        "SubmittedBy": "Driver",
        "IssueType": "App",
        "IssueDesc": "App crashes on login",
        "IssueStatus": "Open",
        "D_ID": 1,
    },
    EntityKind.FEEDBACK: {
        "F_ID": 1,
        "Rating": 5,
        "Comment": "Great ride",
        "SubmittedTo": "Driver",
        "SubmittedBy": "Passenger",
        "P_ID": 1,
        "D_ID": 1,
    },
    EntityKind.RIDE: {
        "Ride_ID": 1,
        "PickupLocation": "Airport",
        "Dropoff": "Downtown",
        "TimeStamp": "2024-05-01T09:30:00",
        "Statuss": 1,
        "V_ID": 1,
        "D_ID": 1,
        "P_ID": 1,
        "F_ID": 1,
    },
    EntityKind.PAYMENT: {
        "Payment_ID": 1,
        "Amount": 25.5,
        "PaymentMethod": "card",
        "Statuss": 1,
        "TimeStamp": "2024-05-01T10:00:00",
        "PromoUsed": "SPRING10",
        "P_ID": 1,
        "Ride_ID": 1,
    },
}

PayloadFactory = Callable[..., Dict[str, Any]]


@pytest.fixture()
def make_payload() -> PayloadFactory:
    """
    Return a factory producing a fresh valid payload for a kind.

    Keyword overrides replace fields; an override of ``...`` removes the key.
    """

    def _make(kind: EntityKind, **overrides: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = copy.deepcopy(VALID_PAYLOADS[kind])
        for key, value in overrides.items():
            if value is ...:
                payload.pop(key, None)
            else:
                payload[key] = value
        return payload

    return _make


@pytest.fixture()
def lookup() -> RecordingLookup:
    """Empty store: every key is new and every reference is dangling."""
    return RecordingLookup()


@pytest.fixture()
def full_lookup() -> RecordingLookup:
    """Every reference used by ``VALID_PAYLOADS`` resolves; no primary key is taken."""
    fake = RecordingLookup()
    fake.add("Driver", "D_ID", 1)
    fake.add("Passenger", "P_ID", 1)
    fake.add("Vehicle", "V_ID", 1)
    fake.add("Promotion", "P_Code", "SPRING10")
    fake.add("Feedback", "F_ID", 1)
    fake.add("Ride", "Ride_ID", 1)
    return fake


@pytest.fixture()
def failing_lookup() -> Callable[[Exception], RecordingLookup]:
    """Return a factory for a lookup whose every call raises the given exception."""

    def _make(error: Exception) -> RecordingLookup:
        return RecordingLookup(error=error)

    return _make


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


def _seed(store: Any) -> None:
    for kind in dependency_order():
        validate_and_create(kind, copy.deepcopy(VALID_PAYLOADS[kind]), store)


@pytest.fixture()
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture()
def seeded_memory_store() -> InMemoryRecordStore:
    """In-memory store holding one valid record of every kind."""
    store = InMemoryRecordStore()
    _seed(store)
    return store


@pytest.fixture()
def sqlite_config() -> ServiceConfig:
    return ServiceConfig(database_url="sqlite://")


@pytest.fixture()
def sql_store(sqlite_config: ServiceConfig) -> Iterator[SQLRecordStore]:
    """Empty SQLite (in-memory) store with every table created."""
    store = SQLRecordStore.from_config(sqlite_config)
    store.create_all()
    yield store
    store.dispose()


@pytest.fixture()
def seeded_sql_store(sql_store: SQLRecordStore) -> SQLRecordStore:
    """SQLite store holding one valid record of every kind."""
    _seed(sql_store)
    return sql_store


# ---------------------------------------------------------------------------
# Payload files
# ---------------------------------------------------------------------------


@pytest.fixture()
def drivers_yaml_path(tmp_path: pathlib.Path) -> pathlib.Path:
    """Two drivers in a YAML list: the first valid, the second missing ``dname``."""
    good: Dict[str, Any] = copy.deepcopy(VALID_PAYLOADS[EntityKind.DRIVER])
    bad: Dict[str, Any] = copy.deepcopy(VALID_PAYLOADS[EntityKind.DRIVER])
    bad["D_ID"] = 2
    del bad["dname"]
    path = tmp_path / "drivers.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump([good, bad], fh, default_flow_style=False)
    return path
