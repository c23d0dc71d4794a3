"""Shared test wiring: in-memory SQLite behind the FastAPI app, plus record builders."""

import unittest
from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fleet_maintenance.models  # noqa: F401 (registers every table)
from fleet_maintenance.database import Base, get_db
from fleet_maintenance.main import app
from fleet_maintenance.schemas.maintenance_record import (
    MaintenanceRecordRead, MaintenanceActivityRead, MileageRecordRead,
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

API = "/api/v1"


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def api_client(user_id: str = "user-1") -> TestClient:
    return TestClient(app, headers={"X-User-Id": user_id})


# ─── Builders ─────────────────────────────────────────────────────────────────
def make_record(record_id: str, start: str, equipment_id: str = "eq-1", activities=(), end: str | None = None):
    """activities: iterable of (status, priority) pairs."""
    return MaintenanceRecordRead(
        id=record_id,
        equipment_id=equipment_id,
        maintenance_type_id="type-1",
        start_datetime=datetime.fromisoformat(start),
        end_datetime=datetime.fromisoformat(end) if end else None,
        activities=[
            MaintenanceActivityRead(
                id=f"{record_id}-a{i}",
                maintenance_record_id=record_id,
                activity_id=f"act-{i}",
                status=status,
                priority=priority,
            )
            for i, (status, priority) in enumerate(activities)
        ],
    )


def make_mileage(record_id: str, day: str, km: int, equipment_id: str = "eq-1"):
    return MileageRecordRead(id=record_id, equipment_id=equipment_id,
                             record_date=datetime.fromisoformat(day).date(), kilometers=km)


# ─── API test base ────────────────────────────────────────────────────────────
class ApiTestCase(unittest.TestCase):
    """Fresh schema per test; self.client acts as user-1."""

    user_id = "user-1"

    def setUp(self):
        reset_database()
        self.client = api_client(self.user_id)

    def assertError(self, response, status_code: int, code: str):
        self.assertEqual(response.status_code, status_code, response.text)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], code)
        return body

    def ok(self, response, status_code: int = 200):
        self.assertEqual(response.status_code, status_code, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        return body["data"]

    # Seed helpers
    def create_type(self, name: str, parent_id: str | None = None) -> dict:
        return self.ok(self.client.post(f"{API}/maintenance-types",
                                        json={"type": name, "parent_id": parent_id}), 201)

    def create_equipment(self, plate: str, code: str, type_name: str = "Truck") -> dict:
        return self.ok(self.client.post(f"{API}/equipments",
                                        json={"type": type_name, "license_plate": plate, "code": code}), 201)

    def create_activity(self, name: str, type_ids: list[str]) -> dict:
        return self.ok(self.client.post(f"{API}/activities",
                                        json={"name": name, "maintenance_type_ids": type_ids}), 201)

    def create_spare_part(self, factory_code: str, name: str, price: str = "10.00") -> dict:
        return self.ok(self.client.post(f"{API}/spare-parts",
                                        json={"factory_code": factory_code, "name": name, "price": price}), 201)

    def create_record(self, equipment_id: str, type_id: str, start: str, **extra) -> dict:
        body = {"equipment_id": equipment_id, "maintenance_type_id": type_id, "start_datetime": start, **extra}
        return self.ok(self.client.post(f"{API}/maintenance-records", json=body), 201)
