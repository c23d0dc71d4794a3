import unittest
from datetime import date, datetime, timezone
from unittest.mock import patch

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from support import API, ApiTestCase, TestingSessionLocal, reset_database

from fleet_maintenance.database import Base
from fleet_maintenance.middleware.error_handler import describe_integrity_error
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.mileage_record import MileageRecord
from fleet_maintenance.utils.exceptions import ErrorCode

# Separate database with foreign keys enforced (SQLite leaves them off by default)
fk_engine = create_engine("sqlite://")


@event.listens_for(fk_engine, "connect")
def enable_foreign_keys(dbapi_connection, connection_record):
    dbapi_connection.execute("PRAGMA foreign_keys=ON")


def integrity_error(reason: str) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception(reason))


class TestDescribeIntegrityError(unittest.TestCase):

    def test_mileage_key_from_sqlite(self):
        reset_database()
        db = TestingSessionLocal()
        try:
            for km in (1000, 1050):
                db.add(MileageRecord(equipmentId="eq-1", recordDate=date(2024, 1, 10), kilometers=km, userId="u"))
            with self.assertRaises(IntegrityError) as ctx:
                db.commit()
        finally:
            db.rollback()
            db.close()

        code, _, field = describe_integrity_error(ctx.exception)
        self.assertEqual((code, field), (ErrorCode.MILEAGE_DATE_TAKEN, "record_date"))

    def test_foreign_key_from_sqlite(self):
        Base.metadata.create_all(bind=fk_engine)
        db = sessionmaker(bind=fk_engine)()
        try:
            db.add(MaintenanceRecord(equipmentId="ghost", maintenanceTypeId="ghost",
                                     startDatetime=datetime(2024, 1, 10, tzinfo=timezone.utc), userId="u"))
            with self.assertRaises(IntegrityError) as ctx:
                db.commit()
        finally:
            db.rollback()
            db.close()

        code, message, _ = describe_integrity_error(ctx.exception)
        self.assertEqual(code, ErrorCode.INVALID_REFERENCE)
        self.assertNotIn("already exists", message)

    def test_constraint_names_from_postgres(self):
        cases = {
            'duplicate key value violates unique constraint "uq_maintenance_activities_record_activity"':
                (ErrorCode.DUPLICATE_ASSOCIATION, "activity_id"),
            'duplicate key value violates unique constraint "uq_maintenance_spare_parts_record_part"':
                (ErrorCode.DUPLICATE_ASSOCIATION, "spare_part_id"),
            'duplicate key value violates unique constraint "uq_equipments_user_plate"':
                (ErrorCode.DUPLICATE_ENTRY, "license_plate"),
            'duplicate key value violates unique constraint "uq_maintenance_stages_plan_index"':
                (ErrorCode.DUPLICATE_STAGE_INDEX, "stage_index"),
            'insert or update on table "maintenance_records" violates foreign key constraint "fk_equipment"':
                (ErrorCode.INVALID_REFERENCE, None),
        }
        for reason, expected in cases.items():
            with self.subTest(reason=reason):
                code, _, field = describe_integrity_error(integrity_error(reason))
                self.assertEqual((code, field), expected)

    def test_other_constraints(self):
        code, _, _ = describe_integrity_error(integrity_error("UNIQUE constraint failed: audit_logs.id"))
        self.assertEqual(code, ErrorCode.DUPLICATE_ENTRY)
        code, _, _ = describe_integrity_error(integrity_error("NOT NULL constraint failed: equipments.type"))
        self.assertEqual(code, ErrorCode.CONSTRAINT_VIOLATION)


class TestIntegrityErrorResponses(ApiTestCase):

    def setUp(self):
        super().setUp()
        preventive = self.create_type("Preventive")
        oil = self.create_activity("Oil change", [preventive["id"]])
        self.part = self.create_spare_part("F-100", "Oil filter", "12.50")
        truck = self.create_equipment("ABC-123", "T-1")
        self.record = self.create_record(truck["id"], preventive["id"], "2024-01-10T08:00:00Z",
                                         activities=[{"activity_id": oil["id"]}])
        self.oil = oil

    def test_racing_spare_part_link_is_a_duplicate_association(self):
        body = {"maintenance_record_id": self.record["id"], "spare_part_id": self.part["id"], "quantity": 1}
        self.ok(self.client.post(f"{API}/maintenance-spare-parts", json=body), 201)

        # the service-level check lost the race; the unique key still holds
        with patch("fleet_maintenance.services.association_service.validate_single"):
            response = self.client.post(f"{API}/maintenance-spare-parts", json=body)

        body = self.assertError(response, 409, ErrorCode.DUPLICATE_ASSOCIATION)
        self.assertEqual(body["error"]["field"], "spare_part_id")
        self.assertEqual(len(self.ok(self.client.get(f"{API}/maintenance-records/{self.record['id']}"))["spare_parts"]), 1)

    def test_racing_activity_link_is_a_duplicate_association(self):
        with patch("fleet_maintenance.services.association_service.validate_single"):
            response = self.client.post(f"{API}/maintenance-activities", json={
                "maintenance_record_id": self.record["id"], "activity_id": self.oil["id"],
            })

        body = self.assertError(response, 409, ErrorCode.DUPLICATE_ASSOCIATION)
        self.assertEqual(body["error"]["field"], "activity_id")


if __name__ == "__main__":
    unittest.main()
