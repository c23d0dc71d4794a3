import unittest

from support import API, ApiTestCase

from fleet_maintenance.utils.exceptions import ErrorCode


class RecordsTestCase(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.preventive = self.create_type("Preventive")
        self.corrective = self.create_type("Corrective")
        self.oil = self.create_activity("Oil change", [self.preventive["id"]])
        self.inspection = self.create_activity("Inspection", [self.preventive["id"], self.corrective["id"]])
        self.weld = self.create_activity("Welding", [self.corrective["id"]])
        self.filter = self.create_spare_part("F-100", "Oil filter", "12.50")
        self.gasket = self.create_spare_part("G-200", "Gasket", "3.00")
        self.truck = self.create_equipment("ABC-123", "T-1")

    def by_equipment(self, limit=10, offset=0):
        return self.ok(self.client.post(f"{API}/maintenance-records/by-equipment",
                                        json={"equipment_id": self.truck["id"], "limit": limit, "offset": offset}))


class TestMaintenanceRecords(RecordsTestCase):

    def test_create_with_activities_parts_and_mileage(self):
        record = self.create_record(
            self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
            observations="Scheduled service",
            activities=[
                {"activity_id": self.oil["id"], "priority": "medium"},
                {"activity_id": self.inspection["id"], "status": "completed"},
            ],
            spare_parts=[{"spare_part_id": self.filter["id"], "quantity": 2, "unit_price": "12.50"}],
            mileage_record={"record_date": "2024-01-10", "kilometers": 15200},
        )

        self.assertEqual(len(record["activities"]), 2)
        self.assertEqual(record["spare_parts"][0]["quantity"], 2)
        self.assertEqual(record["spare_parts"][0]["unit_price"], 12.5)
        self.assertIsNotNone(record["mileage_record_id"])
        self.assertIsNone(record["end_datetime"])

        fetched = self.ok(self.client.get(f"{API}/maintenance-records/{record['id']}"))
        self.assertEqual(fetched["observations"], "Scheduled service")
        self.assertEqual(
            sorted(a["activity"]["name"] for a in fetched["activities"]),
            ["Inspection", "Oil change"],
        )

    def test_mileage_is_reused_for_the_same_day(self):
        first = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                   mileage_record={"record_date": "2024-01-10", "kilometers": 15200})
        second = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T14:00:00Z",
                                    mileage_record={"record_date": "2024-01-10", "kilometers": 15260})

        self.assertEqual(first["mileage_record_id"], second["mileage_record_id"])
        readings = self.ok(self.client.post(f"{API}/mileage-records/by-equipment",
                                            json={"equipment_id": self.truck["id"]}))
        self.assertEqual(readings["total"], 1)
        self.assertEqual(readings["data"][0]["kilometers"], 15260)

    def test_end_must_follow_start(self):
        response = self.client.post(f"{API}/maintenance-records", json={
            "equipment_id": self.truck["id"],
            "maintenance_type_id": self.preventive["id"],
            "start_datetime": "2024-01-10T08:00:00Z",
            "end_datetime": "2024-01-10T07:00:00Z",
        })
        self.assertError(response, 422, ErrorCode.VALIDATION_ERROR)

    def test_timezones_are_normalized(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T10:00:00+02:00")
        self.assertTrue(record["start_datetime"].startswith("2024-01-10T08:00:00"))

    def test_incompatible_activity_creates_nothing(self):
        response = self.client.post(f"{API}/maintenance-records", json={
            "equipment_id": self.truck["id"],
            "maintenance_type_id": self.preventive["id"],
            "start_datetime": "2024-01-10T08:00:00Z",
            "activities": [{"activity_id": self.weld["id"]}],
        })
        body = self.assertError(response, 409, ErrorCode.INCOMPATIBLE_MAINTENANCE_TYPE)
        self.assertEqual(body["error"]["details"], [self.weld["id"]])
        self.assertEqual(self.by_equipment()["total"], 0)

    def test_duplicated_activity_in_create(self):
        response = self.client.post(f"{API}/maintenance-records", json={
            "equipment_id": self.truck["id"],
            "maintenance_type_id": self.preventive["id"],
            "start_datetime": "2024-01-10T08:00:00Z",
            "activities": [{"activity_id": self.oil["id"]}, {"activity_id": self.oil["id"]}],
        })
        self.assertError(response, 400, ErrorCode.DUPLICATE_IN_BATCH)
        self.assertEqual(self.by_equipment()["total"], 0)

    def test_unknown_equipment(self):
        response = self.client.post(f"{API}/maintenance-records", json={
            "equipment_id": "ghost",
            "maintenance_type_id": self.preventive["id"],
            "start_datetime": "2024-01-10T08:00:00Z",
        })
        self.assertError(response, 404, ErrorCode.NOT_FOUND)

    def test_by_equipment_is_newest_first(self):
        for day in ("10", "14", "12"):
            self.create_record(self.truck["id"], self.preventive["id"], f"2024-01-{day}T08:00:00Z")

        first = self.by_equipment(limit=2)
        rest = self.by_equipment(limit=2, offset=2)

        self.assertEqual((first["total"], first["pages"]), (3, 2))
        days = [r["start_datetime"][8:10] for r in first["data"] + rest["data"]]
        self.assertEqual(days, ["14", "12", "10"])

    def test_complete_once(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z")
        url = f"{API}/maintenance-records/{record['id']}/complete"

        completed = self.ok(self.client.post(url, json={"end_datetime": "2024-01-10T12:00:00Z"}))
        self.assertTrue(completed["end_datetime"].startswith("2024-01-10T12:00:00"))

        self.assertError(self.client.post(url, json={}), 400, ErrorCode.ALREADY_COMPLETED)

    def test_complete_before_start(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z")
        response = self.client.post(f"{API}/maintenance-records/{record['id']}/complete",
                                    json={"end_datetime": "2024-01-09T08:00:00Z"})
        self.assertError(response, 400, ErrorCode.INVALID_DATE_RANGE)

    def test_type_change_must_keep_activities_valid(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                    activities=[{"activity_id": self.oil["id"]}])
        url = f"{API}/maintenance-records/{record['id']}"

        response = self.client.put(url, json={"maintenance_type_id": self.corrective["id"]})
        self.assertError(response, 409, ErrorCode.INCOMPATIBLE_MAINTENANCE_TYPE)
        self.assertEqual(self.ok(self.client.get(url))["maintenance_type_id"], self.preventive["id"])

    def test_type_change_allowed_by_every_activity(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                    activities=[{"activity_id": self.inspection["id"]}])
        updated = self.ok(self.client.put(f"{API}/maintenance-records/{record['id']}",
                                          json={"maintenance_type_id": self.corrective["id"]}))
        self.assertEqual(updated["maintenance_type_id"], self.corrective["id"])

    def test_update_rejects_inverted_range(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                    end_datetime="2024-01-10T12:00:00Z")
        response = self.client.put(f"{API}/maintenance-records/{record['id']}",
                                   json={"start_datetime": "2024-01-10T13:00:00Z"})
        self.assertError(response, 400, ErrorCode.INVALID_DATE_RANGE)

    def test_delete(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                    activities=[{"activity_id": self.oil["id"]}])
        url = f"{API}/maintenance-records/{record['id']}"

        deleted = self.ok(self.client.delete(url))
        self.assertEqual(deleted["equipment_id"], self.truck["id"])
        self.assertError(self.client.get(url), 404, ErrorCode.NOT_FOUND)
        # the activity itself survives, only the link is gone
        self.ok(self.client.delete(f"{API}/activities/{self.oil['id']}"))


class TestMileageRecords(RecordsTestCase):

    def post_mileage(self, day, km):
        return self.client.post(f"{API}/mileage-records",
                                json={"equipment_id": self.truck["id"], "record_date": day, "kilometers": km})

    def test_one_reading_per_day(self):
        created = self.post_mileage("2024-01-10", 1000)
        self.assertEqual(created.status_code, 201)

        updated = self.post_mileage("2024-01-10", 1050)
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["data"]["id"], created.json()["data"]["id"])
        self.assertEqual(updated.json()["data"]["kilometers"], 1050)

    def test_listing_and_date_range(self):
        for day, km in (("2024-01-10", 1000), ("2024-01-20", 1300), ("2024-02-05", 1700)):
            self.post_mileage(day, km)

        page = self.ok(self.client.post(f"{API}/mileage-records/by-equipment",
                                        json={"equipment_id": self.truck["id"], "limit": 2}))
        self.assertEqual([r["record_date"] for r in page["data"]], ["2024-02-05", "2024-01-20"])

        january = self.ok(self.client.post(f"{API}/mileage-records/by-date-range",
                                           json={"start_date": "2024-01-01", "end_date": "2024-01-31"}))
        self.assertEqual(january["total"], 2)

    def test_inverted_date_range(self):
        response = self.client.post(f"{API}/mileage-records/by-date-range",
                                    json={"start_date": "2024-02-01", "end_date": "2024-01-01"})
        self.assertError(response, 422, ErrorCode.VALIDATION_ERROR)

    def test_moving_onto_a_taken_date(self):
        self.post_mileage("2024-01-10", 1000)
        second = self.post_mileage("2024-01-11", 1100).json()["data"]

        response = self.client.put(f"{API}/mileage-records/{second['id']}", json={"record_date": "2024-01-10"})
        self.assertError(response, 409, ErrorCode.MILEAGE_DATE_TAKEN)

    def test_delete_detaches_maintenance_records(self):
        record = self.create_record(self.truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                    mileage_record={"record_date": "2024-01-10", "kilometers": 900})

        self.ok(self.client.delete(f"{API}/mileage-records/{record['mileage_record_id']}"))

        fetched = self.ok(self.client.get(f"{API}/maintenance-records/{record['id']}"))
        self.assertIsNone(fetched["mileage_record_id"])


if __name__ == "__main__":
    unittest.main()
