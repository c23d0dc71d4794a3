import unittest

from support import API, ApiTestCase

from fleet_maintenance.utils.exceptions import ErrorCode


class TestMaintenanceAssociations(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.preventive = self.create_type("Preventive")
        self.corrective = self.create_type("Corrective")
        self.oil = self.create_activity("Oil change", [self.preventive["id"]])
        self.inspection = self.create_activity("Inspection", [self.preventive["id"]])
        self.weld = self.create_activity("Welding", [self.corrective["id"]])
        self.filter = self.create_spare_part("F-100", "Oil filter", "12.50")
        self.gasket = self.create_spare_part("G-200", "Gasket", "3.00")
        truck = self.create_equipment("ABC-123", "T-1")
        self.record = self.create_record(truck["id"], self.preventive["id"], "2024-01-10T08:00:00Z",
                                         activities=[{"activity_id": self.oil["id"]}])

    def fetch_record(self):
        return self.ok(self.client.get(f"{API}/maintenance-records/{self.record['id']}"))

    def bulk_activities(self, items):
        return self.client.post(f"{API}/maintenance-activities/bulk",
                                json={"maintenance_record_id": self.record["id"], "activities": items})

    def bulk_parts(self, items):
        return self.client.post(f"{API}/maintenance-spare-parts/bulk",
                                json={"maintenance_record_id": self.record["id"], "spare_parts": items})

    # ─── Single activity ──────────────────────────────────────────────────────
    def test_add_activity(self):
        row = self.ok(self.client.post(f"{API}/maintenance-activities", json={
            "maintenance_record_id": self.record["id"],
            "activity_id": self.inspection["id"],
            "priority": "immediate",
        }), 201)
        self.assertEqual((row["status"], row["priority"]), ("pending", "immediate"))
        self.assertEqual(len(self.fetch_record()["activities"]), 2)

    def test_add_same_activity_twice(self):
        response = self.client.post(f"{API}/maintenance-activities", json={
            "maintenance_record_id": self.record["id"], "activity_id": self.oil["id"],
        })
        self.assertError(response, 409, ErrorCode.DUPLICATE_ASSOCIATION)

    def test_add_activity_of_another_type(self):
        response = self.client.post(f"{API}/maintenance-activities", json={
            "maintenance_record_id": self.record["id"], "activity_id": self.weld["id"],
        })
        self.assertError(response, 409, ErrorCode.INCOMPATIBLE_MAINTENANCE_TYPE)

    def test_update_and_remove_activity(self):
        row_id = self.record["activities"][0]["id"]

        updated = self.ok(self.client.put(f"{API}/maintenance-activities/{row_id}", json={"status": "completed"}))
        self.assertEqual(updated["status"], "completed")

        self.ok(self.client.delete(f"{API}/maintenance-activities/{row_id}"))
        self.assertEqual(self.fetch_record()["activities"], [])

    # ─── Bulk activities ──────────────────────────────────────────────────────
    def test_bulk_replace_activities(self):
        result = self.ok(self.bulk_activities([
            {"activity_id": self.oil["id"], "status": "in_progress"},
            {"activity_id": self.inspection["id"], "priority": "high"},
        ]))

        self.assertEqual(result["maintenance_record_id"], self.record["id"])
        self.assertEqual(len(result["processed_activities"]), 2)
        activities = {a["activity_id"]: a for a in self.fetch_record()["activities"]}
        self.assertEqual(set(activities), {self.oil["id"], self.inspection["id"]})
        self.assertEqual(activities[self.oil["id"]]["status"], "in_progress")

    def test_bulk_with_duplicates_changes_nothing(self):
        response = self.bulk_activities([
            {"activity_id": self.inspection["id"]},
            {"activity_id": self.inspection["id"]},
        ])

        body = self.assertError(response, 400, ErrorCode.DUPLICATE_IN_BATCH)
        self.assertEqual(body["error"]["details"], [self.inspection["id"]])
        self.assertEqual([a["activity_id"] for a in self.fetch_record()["activities"]], [self.oil["id"]])

    def test_bulk_empty(self):
        self.assertError(self.bulk_activities([]), 400, ErrorCode.EMPTY_BATCH)

    def test_bulk_incompatible_changes_nothing(self):
        response = self.bulk_activities([{"activity_id": self.inspection["id"]}, {"activity_id": self.weld["id"]}])
        self.assertError(response, 409, ErrorCode.INCOMPATIBLE_MAINTENANCE_TYPE)
        self.assertEqual(len(self.fetch_record()["activities"]), 1)

    def test_bulk_unknown_record(self):
        response = self.client.post(f"{API}/maintenance-activities/bulk", json={
            "maintenance_record_id": "ghost", "activities": [{"activity_id": self.oil["id"]}],
        })
        self.assertError(response, 404, ErrorCode.NOT_FOUND)

    # ─── Spare parts ──────────────────────────────────────────────────────────
    def test_bulk_replace_spare_parts(self):
        result = self.ok(self.bulk_parts([
            {"spare_part_id": self.filter["id"], "quantity": 1, "unit_price": "12.50"},
            {"spare_part_id": self.gasket["id"], "quantity": 4},
        ]))
        self.assertEqual(len(result["processed_spare_parts"]), 2)

        result = self.ok(self.bulk_parts([{"spare_part_id": self.gasket["id"], "quantity": 6}]))
        parts = self.fetch_record()["spare_parts"]
        self.assertEqual([(p["spare_part_id"], p["quantity"]) for p in parts], [(self.gasket["id"], 6)])

    def test_bulk_quantity_out_of_range(self):
        response = self.bulk_parts([{"spare_part_id": self.filter["id"], "quantity": 0}])
        self.assertError(response, 400, ErrorCode.INVALID_QUANTITY)

        response = self.bulk_parts([{"spare_part_id": self.filter["id"], "quantity": 1001}])
        self.assertError(response, 400, ErrorCode.INVALID_QUANTITY)

    def test_fractional_quantity_is_an_invalid_quantity(self):
        response = self.bulk_parts([{"spare_part_id": self.filter["id"], "quantity": 2.5}])
        self.assertError(response, 400, ErrorCode.INVALID_QUANTITY)

        response = self.client.post(f"{API}/maintenance-spare-parts", json={
            "maintenance_record_id": self.record["id"], "spare_part_id": self.filter["id"], "quantity": 1.5,
        })
        self.assertError(response, 400, ErrorCode.INVALID_QUANTITY)
        self.assertEqual(self.fetch_record()["spare_parts"], [])

    def test_bulk_price_out_of_range(self):
        response = self.bulk_parts([{"spare_part_id": self.filter["id"], "quantity": 1, "unit_price": "100000.01"}])
        self.assertError(response, 400, ErrorCode.INVALID_PRICE)

    def test_bulk_too_large(self):
        items = [{"spare_part_id": f"part-{i}", "quantity": 1} for i in range(51)]
        self.assertError(self.bulk_parts(items), 400, ErrorCode.BATCH_TOO_LARGE)

    def test_add_spare_part_twice(self):
        body = {"maintenance_record_id": self.record["id"], "spare_part_id": self.filter["id"], "quantity": 2}
        self.ok(self.client.post(f"{API}/maintenance-spare-parts", json=body), 201)
        response = self.client.post(f"{API}/maintenance-spare-parts", json=body)
        self.assertError(response, 409, ErrorCode.DUPLICATE_ASSOCIATION)

    def test_update_spare_part_checks_values(self):
        row = self.ok(self.client.post(f"{API}/maintenance-spare-parts", json={
            "maintenance_record_id": self.record["id"], "spare_part_id": self.filter["id"], "quantity": 2,
        }), 201)
        url = f"{API}/maintenance-spare-parts/{row['id']}"

        self.assertError(self.client.put(url, json={"quantity": 0}), 400, ErrorCode.INVALID_QUANTITY)
        self.assertError(self.client.put(url, json={"quantity": 2.5}), 400, ErrorCode.INVALID_QUANTITY)
        updated = self.ok(self.client.put(url, json={"quantity": 5, "unit_price": "11.00"}))
        self.assertEqual((updated["quantity"], updated["unit_price"]), (5, 11.0))

    def test_spare_part_in_use_cannot_be_deleted(self):
        self.ok(self.bulk_parts([{"spare_part_id": self.filter["id"], "quantity": 1}]))
        response = self.client.delete(f"{API}/spare-parts/{self.filter['id']}")
        self.assertError(response, 409, ErrorCode.RESOURCE_IN_USE)


class TestCatalog(ApiTestCase):

    def test_activities_filtered_by_type(self):
        preventive = self.create_type("Preventive")
        corrective = self.create_type("Corrective")
        self.create_activity("Oil change", [preventive["id"]])
        self.create_activity("Inspection", [preventive["id"], corrective["id"]])
        self.create_activity("Welding", [corrective["id"]])

        page = self.ok(self.client.get(f"{API}/activities", params={"maintenanceTypeId": corrective["id"]}))

        self.assertEqual(page["total"], 2)
        self.assertEqual([a["name"] for a in page["data"]], ["Inspection", "Welding"])

    def test_activity_needs_a_known_type(self):
        response = self.client.post(f"{API}/activities", json={"name": "Paint", "maintenance_type_ids": ["ghost"]})
        self.assertError(response, 404, ErrorCode.NOT_FOUND)

        response = self.client.post(f"{API}/activities", json={"name": "Paint", "maintenance_type_ids": []})
        self.assertError(response, 422, ErrorCode.VALIDATION_ERROR)

    def test_factory_code_is_unique(self):
        self.create_spare_part("F-100", "Oil filter")
        response = self.client.post(f"{API}/spare-parts", json={"factory_code": "F-100", "name": "Other"})
        self.assertError(response, 409, ErrorCode.DUPLICATE_ENTRY)


if __name__ == "__main__":
    unittest.main()
