import unittest

import httpx

from support import app, reset_database

from fleet_maintenance.client.api_client import MaintenanceApiClient
from fleet_maintenance.core.aggregate import AggregateMerger
from fleet_maintenance.core.coordinator import FilterSortCoordinator
from fleet_maintenance.schemas.equipment import EquipmentWithRecordsRequest
from fleet_maintenance.schemas.maintenance_record import ActivityItem, SparePartItem
from fleet_maintenance.utils.exceptions import (
    DuplicateInBatchException, FetchFailedException, InvalidQuantityException,
)

BASE_URL = "http://testserver/api/v1"


def offline_client(handler) -> MaintenanceApiClient:
    return MaintenanceApiClient("user-1", base_url=BASE_URL, transport=httpx.MockTransport(handler))


class TestApiClientAgainstApp(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        reset_database()
        self.api = MaintenanceApiClient("user-1", base_url=BASE_URL, transport=httpx.ASGITransport(app=app))

    async def asyncTearDown(self):
        await self.api.close()

    async def post(self, path, body):
        response = await self.api.client.post(path, json=body)
        self.assertLess(response.status_code, 300, response.text)
        return response.json()["data"]

    async def seed_fleet(self, records=12):
        preventive = await self.api.create_maintenance_type("Preventive")
        oil = await self.post("/activities", {"name": "Oil change", "maintenance_type_ids": [preventive.id]})
        truck = await self.post("/equipments", {"type": "Truck", "license_plate": "ABC-123", "code": "T-1"})
        van = await self.post("/equipments", {"type": "Van", "license_plate": "XYZ-999", "code": "V-1"})
        for day in range(1, records + 1):
            await self.post("/maintenance-records", {
                "equipment_id": truck["id"],
                "maintenance_type_id": preventive.id,
                "start_datetime": f"2024-03-{day:02d}T08:00:00Z",
            })
        await self.post("/maintenance-records", {
            "equipment_id": van["id"],
            "maintenance_type_id": preventive.id,
            "start_datetime": "2024-03-01T08:00:00Z",
            "end_datetime": "2024-03-01T10:00:00Z",
        })
        return preventive, oil, truck, van

    # ─── Taxonomy ─────────────────────────────────────────────────────────────
    async def test_taxonomy_round_trip(self):
        root = await self.api.create_maintenance_type("Preventive")
        child = await self.api.create_maintenance_type("Oil Change", root.id)
        other = await self.api.create_maintenance_type("Scheduled")
        self.assertEqual((child.level, child.path), (1, "Preventive"))

        await self.api.update_maintenance_type(child.id, parent_id=other.id)

        tree = await self.api.maintenance_type_tree()
        scheduled = next(n for n in tree if n.id == other.id)
        self.assertEqual([c.id for c in scheduled.children], [child.id])
        flat = await self.api.list_maintenance_types()
        self.assertEqual(flat.total, 3)

    async def test_error_envelope_becomes_fetch_failed(self):
        with self.assertRaises(FetchFailedException) as ctx:
            await self.api.delete_maintenance_type("ghost")
        self.assertEqual(ctx.exception.details[0]["code"], "NOT_FOUND")

    # ─── Aggregates ───────────────────────────────────────────────────────────
    async def test_merger_pages_through_live_records(self):
        _, _, truck, _ = await self.seed_fleet()
        merger = AggregateMerger(self.api, page_size=5, mileage_page_size=5)

        await merger.initial_load()
        window = await merger.fetch_next_page(truck["id"], 5)

        self.assertEqual((window.start, window.end), (5, 10))
        loaded = merger.get(truck["id"]).maintenance_records
        self.assertEqual(len(loaded.data), 10)
        self.assertEqual(loaded.total, 12)

        server = await self.api.maintenance_records_by_equipment(truck["id"], limit=0, offset=0)
        self.assertEqual([r.id for r in loaded.data], [r.id for r in server.data[:10]])

    async def test_coordinator_filters_live_aggregates(self):
        _, _, truck, van = await self.seed_fleet(records=2)
        merger = AggregateMerger(self.api, page_size=5)
        coordinator = FilterSortCoordinator(merger)

        await coordinator.load()
        self.assertEqual({a.id for a in merger.aggregates}, {truck["id"], van["id"]})

        await coordinator.set_filter("by_status", ["completed"])
        self.assertEqual([a.id for a in merger.aggregates], [van["id"]])
        self.assertEqual(merger.get(van["id"]).maintenance_count.status.completed, 1)

    async def test_mutation_after_completing_a_record(self):
        _, _, truck, _ = await self.seed_fleet(records=3)
        merger = AggregateMerger(self.api, page_size=5)
        await merger.initial_load()
        newest = merger.get(truck["id"]).maintenance_records.data[0]

        completed = await self.api.complete_maintenance_record(newest.id)
        merger.apply_mutation("upsert", record=completed)

        count = merger.get(truck["id"]).maintenance_count
        self.assertEqual((count.total, count.status.completed, count.status.pending), (3, 1, 2))

        deleted = await self.api.delete_maintenance_record(newest.id)
        merger.apply_mutation("delete", record_id=deleted)
        self.assertEqual(merger.get(truck["id"]).maintenance_records.total, 2)

    # ─── Records and bulk associations ────────────────────────────────────────
    async def test_create_record_and_replace_associations(self):
        preventive, oil, truck, _ = await self.seed_fleet(records=0)
        part = await self.post("/spare-parts", {"factory_code": "F-100", "name": "Oil filter", "price": "12.50"})

        record = await self.api.create_maintenance_record({
            "equipment_id": truck["id"],
            "maintenance_type_id": preventive.id,
            "start_datetime": "2024-04-01T08:00:00Z",
        })
        activities = await self.api.replace_activities(record.id, [ActivityItem(activity_id=oil["id"])])
        parts = await self.api.replace_spare_parts(
            record.id, [SparePartItem(spare_part_id=part["id"], quantity=3, unit_price="12.50")])

        self.assertEqual(len(activities.processed_activities), 1)
        self.assertEqual(len(parts.processed_spare_parts), 1)

    async def test_invalid_batches_never_reach_the_api(self):
        with self.assertRaises(DuplicateInBatchException):
            await self.api.replace_activities("rec-1", [ActivityItem(activity_id="a"), ActivityItem(activity_id="a")])
        with self.assertRaises(InvalidQuantityException):
            await self.api.replace_spare_parts("rec-1", [SparePartItem(spare_part_id="p", quantity=0)])
        with self.assertRaises(DuplicateInBatchException):
            await self.api.create_maintenance_record({
                "equipment_id": "eq", "maintenance_type_id": "t", "start_datetime": "2024-04-01T08:00:00Z",
                "activities": [{"activity_id": "a"}, {"activity_id": "a"}],
            })

    # ─── Plans and pending records ────────────────────────────────────────────
    async def test_plan_stages_and_pending_views(self):
        preventive, _, truck, van = await self.seed_fleet(records=2)
        plan = await self.post("/maintenance-plans", {"name": "Heavy duty"})
        first = await self.post("/maintenance-stages", {
            "maintenance_plan_id": plan["id"], "maintenance_type_id": preventive.id,
            "stage_index": 1, "kilometers": 5000,
        })
        second = await self.post("/maintenance-stages", {
            "maintenance_plan_id": plan["id"], "maintenance_type_id": preventive.id,
            "stage_index": 2, "days": 90,
        })

        result = await self.api.reorder_stages([second["id"], first["id"]])
        self.assertEqual(result.reordered_count, 2)

        plans = await self.api.maintenance_plans_with_stages()
        self.assertEqual([s.id for s in plans[0].stages], [second["id"], first["id"]])
        self.assertEqual(plans[0].stages[0].maintenance_type.id, preventive.id)
        check = await self.api.plan_delete_check(plan["id"])
        self.assertFalse(check.can_delete)

        pending = await self.api.equipments_with_pending_records()
        self.assertEqual([e.id for e in pending.data], [truck["id"]])
        self.assertEqual(len(pending.data[0].pending_records), 2)
        self.assertTrue(await self.api.equipment_has_records(van["id"]))


class TestApiClientFailures(unittest.IsolatedAsyncioTestCase):

    async def test_transport_error(self):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with offline_client(unreachable) as api:
            with self.assertRaises(FetchFailedException):
                await api.equipments_with_records(EquipmentWithRecordsRequest())

    async def test_non_json_body(self):
        async with offline_client(lambda request: httpx.Response(502, text="Bad gateway")) as api:
            with self.assertRaises(FetchFailedException):
                await api.list_maintenance_types()

    async def test_incomplete_payload_is_rejected(self):
        payload = {"success": True, "message": "ok", "data": {"total": 1, "data": [{"id": "r1"}]}}

        async with offline_client(lambda request: httpx.Response(200, json=payload)) as api:
            with self.assertRaises(FetchFailedException):
                await api.maintenance_records_by_equipment("eq-1", limit=10, offset=0)

    async def test_headers_carry_the_user(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("X-User-Id"))
            return httpx.Response(200, json={"success": True, "message": "ok", "data": []})

        async with offline_client(handler) as api:
            await api.maintenance_type_tree()
        self.assertEqual(seen, ["user-1"])


if __name__ == "__main__":
    unittest.main()
