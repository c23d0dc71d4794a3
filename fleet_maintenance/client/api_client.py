"""
Async client for the maintenance API.

Unwraps the {"success", "message", "data"} envelope and parses payloads into
the read models. Transport errors, error envelopes and payloads that do not
validate all surface as FetchFailedException; the caller's state is never
touched by a failed call.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from fleet_maintenance.config import settings
from fleet_maintenance.core.associations import validate_activity_bulk, validate_spare_part_bulk
from fleet_maintenance.core.taxonomy import UNSET
from fleet_maintenance.schemas.common import Page
from fleet_maintenance.schemas.equipment import (
    EquipmentAggregate, EquipmentWithPendingRecords, EquipmentWithRecordsRequest,
)
from fleet_maintenance.schemas.maintenance_plan import (
    MaintenancePlanWithStages, PlanDeleteCheck, StageReorderResult,
)
from fleet_maintenance.schemas.maintenance_record import (
    ActivityItem, SparePartItem, MaintenanceRecordRead, MileageRecordRead,
    BulkActivitiesResult, BulkSparePartsResult,
)
from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeNode, MaintenanceTypeCreated
from fleet_maintenance.utils.exceptions import FetchFailedException

logger = logging.getLogger(__name__)


class MaintenanceApiClient:

    def __init__(
        self,
        user_id: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_id = user_id
        self.client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT,
            headers={"X-User-Id": user_id, "Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "MaintenanceApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    # ─── Transport ────────────────────────────────────────────────────────────
    async def _request(self, method: str, path: str, json: Any = None, params: dict | None = None) -> Any:
        try:
            response = await self.client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise FetchFailedException(f"Could not reach the maintenance API: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise FetchFailedException(
                f"Invalid response from {method} {path} (HTTP {response.status_code})") from e

        if response.is_error or not isinstance(body, dict) or not body.get("success", False):
            message, details = f"{method} {path} returned HTTP {response.status_code}", None
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                message, details = body.get("message") or message, [body["error"]]
            logger.warning(f"{method} {path} rejected: {message}")
            raise FetchFailedException(message, details=details)

        return body.get("data")

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            # Incomplete payloads are rejected rather than patched locally
            raise FetchFailedException("Incomplete response from the maintenance API",
                                       details=[err["msg"] for err in e.errors()]) from e

    # ─── Maintenance types ────────────────────────────────────────────────────
    async def list_maintenance_types(self, limit: int = 0, offset: int = 0) -> Page[MaintenanceTypeNode]:
        data = await self._request("GET", "/maintenance-types", params={"limit": limit, "offset": offset})
        return self._parse(Page[MaintenanceTypeNode], data)

    async def maintenance_type_tree(self) -> list[MaintenanceTypeNode]:
        data = await self._request("GET", "/maintenance-types/tree")
        return [self._parse(MaintenanceTypeNode, node) for node in data or []]

    async def create_maintenance_type(self, type_name: str, parent_id: str | None = None) -> MaintenanceTypeCreated:
        data = await self._request("POST", "/maintenance-types", json={"type": type_name, "parent_id": parent_id})
        return self._parse(MaintenanceTypeCreated, data)

    async def update_maintenance_type(self, type_id: str, type_name: str | None = None, parent_id=UNSET) -> str:
        body: dict = {}
        if type_name is not None:
            body["type"] = type_name
        if parent_id is not UNSET:
            body["parent_id"] = parent_id
        data = await self._request("PUT", f"/maintenance-types/{type_id}", json=body)
        return data["id"]

    async def delete_maintenance_type(self, type_id: str) -> str:
        data = await self._request("DELETE", f"/maintenance-types/{type_id}")
        return data["id"]

    # ─── Aggregates ───────────────────────────────────────────────────────────
    async def equipments_with_records(self, request: EquipmentWithRecordsRequest) -> Page[EquipmentAggregate]:
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request("POST", "/equipments/with-records", json=body)
        return self._parse(Page[EquipmentAggregate], data)

    async def maintenance_records_by_equipment(
        self, equipment_id: str, limit: int, offset: int,
    ) -> Page[MaintenanceRecordRead]:
        data = await self._request("POST", "/maintenance-records/by-equipment",
                                   json={"equipment_id": equipment_id, "limit": limit, "offset": offset})
        return self._parse(Page[MaintenanceRecordRead], data)

    async def mileage_records_by_equipment(
        self, equipment_id: str, limit: int, offset: int,
    ) -> Page[MileageRecordRead]:
        data = await self._request("POST", "/mileage-records/by-equipment",
                                   json={"equipment_id": equipment_id, "limit": limit, "offset": offset})
        return self._parse(Page[MileageRecordRead], data)

    async def equipments_with_pending_records(
        self, limit: int = 10, offset: int = 0,
    ) -> Page[EquipmentWithPendingRecords]:
        data = await self._request("GET", "/equipments/with-pending-records",
                                   params={"limit": limit, "offset": offset})
        return self._parse(Page[EquipmentWithPendingRecords], data)

    async def equipment_has_records(self, equipment_id: str) -> bool:
        data = await self._request("POST", "/equipments/has-records", json={"equipment_id": equipment_id})
        return bool(data)

    # ─── Maintenance plans ────────────────────────────────────────────────────
    async def maintenance_plans_with_stages(self, include_empty: bool = False) -> list[MaintenancePlanWithStages]:
        data = await self._request("GET", "/maintenance-plans/with-stages",
                                   params={"includeEmptyPlans": str(include_empty).lower()})
        return [self._parse(MaintenancePlanWithStages, plan) for plan in data or []]

    async def plan_delete_check(self, plan_id: str) -> PlanDeleteCheck:
        data = await self._request("GET", f"/maintenance-plans/{plan_id}/can-delete")
        return self._parse(PlanDeleteCheck, data)

    async def reorder_stages(self, stage_ids: list[str]) -> StageReorderResult:
        data = await self._request("PUT", "/maintenance-stages/reorder", json={"newOrder": stage_ids})
        return self._parse(StageReorderResult, data)

    # ─── Maintenance records ──────────────────────────────────────────────────
    async def create_maintenance_record(self, payload: dict | BaseModel) -> MaintenanceRecordRead:
        if isinstance(payload, BaseModel):
            validate_activity_bulk(payload.activities, require_items=False)
            validate_spare_part_bulk(payload.spare_parts, require_items=False)
            payload = payload.model_dump(mode="json", exclude_none=True)
        else:
            validate_activity_bulk(payload.get("activities", []), require_items=False)
            validate_spare_part_bulk(payload.get("spare_parts", []), require_items=False)
        data = await self._request("POST", "/maintenance-records", json=payload)
        return self._parse(MaintenanceRecordRead, data)

    async def complete_maintenance_record(self, record_id: str) -> MaintenanceRecordRead:
        data = await self._request("POST", f"/maintenance-records/{record_id}/complete", json={})
        return self._parse(MaintenanceRecordRead, data)

    async def delete_maintenance_record(self, record_id: str) -> str:
        data = await self._request("DELETE", f"/maintenance-records/{record_id}")
        return data["id"]

    # ─── Bulk associations ────────────────────────────────────────────────────
    async def replace_activities(self, maintenance_record_id: str, activities: list[ActivityItem]) -> BulkActivitiesResult:
        # Checked locally first so an invalid batch never reaches the API
        validate_activity_bulk(activities)
        body = {
            "maintenance_record_id": maintenance_record_id,
            "activities": [a.model_dump(mode="json") for a in activities],
        }
        data = await self._request("POST", "/maintenance-activities/bulk", json=body)
        return self._parse(BulkActivitiesResult, data)

    async def replace_spare_parts(self, maintenance_record_id: str, spare_parts: list[SparePartItem]) -> BulkSparePartsResult:
        validate_spare_part_bulk(spare_parts)
        body = {
            "maintenance_record_id": maintenance_record_id,
            "spare_parts": [p.model_dump(mode="json") for p in spare_parts],
        }
        data = await self._request("POST", "/maintenance-spare-parts/bulk", json=body)
        return self._parse(BulkSparePartsResult, data)
