from collections import defaultdict

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from fleet_maintenance.core.aggregate import (
    compute_maintenance_count, record_priority, record_status, PRIORITY_RANK, STATUS_RANK,
)
from fleet_maintenance.models.equipment import Equipment
from fleet_maintenance.models.maintenance_activity import MaintenanceActivity
from fleet_maintenance.models.maintenance_plan import MaintenancePlan
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.mileage_record import MileageRecord
from fleet_maintenance.schemas.common import page_payload, slice_page
from fleet_maintenance.schemas.equipment import (
    EquipmentCreateRequest, EquipmentUpdateRequest, EquipmentWithRecordsRequest,
)
from fleet_maintenance.schemas.maintenance_record import MaintenanceRecordRead
from fleet_maintenance.services.maintenance_plan_service import serialize_plan_ref
from fleet_maintenance.services.maintenance_record_service import maintenance_record_service
from fleet_maintenance.services.mileage_service import mileage_service
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.dates import as_utc, isoformat
from fleet_maintenance.utils.exceptions import (
    NotFoundException, DuplicateEntryException, EquipmentHasRecordsException,
)


def _serialize(e: Equipment) -> dict:
    return {
        "id":                  e.id,
        "type":                e.type,
        "license_plate":       e.licensePlate,
        "code":                e.code,
        "maintenance_plan_id": e.maintenancePlanId,
        "maintenance_plan":    serialize_plan_ref(e.maintenance_plan),
        "created_at":          isoformat(e.createdAt),
        "updated_at":          isoformat(e.updatedAt),
    }


def _serialize_pending(m: MaintenanceRecord) -> dict:
    t = m.maintenance_type
    return {
        "id":               m.id,
        "start_datetime":   isoformat(as_utc(m.startDatetime)),
        "end_datetime":     isoformat(as_utc(m.endDatetime)),
        "observations":     m.observations,
        "maintenance_type": {"id": t.id, "type": t.type, "path": t.path} if t else None,
    }


def _matches(summaries: list[tuple], data: EquipmentWithRecordsRequest) -> bool:
    """An equipment passes when one of its records satisfies every active filter."""
    if not data.by_status and not data.by_priority:
        return True
    for status, priority in summaries:
        if data.by_status and status not in data.by_status:
            continue
        if data.by_priority and priority not in data.by_priority:
            continue
        return True
    return False


def _sort_value(created_at, summaries: list[tuple], by: str):
    if by == "priority":
        return max((PRIORITY_RANK[p] for _, p in summaries), default=-1)
    if by == "status":
        return max((STATUS_RANK[s] for s, _ in summaries), default=-1)
    return as_utc(created_at)


def _record_summaries(db: Session, user_id: str) -> dict[str, list[tuple]]:
    """
    (status, priority) of every record of the user, grouped by equipment.
    Reads three columns per record and per activity; nothing else is loaded.
    """
    activities = defaultdict(list)
    for record_id, status, priority in (
        db.query(MaintenanceActivity.maintenanceRecordId, MaintenanceActivity.status, MaintenanceActivity.priority)
        .join(MaintenanceRecord, MaintenanceRecord.id == MaintenanceActivity.maintenanceRecordId)
        .filter(MaintenanceRecord.userId == user_id)
    ):
        activities[record_id].append((status, priority))

    summaries = defaultdict(list)
    for record_id, equipment_id, end in (
        db.query(MaintenanceRecord.id, MaintenanceRecord.equipmentId, MaintenanceRecord.endDatetime)
        .filter(MaintenanceRecord.userId == user_id)
    ):
        rows = activities.get(record_id, [])
        summaries[equipment_id].append((
            record_status((s for s, _ in rows), end is not None),
            record_priority(p for _, p in rows),
        ))
    return summaries


class EquipmentService:

    def _get(self, db: Session, equipment_id: str, user_id: str) -> Equipment:
        e = (db.query(Equipment)
             .options(selectinload(Equipment.maintenance_plan))
             .filter(Equipment.id == equipment_id, Equipment.userId == user_id)
             .first())
        if not e:
            raise NotFoundException("Equipment")
        return e

    def _check_unique(self, db: Session, user_id: str, plate: str | None, code: str | None,
                      exclude_id: str | None = None) -> None:
        q = db.query(Equipment).filter(Equipment.userId == user_id)
        if exclude_id:
            q = q.filter(Equipment.id != exclude_id)
        if plate and q.filter(Equipment.licensePlate == plate).first():
            raise DuplicateEntryException("License plate already registered", field="license_plate")
        if code and q.filter(Equipment.code == code).first():
            raise DuplicateEntryException("Equipment code already registered", field="code")

    def _check_plan(self, db: Session, user_id: str, plan_id: str | None) -> None:
        if plan_id and not db.query(MaintenancePlan).filter(
                MaintenancePlan.id == plan_id, MaintenancePlan.userId == user_id).first():
            raise NotFoundException("Maintenance plan")

    def _has_records(self, db: Session, equipment_id: str) -> bool:
        return bool(db.query(MaintenanceRecord).filter(MaintenanceRecord.equipmentId == equipment_id).first()
                    or db.query(MileageRecord).filter(MileageRecord.equipmentId == equipment_id).first())

    def list_equipments(
        self, db: Session, user_id: str, limit: int, offset: int, search: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(Equipment).filter(Equipment.userId == user_id)
        if search:
            kw = f"%{search}%"
            q = q.filter(or_(
                Equipment.licensePlate.ilike(kw),
                Equipment.code.ilike(kw),
                Equipment.type.ilike(kw),
            ))
        total = q.count()
        q = (q.options(selectinload(Equipment.maintenance_plan))
             .order_by(Equipment.createdAt.desc(), Equipment.code)
             .offset(offset))
        if limit > 0:
            q = q.limit(limit)
        return [_serialize(e) for e in q.all()], total

    def get_equipment(self, db: Session, equipment_id: str, user_id: str) -> dict:
        return _serialize(self._get(db, equipment_id, user_id))

    def has_records(self, db: Session, equipment_id: str, user_id: str) -> bool:
        """True while maintenance or mileage records point at the equipment."""
        return self._has_records(db, self._get(db, equipment_id, user_id).id)

    def create_equipment(self, db: Session, data: EquipmentCreateRequest, user_id: str) -> dict:
        self._check_unique(db, user_id, data.license_plate, data.code)
        self._check_plan(db, user_id, data.maintenance_plan_id)

        e = Equipment(type=data.type, licensePlate=data.license_plate, code=data.code,
                      maintenancePlanId=data.maintenance_plan_id, userId=user_id)
        db.add(e)
        db.flush()
        log_action(db, user_id, "CREATE", "Equipment", e.id,
                   f"Created equipment {e.licensePlate} ({e.type}, code {e.code})")
        db.commit()
        db.refresh(e)
        return _serialize(e)

    def update_equipment(self, db: Session, equipment_id: str, data: EquipmentUpdateRequest, user_id: str) -> dict:
        e = self._get(db, equipment_id, user_id)
        plate = data.license_plate if data.license_plate and data.license_plate != e.licensePlate else None
        code = data.code if data.code and data.code != e.code else None
        self._check_unique(db, user_id, plate, code, exclude_id=equipment_id)

        if data.type:  e.type         = data.type.strip()
        if plate:      e.licensePlate = plate
        if code:       e.code         = code.strip()
        # an explicit null detaches the plan; leaving the key out keeps it
        if "maintenance_plan_id" in data.model_fields_set:
            self._check_plan(db, user_id, data.maintenance_plan_id)
            e.maintenancePlanId = data.maintenance_plan_id

        log_action(db, user_id, "UPDATE", "Equipment", e.id, f"Updated equipment {e.licensePlate}")
        db.commit()
        db.refresh(e)
        return _serialize(e)

    def delete_equipment(self, db: Session, equipment_id: str, user_id: str) -> dict:
        e = self._get(db, equipment_id, user_id)
        if self._has_records(db, equipment_id):
            raise EquipmentHasRecordsException()

        log_action(db, user_id, "DELETE", "Equipment", equipment_id, f"Deleted equipment {e.licensePlate}")
        db.delete(e)
        db.commit()
        return {"id": equipment_id}

    # ─── Aggregates ───────────────────────────────────────────────────────────
    def list_with_records(self, db: Session, user_id: str, data: EquipmentWithRecordsRequest) -> dict:
        """
        Equipment page with nested maintenance and mileage pages.

        Filters select equipments that own at least one matching record; the
        nested pages themselves stay unfiltered so incremental fetches by
        equipment line up with them. maintenance_count covers the records
        returned in the nested page.

        Ordering and filtering run over (id, created_at) of every equipment of
        the user plus, when a filter or a derived sort key is asked for, the
        status and priority columns of their records and activities. Full rows
        and nested pages are loaded for the requested page only.
        """
        derived = bool(data.by_status or data.by_priority) or data.sort_by.by != "created_at"
        summaries = _record_summaries(db, user_id) if derived else {}

        rows = [
            (equipment_id, created_at, summaries.get(equipment_id, []))
            for equipment_id, created_at in
            db.query(Equipment.id, Equipment.createdAt).filter(Equipment.userId == user_id)
        ]
        rows = [row for row in rows if _matches(row[2], data)]

        # Stable sorts: newest first as the tie-break, then the requested key
        rows.sort(key=lambda row: as_utc(row[1]), reverse=True)
        rows.sort(key=lambda row: _sort_value(row[1], row[2], data.sort_by.by),
                  reverse=data.sort_by.order == "desc")

        page_ids = [row[0] for row in slice_page(rows, data.limit, data.offset)]
        loaded = {e.id: e for e in (db.query(Equipment)
                                    .options(selectinload(Equipment.maintenance_plan))
                                    .filter(Equipment.id.in_(page_ids))
                                    .all())} if page_ids else {}
        items = [self._aggregate(db, user_id, loaded[i], data) for i in page_ids]
        return page_payload(items, len(rows), data.limit, data.offset)

    def _aggregate(self, db: Session, user_id: str, e: Equipment, data: EquipmentWithRecordsRequest) -> dict:
        record_page, record_total = maintenance_record_service.list_by_equipment(
            db, user_id, e.id, data.maintenance_limit, data.maintenance_offset)
        mileage_page, mileage_total = mileage_service.list_by_equipment(
            db, user_id, e.id, data.mileage_limit, data.mileage_offset)
        count = compute_maintenance_count(MaintenanceRecordRead.model_validate(r) for r in record_page)

        return {
            **_serialize(e),
            "maintenance_records": page_payload(record_page, record_total,
                                                data.maintenance_limit, data.maintenance_offset),
            "mileage_records":     page_payload(mileage_page, mileage_total,
                                                data.mileage_limit, data.mileage_offset),
            "maintenance_count":   count.model_dump(),
        }

    def list_with_pending_records(
        self, db: Session, user_id: str, limit: int, offset: int,
    ) -> tuple[list[dict], int]:
        """Equipments with at least one open record (no end_datetime), each with those records."""
        q = db.query(Equipment).filter(
            Equipment.userId == user_id,
            Equipment.maintenance_records.any(MaintenanceRecord.endDatetime.is_(None)),
        )
        total = q.count()
        q = (q.options(selectinload(Equipment.maintenance_plan))
             .order_by(Equipment.createdAt.desc(), Equipment.code)
             .offset(offset))
        if limit > 0:
            q = q.limit(limit)
        equipments = q.all()

        pending = defaultdict(list)
        if equipments:
            for m in (db.query(MaintenanceRecord)
                      .options(selectinload(MaintenanceRecord.maintenance_type))
                      .filter(MaintenanceRecord.equipmentId.in_([e.id for e in equipments]),
                              MaintenanceRecord.endDatetime.is_(None))
                      .order_by(MaintenanceRecord.startDatetime.desc(), MaintenanceRecord.id.desc())):
                pending[m.equipmentId].append(_serialize_pending(m))

        return [{**_serialize(e), "pending_records": pending[e.id]} for e in equipments], total


equipment_service = EquipmentService()
