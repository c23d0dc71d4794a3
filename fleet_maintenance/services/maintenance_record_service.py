from sqlalchemy.orm import Session, selectinload

from fleet_maintenance.core.associations import (
    validate_activity_bulk, validate_spare_part_bulk, ensure_type_compatible,
)
from fleet_maintenance.models.activity import Activity
from fleet_maintenance.models.equipment import Equipment
from fleet_maintenance.models.maintenance_activity import MaintenanceActivity
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.maintenance_spare_part import MaintenanceSparePart
from fleet_maintenance.models.maintenance_type import MaintenanceType
from fleet_maintenance.models.spare_part import SparePart
from fleet_maintenance.schemas.maintenance_record import (
    MaintenanceRecordCreateRequest, MaintenanceRecordUpdateRequest, MaintenanceRecordCompleteRequest,
)
from fleet_maintenance.services.mileage_service import mileage_service
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.dates import as_utc, isoformat, utcnow
from fleet_maintenance.utils.exceptions import (
    NotFoundException, InvalidDateRangeException, AlreadyCompletedException,
)


# ─── Serializers (shared with the equipment aggregate) ────────────────────────
def serialize_activity(a: Activity) -> dict:
    return {
        "id":          a.id,
        "name":        a.name,
        "description": a.description,
        "maintenance_types": [
            {"id": t.id, "type": t.type, "level": t.level, "path": t.path}
            for t in a.maintenance_types
        ],
        "created_at":  isoformat(a.createdAt),
        "updated_at":  isoformat(a.updatedAt),
    }


def serialize_spare_part(p: SparePart) -> dict:
    return {
        "id":           p.id,
        "factory_code": p.factoryCode,
        "name":         p.name,
        "description":  p.description,
        "price":        float(p.price) if p.price is not None else 0.0,
        "image_url":    p.imageUrl,
        "created_at":   isoformat(p.createdAt),
        "updated_at":   isoformat(p.updatedAt),
    }


def serialize_maintenance_activity(ma: MaintenanceActivity) -> dict:
    return {
        "id":                    ma.id,
        "maintenance_record_id": ma.maintenanceRecordId,
        "activity_id":           ma.activityId,
        "status":                ma.status.value,
        "priority":              ma.priority.value,
        "observations":          ma.observations,
        "created_at":            isoformat(ma.createdAt),
        "updated_at":            isoformat(ma.updatedAt),
        "activity":              serialize_activity(ma.activity) if ma.activity else None,
    }


def serialize_maintenance_spare_part(ms: MaintenanceSparePart) -> dict:
    return {
        "id":                    ms.id,
        "maintenance_record_id": ms.maintenanceRecordId,
        "spare_part_id":         ms.sparePartId,
        "quantity":              ms.quantity,
        "unit_price":            float(ms.unitPrice) if ms.unitPrice is not None else None,
        "created_at":            isoformat(ms.createdAt),
        "spare_part":            serialize_spare_part(ms.spare_part) if ms.spare_part else None,
    }


def serialize_record(m: MaintenanceRecord) -> dict:
    return {
        "id":                  m.id,
        "equipment_id":        m.equipmentId,
        "maintenance_type_id": m.maintenanceTypeId,
        "start_datetime":      isoformat(as_utc(m.startDatetime)),
        "end_datetime":        isoformat(as_utc(m.endDatetime)),
        "observations":        m.observations,
        "mileage_record_id":   m.mileageRecordId,
        "created_at":          isoformat(m.createdAt),
        "updated_at":          isoformat(m.updatedAt),
        "activities":          [serialize_maintenance_activity(a) for a in m.activities],
        "spare_parts":         [serialize_maintenance_spare_part(s) for s in m.spare_parts],
    }


RECORD_LOAD_OPTIONS = (
    selectinload(MaintenanceRecord.activities)
    .selectinload(MaintenanceActivity.activity)
    .selectinload(Activity.maintenance_types),
    selectinload(MaintenanceRecord.spare_parts).selectinload(MaintenanceSparePart.spare_part),
)


class MaintenanceRecordService:

    def _get(self, db: Session, record_id: str, user_id: str) -> MaintenanceRecord:
        m = (db.query(MaintenanceRecord)
             .options(*RECORD_LOAD_OPTIONS)
             .filter(MaintenanceRecord.id == record_id, MaintenanceRecord.userId == user_id)
             .first())
        if not m: raise NotFoundException("Maintenance record")
        return m

    def _activities(self, db: Session, user_id: str, activity_ids: list[str]) -> list[Activity]:
        if not activity_ids:
            return []
        found = (db.query(Activity)
                 .options(selectinload(Activity.maintenance_types))
                 .filter(Activity.userId == user_id, Activity.id.in_(activity_ids))
                 .all())
        if len(found) != len(set(activity_ids)):
            raise NotFoundException("Activity")
        return found

    def _check_type(self, db: Session, user_id: str, type_id: str) -> MaintenanceType:
        t = db.query(MaintenanceType).filter(
            MaintenanceType.id == type_id, MaintenanceType.userId == user_id).first()
        if not t: raise NotFoundException("Maintenance type")
        return t

    def list_by_equipment(
        self, db: Session, user_id: str, equipment_id: str, limit: int, offset: int,
    ) -> tuple[list[dict], int]:
        if not db.query(Equipment).filter(Equipment.id == equipment_id, Equipment.userId == user_id).first():
            raise NotFoundException("Equipment")

        q = db.query(MaintenanceRecord).filter(MaintenanceRecord.equipmentId == equipment_id)
        total = q.count()
        q = (q.options(*RECORD_LOAD_OPTIONS)
             .order_by(MaintenanceRecord.startDatetime.desc(), MaintenanceRecord.id.desc())
             .offset(offset))
        if limit > 0:
            q = q.limit(limit)
        return [serialize_record(m) for m in q.all()], total

    def get_record(self, db: Session, record_id: str, user_id: str) -> dict:
        return serialize_record(self._get(db, record_id, user_id))

    def create_record(self, db: Session, data: MaintenanceRecordCreateRequest, user_id: str) -> dict:
        # All association checks run before anything is written
        activity_ids = validate_activity_bulk(data.activities, require_items=False)
        part_ids = validate_spare_part_bulk(data.spare_parts, require_items=False)

        equipment = db.query(Equipment).filter(
            Equipment.id == data.equipment_id, Equipment.userId == user_id).first()
        if not equipment: raise NotFoundException("Equipment")
        self._check_type(db, user_id, data.maintenance_type_id)

        activities = self._activities(db, user_id, activity_ids)
        ensure_type_compatible(data.maintenance_type_id, activity_ids, activities)
        if part_ids and db.query(SparePart).filter(
                SparePart.userId == user_id, SparePart.id.in_(part_ids)).count() != len(part_ids):
            raise NotFoundException("Spare part")

        mileage_id = None
        if data.mileage_record:
            mileage, _ = mileage_service.find_or_create(
                db, user_id, equipment.id, data.mileage_record.record_date, data.mileage_record.kilometers)
            mileage_id = mileage.id

        record = MaintenanceRecord(
            equipmentId=equipment.id,
            maintenanceTypeId=data.maintenance_type_id,
            mileageRecordId=mileage_id,
            startDatetime=data.start_datetime,
            endDatetime=data.end_datetime,
            observations=data.observations,
            userId=user_id,
        )
        record.activities = [
            MaintenanceActivity(activityId=a.activity_id, status=a.status, priority=a.priority,
                                observations=a.observations)
            for a in data.activities
        ]
        record.spare_parts = [
            MaintenanceSparePart(sparePartId=s.spare_part_id, quantity=s.quantity, unitPrice=s.unit_price)
            for s in data.spare_parts
        ]
        db.add(record)
        db.flush()
        log_action(db, user_id, "CREATE", "MaintenanceRecord", record.id,
                   f"Maintenance started for equipment {equipment.licensePlate} "
                   f"({len(record.activities)} activities, {len(record.spare_parts)} spare parts)")
        db.commit()
        return self.get_record(db, record.id, user_id)

    def update_record(self, db: Session, record_id: str, data: MaintenanceRecordUpdateRequest, user_id: str) -> dict:
        m = self._get(db, record_id, user_id)

        start = data.start_datetime or as_utc(m.startDatetime)
        end = data.end_datetime if data.end_datetime is not None else as_utc(m.endDatetime)
        if end is not None and end <= start:
            raise InvalidDateRangeException()

        if data.maintenance_type_id and data.maintenance_type_id != m.maintenanceTypeId:
            self._check_type(db, user_id, data.maintenance_type_id)
            # Changing the type must not orphan activities already on the record
            ensure_type_compatible(
                data.maintenance_type_id,
                [a.activityId for a in m.activities],
                [a.activity for a in m.activities],
            )
            m.maintenanceTypeId = data.maintenance_type_id

        if data.start_datetime is not None: m.startDatetime = data.start_datetime
        if data.end_datetime is not None:   m.endDatetime   = data.end_datetime
        if data.observations is not None:   m.observations  = data.observations

        log_action(db, user_id, "UPDATE", "MaintenanceRecord", m.id, f"Updated maintenance record {m.id}")
        db.commit()
        return self.get_record(db, m.id, user_id)

    def complete_record(
        self, db: Session, record_id: str, data: MaintenanceRecordCompleteRequest, user_id: str,
    ) -> dict:
        m = self._get(db, record_id, user_id)
        if m.endDatetime is not None:
            raise AlreadyCompletedException()

        end = data.end_datetime or utcnow()
        if end <= as_utc(m.startDatetime):
            raise InvalidDateRangeException()

        m.endDatetime = end
        log_action(db, user_id, "COMPLETE", "MaintenanceRecord", m.id,
                   f"Maintenance completed for equipment {m.equipment.licensePlate}")
        db.commit()
        return self.get_record(db, m.id, user_id)

    def delete_record(self, db: Session, record_id: str, user_id: str) -> dict:
        m = self._get(db, record_id, user_id)
        log_action(db, user_id, "DELETE", "MaintenanceRecord", record_id,
                   f"Deleted maintenance record {record_id}")
        db.delete(m)
        db.commit()
        return {"id": record_id, "equipment_id": m.equipmentId}


maintenance_record_service = MaintenanceRecordService()
