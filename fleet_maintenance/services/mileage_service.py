import logging
from datetime import date

from sqlalchemy.orm import Session

from fleet_maintenance.models.equipment import Equipment
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.mileage_record import MileageRecord
from fleet_maintenance.schemas.mileage import (
    MileageRecordCreateRequest, MileageRecordUpdateRequest, MileageDateRangeRequest,
)
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.dates import isoformat
from fleet_maintenance.utils.exceptions import NotFoundException, MileageDateTakenException

logger = logging.getLogger(__name__)


def serialize_mileage(r: MileageRecord) -> dict:
    return {
        "id":           r.id,
        "equipment_id": r.equipmentId,
        "record_date":  r.recordDate.isoformat(),
        "kilometers":   r.kilometers,
        "created_at":   isoformat(r.createdAt),
        "updated_at":   isoformat(r.updatedAt),
    }


class MileageService:

    def _equipment(self, db: Session, equipment_id: str, user_id: str) -> Equipment:
        e = db.query(Equipment).filter(Equipment.id == equipment_id, Equipment.userId == user_id).first()
        if not e: raise NotFoundException("Equipment")
        return e

    def _get(self, db: Session, record_id: str, user_id: str) -> MileageRecord:
        r = db.query(MileageRecord).filter(MileageRecord.id == record_id, MileageRecord.userId == user_id).first()
        if not r: raise NotFoundException("Mileage record")
        return r

    def find_or_create(
        self, db: Session, user_id: str, equipment_id: str, record_date: date, kilometers: int,
    ) -> tuple[MileageRecord, bool]:
        """
        One reading per equipment per day: an existing reading for the date is
        updated in place, otherwise a new one is added. Flushes, never commits.
        """
        existing = db.query(MileageRecord).filter(
            MileageRecord.equipmentId == equipment_id,
            MileageRecord.recordDate == record_date,
        ).first()
        if existing:
            if existing.kilometers != kilometers:
                logger.info(f"Mileage for {equipment_id} on {record_date} updated "
                            f"{existing.kilometers} -> {kilometers} km")
                existing.kilometers = kilometers
            db.flush()
            return existing, False

        record = MileageRecord(
            equipmentId=equipment_id,
            recordDate=record_date,
            kilometers=kilometers,
            userId=user_id,
        )
        db.add(record)
        db.flush()
        return record, True

    def record_mileage(self, db: Session, data: MileageRecordCreateRequest, user_id: str) -> tuple[dict, bool]:
        equipment = self._equipment(db, data.equipment_id, user_id)
        record, created = self.find_or_create(db, user_id, equipment.id, data.record_date, data.kilometers)
        log_action(db, user_id, "CREATE" if created else "UPDATE", "MileageRecord", record.id,
                   f"{data.kilometers} km on {data.record_date} for equipment {equipment.licensePlate}")
        db.commit()
        db.refresh(record)
        return serialize_mileage(record), created

    def list_by_equipment(
        self, db: Session, user_id: str, equipment_id: str, limit: int, offset: int,
    ) -> tuple[list[dict], int]:
        self._equipment(db, equipment_id, user_id)
        q = db.query(MileageRecord).filter(MileageRecord.equipmentId == equipment_id)
        total = q.count()
        q = q.order_by(MileageRecord.recordDate.desc(), MileageRecord.id.desc()).offset(offset)
        if limit > 0:
            q = q.limit(limit)
        return [serialize_mileage(r) for r in q.all()], total

    def list_by_date_range(self, db: Session, user_id: str, data: MileageDateRangeRequest) -> tuple[list[dict], int]:
        q = db.query(MileageRecord).filter(
            MileageRecord.userId == user_id,
            MileageRecord.recordDate >= data.start_date,
            MileageRecord.recordDate <= data.end_date,
        )
        if data.equipment_id:
            q = q.filter(MileageRecord.equipmentId == data.equipment_id)
        total = q.count()
        q = q.order_by(MileageRecord.recordDate.desc(), MileageRecord.id.desc()).offset(data.offset)
        if data.limit > 0:
            q = q.limit(data.limit)
        return [serialize_mileage(r) for r in q.all()], total

    def update_record(self, db: Session, record_id: str, data: MileageRecordUpdateRequest, user_id: str) -> dict:
        r = self._get(db, record_id, user_id)

        if data.record_date is not None and data.record_date != r.recordDate:
            clash = db.query(MileageRecord).filter(
                MileageRecord.equipmentId == r.equipmentId,
                MileageRecord.recordDate == data.record_date,
                MileageRecord.id != record_id,
            ).first()
            if clash:
                raise MileageDateTakenException()
            r.recordDate = data.record_date
        if data.kilometers is not None: r.kilometers = data.kilometers

        log_action(db, user_id, "UPDATE", "MileageRecord", r.id, f"Updated mileage record {r.id}")
        db.commit()
        db.refresh(r)
        return serialize_mileage(r)

    def delete_record(self, db: Session, record_id: str, user_id: str) -> dict:
        r = self._get(db, record_id, user_id)
        # Detach maintenance records that referenced this reading
        db.query(MaintenanceRecord).filter(MaintenanceRecord.mileageRecordId == record_id).update(
            {MaintenanceRecord.mileageRecordId: None}, synchronize_session="fetch")
        log_action(db, user_id, "DELETE", "MileageRecord", record_id, f"Deleted mileage record {record_id}")
        db.delete(r)
        db.commit()
        return {"id": record_id, "equipment_id": r.equipmentId}


mileage_service = MileageService()
