import logging

from sqlalchemy.orm import Session, selectinload

from fleet_maintenance.core.associations import (
    validate_single, validate_spare_part, validate_activity_bulk, validate_spare_part_bulk,
    ensure_type_compatible,
)
from fleet_maintenance.models.activity import Activity
from fleet_maintenance.models.maintenance_activity import MaintenanceActivity
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.maintenance_spare_part import MaintenanceSparePart
from fleet_maintenance.models.spare_part import SparePart
from fleet_maintenance.schemas.maintenance_record import (
    MaintenanceActivityCreateRequest, MaintenanceActivityUpdateRequest,
    MaintenanceSparePartCreateRequest, MaintenanceSparePartUpdateRequest,
    BulkActivitiesRequest, BulkSparePartsRequest,
)
from fleet_maintenance.services.maintenance_record_service import (
    serialize_maintenance_activity, serialize_maintenance_spare_part,
)
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.dates import isoformat
from fleet_maintenance.utils.exceptions import NotFoundException

logger = logging.getLogger(__name__)


def _processed(rows: list) -> list[dict]:
    return [{"id": r.id, "created_at": isoformat(r.createdAt)} for r in rows]


class AssociationService:
    """Activities and spare parts attached to a maintenance record."""

    def _record(self, db: Session, record_id: str, user_id: str) -> MaintenanceRecord:
        m = (db.query(MaintenanceRecord)
             .options(selectinload(MaintenanceRecord.activities), selectinload(MaintenanceRecord.spare_parts))
             .filter(MaintenanceRecord.id == record_id, MaintenanceRecord.userId == user_id)
             .first())
        if not m: raise NotFoundException("Maintenance record")
        return m

    def _activities(self, db: Session, user_id: str, activity_ids: list[str]) -> list[Activity]:
        found = (db.query(Activity)
                 .options(selectinload(Activity.maintenance_types))
                 .filter(Activity.userId == user_id, Activity.id.in_(activity_ids))
                 .all())
        if len(found) != len(activity_ids):
            raise NotFoundException("Activity")
        return found

    def _check_parts(self, db: Session, user_id: str, part_ids: list[str]) -> None:
        count = db.query(SparePart).filter(SparePart.userId == user_id, SparePart.id.in_(part_ids)).count()
        if count != len(part_ids):
            raise NotFoundException("Spare part")

    # ─── Activities ───────────────────────────────────────────────────────────
    def add_activity(self, db: Session, data: MaintenanceActivityCreateRequest, user_id: str) -> dict:
        m = self._record(db, data.maintenance_record_id, user_id)
        validate_single(m.id, data.activity_id,
                        [{"maintenance_record_id": a.maintenanceRecordId, "activity_id": a.activityId}
                         for a in m.activities],
                        id_field="activity_id", entity="Activity")
        activities = self._activities(db, user_id, [data.activity_id])
        ensure_type_compatible(m.maintenanceTypeId, [data.activity_id], activities)

        row = MaintenanceActivity(
            maintenanceRecordId=m.id,
            activityId=data.activity_id,
            status=data.status,
            priority=data.priority,
            observations=data.observations,
        )
        db.add(row)
        db.flush()
        log_action(db, user_id, "CREATE", "MaintenanceActivity", row.id,
                   f"Added activity '{activities[0].name}' to maintenance record {m.id}")
        db.commit()
        db.refresh(row)
        return serialize_maintenance_activity(row)

    def update_activity(self, db: Session, row_id: str, data: MaintenanceActivityUpdateRequest, user_id: str) -> dict:
        row = (db.query(MaintenanceActivity)
               .join(MaintenanceActivity.maintenance_record)
               .filter(MaintenanceActivity.id == row_id, MaintenanceRecord.userId == user_id)
               .first())
        if not row: raise NotFoundException("Maintenance activity")

        if data.status is not None:       row.status       = data.status
        if data.priority is not None:     row.priority     = data.priority
        if data.observations is not None: row.observations = data.observations

        log_action(db, user_id, "UPDATE", "MaintenanceActivity", row.id,
                   f"Activity {row.activityId} on record {row.maintenanceRecordId} is {row.status.value}")
        db.commit()
        db.refresh(row)
        return serialize_maintenance_activity(row)

    def remove_activity(self, db: Session, row_id: str, user_id: str) -> dict:
        row = (db.query(MaintenanceActivity)
               .join(MaintenanceActivity.maintenance_record)
               .filter(MaintenanceActivity.id == row_id, MaintenanceRecord.userId == user_id)
               .first())
        if not row: raise NotFoundException("Maintenance activity")
        log_action(db, user_id, "DELETE", "MaintenanceActivity", row_id,
                   f"Removed activity {row.activityId} from record {row.maintenanceRecordId}")
        db.delete(row)
        db.commit()
        return {"id": row_id, "maintenance_record_id": row.maintenanceRecordId}

    def replace_activities(self, db: Session, data: BulkActivitiesRequest, user_id: str) -> dict:
        """Replace the record's whole activity set in one transaction."""
        activity_ids = validate_activity_bulk(data.activities)
        m = self._record(db, data.maintenance_record_id, user_id)
        activities = self._activities(db, user_id, activity_ids)
        ensure_type_compatible(m.maintenanceTypeId, activity_ids, activities)

        # Flush removals first so the (record, activity) unique key is free again
        m.activities.clear()
        db.flush()
        rows = [
            MaintenanceActivity(
                maintenanceRecordId=m.id,
                activityId=item.activity_id,
                status=item.status,
                priority=item.priority,
                observations=item.observations,
            )
            for item in data.activities
        ]
        m.activities.extend(rows)
        db.flush()
        log_action(db, user_id, "BULK_REPLACE", "MaintenanceActivity", m.id,
                   f"Set {len(rows)} activities on maintenance record {m.id}")
        db.commit()
        for row in rows:
            db.refresh(row)
        logger.info(f"Replaced activities of maintenance record {m.id} ({len(rows)} item(s))")
        return {"maintenance_record_id": m.id, "processed_activities": _processed(rows)}

    # ─── Spare parts ──────────────────────────────────────────────────────────
    def add_spare_part(self, db: Session, data: MaintenanceSparePartCreateRequest, user_id: str) -> dict:
        validate_spare_part(data.quantity, data.unit_price)
        m = self._record(db, data.maintenance_record_id, user_id)
        validate_single(m.id, data.spare_part_id,
                        [{"maintenance_record_id": s.maintenanceRecordId, "spare_part_id": s.sparePartId}
                         for s in m.spare_parts],
                        id_field="spare_part_id", entity="Spare part")
        self._check_parts(db, user_id, [data.spare_part_id])

        row = MaintenanceSparePart(
            maintenanceRecordId=m.id,
            sparePartId=data.spare_part_id,
            quantity=data.quantity,
            unitPrice=data.unit_price,
        )
        db.add(row)
        db.flush()
        log_action(db, user_id, "CREATE", "MaintenanceSparePart", row.id,
                   f"Added {row.quantity} x spare part {row.sparePartId} to record {m.id}")
        db.commit()
        db.refresh(row)
        return serialize_maintenance_spare_part(row)

    def update_spare_part(
        self, db: Session, row_id: str, data: MaintenanceSparePartUpdateRequest, user_id: str,
    ) -> dict:
        row = (db.query(MaintenanceSparePart)
               .join(MaintenanceSparePart.maintenance_record)
               .filter(MaintenanceSparePart.id == row_id, MaintenanceRecord.userId == user_id)
               .first())
        if not row: raise NotFoundException("Maintenance spare part")

        quantity = data.quantity if data.quantity is not None else row.quantity
        unit_price = data.unit_price if data.unit_price is not None else row.unitPrice
        validate_spare_part(quantity, unit_price)
        row.quantity, row.unitPrice = quantity, unit_price

        log_action(db, user_id, "UPDATE", "MaintenanceSparePart", row.id,
                   f"Spare part {row.sparePartId} on record {row.maintenanceRecordId}: {quantity} unit(s)")
        db.commit()
        db.refresh(row)
        return serialize_maintenance_spare_part(row)

    def remove_spare_part(self, db: Session, row_id: str, user_id: str) -> dict:
        row = (db.query(MaintenanceSparePart)
               .join(MaintenanceSparePart.maintenance_record)
               .filter(MaintenanceSparePart.id == row_id, MaintenanceRecord.userId == user_id)
               .first())
        if not row: raise NotFoundException("Maintenance spare part")
        log_action(db, user_id, "DELETE", "MaintenanceSparePart", row_id,
                   f"Removed spare part {row.sparePartId} from record {row.maintenanceRecordId}")
        db.delete(row)
        db.commit()
        return {"id": row_id, "maintenance_record_id": row.maintenanceRecordId}

    def replace_spare_parts(self, db: Session, data: BulkSparePartsRequest, user_id: str) -> dict:
        """Replace the record's whole spare part set in one transaction."""
        part_ids = validate_spare_part_bulk(data.spare_parts)
        m = self._record(db, data.maintenance_record_id, user_id)
        self._check_parts(db, user_id, part_ids)

        m.spare_parts.clear()
        db.flush()
        rows = [
            MaintenanceSparePart(
                maintenanceRecordId=m.id,
                sparePartId=item.spare_part_id,
                quantity=item.quantity,
                unitPrice=item.unit_price,
            )
            for item in data.spare_parts
        ]
        m.spare_parts.extend(rows)
        db.flush()
        log_action(db, user_id, "BULK_REPLACE", "MaintenanceSparePart", m.id,
                   f"Set {len(rows)} spare parts on maintenance record {m.id}")
        db.commit()
        for row in rows:
            db.refresh(row)
        logger.info(f"Replaced spare parts of maintenance record {m.id} ({len(rows)} item(s))")
        return {"maintenance_record_id": m.id, "processed_spare_parts": _processed(rows)}


association_service = AssociationService()
