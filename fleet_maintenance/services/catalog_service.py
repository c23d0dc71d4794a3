from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from fleet_maintenance.core.associations import resolve_allowed_activities
from fleet_maintenance.models.activity import Activity
from fleet_maintenance.models.maintenance_activity import MaintenanceActivity
from fleet_maintenance.models.maintenance_spare_part import MaintenanceSparePart
from fleet_maintenance.models.maintenance_type import MaintenanceType
from fleet_maintenance.models.spare_part import SparePart
from fleet_maintenance.schemas.catalog import (
    ActivityCreateRequest, ActivityUpdateRequest, SparePartCreateRequest, SparePartUpdateRequest,
)
from fleet_maintenance.schemas.common import slice_page
from fleet_maintenance.services.maintenance_record_service import serialize_activity, serialize_spare_part
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.exceptions import (
    NotFoundException, DuplicateEntryException, ResourceInUseException,
)


class ActivityService:

    def _get(self, db: Session, activity_id: str, user_id: str) -> Activity:
        a = (db.query(Activity)
             .options(selectinload(Activity.maintenance_types))
             .filter(Activity.id == activity_id, Activity.userId == user_id)
             .first())
        if not a: raise NotFoundException("Activity")
        return a

    def _types(self, db: Session, user_id: str, type_ids: list[str]) -> list[MaintenanceType]:
        found = db.query(MaintenanceType).filter(
            MaintenanceType.userId == user_id, MaintenanceType.id.in_(type_ids)).all()
        if len(found) != len(type_ids):
            raise NotFoundException("Maintenance type")
        return found

    def list_activities(
        self, db: Session, user_id: str, limit: int, offset: int, maintenance_type_id: str | None,
    ) -> tuple[list[dict], int]:
        items = [serialize_activity(a) for a in (
            db.query(Activity)
            .options(selectinload(Activity.maintenance_types))
            .filter(Activity.userId == user_id)
            .order_by(Activity.name)
            .all()
        )]
        if maintenance_type_id:
            items = resolve_allowed_activities(maintenance_type_id, items)
        return slice_page(items, limit, offset), len(items)

    def get_activity(self, db: Session, activity_id: str, user_id: str) -> dict:
        return serialize_activity(self._get(db, activity_id, user_id))

    def create_activity(self, db: Session, data: ActivityCreateRequest, user_id: str) -> dict:
        types = self._types(db, user_id, data.maintenance_type_ids)
        a = Activity(name=data.name, description=data.description, userId=user_id)
        a.maintenance_types = types
        db.add(a)
        db.flush()
        log_action(db, user_id, "CREATE", "Activity", a.id,
                   f"Created activity '{a.name}' for {len(types)} maintenance type(s)")
        db.commit()
        db.refresh(a)
        return serialize_activity(a)

    def update_activity(self, db: Session, activity_id: str, data: ActivityUpdateRequest, user_id: str) -> dict:
        a = self._get(db, activity_id, user_id)

        if data.name is not None and data.name.strip(): a.name = data.name.strip()
        if data.description is not None:                 a.description = data.description
        if data.maintenance_type_ids is not None:
            a.maintenance_types = self._types(db, user_id, data.maintenance_type_ids)

        log_action(db, user_id, "UPDATE", "Activity", a.id, f"Updated activity '{a.name}'")
        db.commit()
        db.refresh(a)
        return serialize_activity(a)

    def delete_activity(self, db: Session, activity_id: str, user_id: str) -> dict:
        a = self._get(db, activity_id, user_id)
        if db.query(MaintenanceActivity).filter(MaintenanceActivity.activityId == activity_id).first():
            raise ResourceInUseException("Activity")
        log_action(db, user_id, "DELETE", "Activity", activity_id, f"Deleted activity '{a.name}'")
        db.delete(a)
        db.commit()
        return {"id": activity_id}


class SparePartService:

    def _get(self, db: Session, part_id: str, user_id: str) -> SparePart:
        p = db.query(SparePart).filter(SparePart.id == part_id, SparePart.userId == user_id).first()
        if not p: raise NotFoundException("Spare part")
        return p

    def _check_code(self, db: Session, user_id: str, factory_code: str, exclude_id: str | None = None) -> None:
        q = db.query(SparePart).filter(SparePart.userId == user_id, SparePart.factoryCode == factory_code)
        if exclude_id:
            q = q.filter(SparePart.id != exclude_id)
        if q.first():
            raise DuplicateEntryException("Factory code already registered", field="factory_code")

    def list_spare_parts(
        self, db: Session, user_id: str, limit: int, offset: int, search: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(SparePart).filter(SparePart.userId == user_id)
        if search:
            kw = f"%{search}%"
            q = q.filter(or_(SparePart.name.ilike(kw), SparePart.factoryCode.ilike(kw)))
        total = q.count()
        q = q.order_by(SparePart.name).offset(offset)
        if limit > 0:
            q = q.limit(limit)
        return [serialize_spare_part(p) for p in q.all()], total

    def get_spare_part(self, db: Session, part_id: str, user_id: str) -> dict:
        return serialize_spare_part(self._get(db, part_id, user_id))

    def create_spare_part(self, db: Session, data: SparePartCreateRequest, user_id: str) -> dict:
        self._check_code(db, user_id, data.factory_code)
        p = SparePart(
            factoryCode=data.factory_code,
            name=data.name,
            description=data.description,
            price=data.price,
            imageUrl=data.image_url,
            userId=user_id,
        )
        db.add(p)
        db.flush()
        log_action(db, user_id, "CREATE", "SparePart", p.id, f"Created spare part {p.factoryCode} ({p.name})")
        db.commit()
        db.refresh(p)
        return serialize_spare_part(p)

    def update_spare_part(self, db: Session, part_id: str, data: SparePartUpdateRequest, user_id: str) -> dict:
        p = self._get(db, part_id, user_id)
        if data.factory_code and data.factory_code != p.factoryCode:
            self._check_code(db, user_id, data.factory_code, exclude_id=part_id)
            p.factoryCode = data.factory_code

        if data.name:                    p.name        = data.name
        if data.description is not None: p.description = data.description
        if data.price is not None:       p.price       = data.price
        if data.image_url is not None:   p.imageUrl    = data.image_url

        log_action(db, user_id, "UPDATE", "SparePart", p.id, f"Updated spare part {p.factoryCode}")
        db.commit()
        db.refresh(p)
        return serialize_spare_part(p)

    def delete_spare_part(self, db: Session, part_id: str, user_id: str) -> dict:
        p = self._get(db, part_id, user_id)
        if db.query(MaintenanceSparePart).filter(MaintenanceSparePart.sparePartId == part_id).first():
            raise ResourceInUseException("Spare part")
        log_action(db, user_id, "DELETE", "SparePart", part_id, f"Deleted spare part {p.factoryCode}")
        db.delete(p)
        db.commit()
        return {"id": part_id}


activity_service = ActivityService()
spare_part_service = SparePartService()
