from collections import Counter

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from fleet_maintenance.models.equipment import Equipment
from fleet_maintenance.models.maintenance_plan import MaintenancePlan
from fleet_maintenance.models.maintenance_stage import MaintenanceStage
from fleet_maintenance.models.maintenance_type import MaintenanceType
from fleet_maintenance.schemas.maintenance_plan import (
    MaintenancePlanCreateRequest, MaintenancePlanUpdateRequest,
    MaintenanceStageCreateRequest, MaintenanceStageUpdateRequest, StageReorderRequest,
)
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.dates import isoformat
from fleet_maintenance.utils.exceptions import (
    NotFoundException, DuplicateEntryException, ResourceInUseException,
    DuplicateStageIndexException, InvalidStageOrderException,
)


def serialize_plan_ref(p: MaintenancePlan | None) -> dict | None:
    if p is None:
        return None
    return {"id": p.id, "name": p.name, "description": p.description}


def serialize_stage(s: MaintenanceStage) -> dict:
    t = s.maintenance_type
    return {
        "id":                  s.id,
        "maintenance_plan_id": s.maintenancePlanId,
        "maintenance_type_id": s.maintenanceTypeId,
        "stage_index":         s.stageIndex,
        "kilometers":          float(s.kilometers) if s.kilometers is not None else 0.0,
        "days":                float(s.days) if s.days is not None else 0.0,
        "maintenance_type":    {"id": t.id, "type": t.type, "path": t.path} if t else None,
        "created_at":          isoformat(s.createdAt),
        "updated_at":          isoformat(s.updatedAt),
    }


def _serialize_plan(p: MaintenancePlan) -> dict:
    return {
        "id":                     p.id,
        "name":                   p.name,
        "description":            p.description,
        "stage_count":            len(p.stages),
        "maintenance_type_count": len({s.maintenanceTypeId for s in p.stages}),
        "created_at":             isoformat(p.createdAt),
        "updated_at":             isoformat(p.updatedAt),
    }


PLAN_LOAD_OPTIONS = (
    selectinload(MaintenancePlan.stages).selectinload(MaintenanceStage.maintenance_type),
)


class MaintenancePlanService:

    def _get(self, db: Session, plan_id: str, user_id: str) -> MaintenancePlan:
        p = (db.query(MaintenancePlan)
             .options(*PLAN_LOAD_OPTIONS)
             .filter(MaintenancePlan.id == plan_id, MaintenancePlan.userId == user_id)
             .first())
        if not p: raise NotFoundException("Maintenance plan")
        return p

    def _check_name(self, db: Session, user_id: str, name: str, exclude_id: str | None = None) -> None:
        q = db.query(MaintenancePlan).filter(MaintenancePlan.userId == user_id, MaintenancePlan.name == name)
        if exclude_id:
            q = q.filter(MaintenancePlan.id != exclude_id)
        if q.first():
            raise DuplicateEntryException("A maintenance plan with this name already exists", field="name")

    def list_plans(
        self, db: Session, user_id: str, limit: int, offset: int, search: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(MaintenancePlan).filter(MaintenancePlan.userId == user_id)
        if search:
            kw = f"%{search}%"
            q = q.filter(or_(MaintenancePlan.name.ilike(kw), MaintenancePlan.description.ilike(kw)))
        total = q.count()
        q = q.options(*PLAN_LOAD_OPTIONS).order_by(MaintenancePlan.name).offset(offset)
        if limit > 0:
            q = q.limit(limit)
        return [_serialize_plan(p) for p in q.all()], total

    def list_with_stages(self, db: Session, user_id: str, include_empty: bool) -> list[dict]:
        """Every plan with its stages in stage order; plans without stages only when asked for."""
        plans = (db.query(MaintenancePlan)
                 .options(*PLAN_LOAD_OPTIONS)
                 .filter(MaintenancePlan.userId == user_id)
                 .order_by(MaintenancePlan.name)
                 .all())
        return [
            {**_serialize_plan(p), "stages": [serialize_stage(s) for s in p.stages]}
            for p in plans if p.stages or include_empty
        ]

    def get_plan(self, db: Session, plan_id: str, user_id: str) -> dict:
        p = self._get(db, plan_id, user_id)
        return {**_serialize_plan(p), "stages": [serialize_stage(s) for s in p.stages]}

    def create_plan(self, db: Session, data: MaintenancePlanCreateRequest, user_id: str) -> dict:
        self._check_name(db, user_id, data.name)
        p = MaintenancePlan(name=data.name, description=data.description, userId=user_id)
        db.add(p)
        db.flush()
        log_action(db, user_id, "CREATE", "MaintenancePlan", p.id, f"Created maintenance plan '{p.name}'")
        db.commit()
        return self.get_plan(db, p.id, user_id)

    def update_plan(self, db: Session, plan_id: str, data: MaintenancePlanUpdateRequest, user_id: str) -> dict:
        p = self._get(db, plan_id, user_id)
        if data.name is not None and data.name != p.name:
            self._check_name(db, user_id, data.name, exclude_id=plan_id)
            p.name = data.name
        if data.description is not None: p.description = data.description

        log_action(db, user_id, "UPDATE", "MaintenancePlan", p.id, f"Updated maintenance plan '{p.name}'")
        db.commit()
        return self.get_plan(db, plan_id, user_id)

    def _delete_check(self, db: Session, p: MaintenancePlan) -> dict:
        stage_count = len(p.stages)
        equipment_count = (db.query(func.count(Equipment.id))
                           .filter(Equipment.maintenancePlanId == p.id)
                           .scalar())

        reason = None
        if stage_count:
            reason = f"The plan has {stage_count} stage(s)"
        elif equipment_count:
            reason = f"The plan is assigned to {equipment_count} equipment(s)"
        return {
            "id":              p.id,
            "name":            p.name,
            "can_delete":      reason is None,
            "stage_count":     stage_count,
            "equipment_count": equipment_count,
            "blocking_reason": reason,
        }

    def can_delete(self, db: Session, plan_id: str, user_id: str) -> dict:
        """A plan can go once it has no stages and no equipment follows it."""
        return self._delete_check(db, self._get(db, plan_id, user_id))

    def delete_plan(self, db: Session, plan_id: str, user_id: str) -> dict:
        p = self._get(db, plan_id, user_id)
        if not self._delete_check(db, p)["can_delete"]:
            raise ResourceInUseException("Maintenance plan")

        log_action(db, user_id, "DELETE", "MaintenancePlan", plan_id, f"Deleted maintenance plan '{p.name}'")
        db.delete(p)
        db.commit()
        return {"id": plan_id}


class MaintenanceStageService:

    def _get(self, db: Session, stage_id: str, user_id: str) -> MaintenanceStage:
        s = (db.query(MaintenanceStage)
             .options(selectinload(MaintenanceStage.maintenance_type))
             .filter(MaintenanceStage.id == stage_id, MaintenanceStage.userId == user_id)
             .first())
        if not s: raise NotFoundException("Maintenance stage")
        return s

    def _check_refs(self, db: Session, user_id: str, plan_id: str | None, type_id: str | None) -> None:
        if plan_id and not db.query(MaintenancePlan).filter(
                MaintenancePlan.id == plan_id, MaintenancePlan.userId == user_id).first():
            raise NotFoundException("Maintenance plan")
        if type_id and not db.query(MaintenanceType).filter(
                MaintenanceType.id == type_id, MaintenanceType.userId == user_id).first():
            raise NotFoundException("Maintenance type")

    def _check_index(self, db: Session, plan_id: str, stage_index: int, exclude_id: str | None = None) -> None:
        q = db.query(MaintenanceStage).filter(
            MaintenanceStage.maintenancePlanId == plan_id, MaintenanceStage.stageIndex == stage_index)
        if exclude_id:
            q = q.filter(MaintenanceStage.id != exclude_id)
        if q.first():
            raise DuplicateStageIndexException(stage_index)

    def list_stages(
        self, db: Session, user_id: str, limit: int, offset: int, maintenance_plan_id: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(MaintenanceStage).filter(MaintenanceStage.userId == user_id)
        if maintenance_plan_id:
            q = q.filter(MaintenanceStage.maintenancePlanId == maintenance_plan_id)
        total = q.count()
        q = (q.options(selectinload(MaintenanceStage.maintenance_type))
             .order_by(MaintenanceStage.maintenancePlanId, MaintenanceStage.stageIndex)
             .offset(offset))
        if limit > 0:
            q = q.limit(limit)
        return [serialize_stage(s) for s in q.all()], total

    def get_stage(self, db: Session, stage_id: str, user_id: str) -> dict:
        return serialize_stage(self._get(db, stage_id, user_id))

    def create_stage(self, db: Session, data: MaintenanceStageCreateRequest, user_id: str) -> dict:
        self._check_refs(db, user_id, data.maintenance_plan_id, data.maintenance_type_id)
        self._check_index(db, data.maintenance_plan_id, data.stage_index)

        s = MaintenanceStage(
            maintenancePlanId=data.maintenance_plan_id,
            maintenanceTypeId=data.maintenance_type_id,
            stageIndex=data.stage_index,
            kilometers=data.kilometers,
            days=data.days,
            userId=user_id,
        )
        db.add(s)
        db.flush()
        log_action(db, user_id, "CREATE", "MaintenanceStage", s.id,
                   f"Created stage {s.stageIndex} of plan {s.maintenancePlanId}")
        db.commit()
        return self.get_stage(db, s.id, user_id)

    def update_stage(self, db: Session, stage_id: str, data: MaintenanceStageUpdateRequest, user_id: str) -> dict:
        s = self._get(db, stage_id, user_id)
        self._check_refs(db, user_id, data.maintenance_plan_id, data.maintenance_type_id)

        plan_id = data.maintenance_plan_id or s.maintenancePlanId
        stage_index = data.stage_index if data.stage_index is not None else s.stageIndex
        if (plan_id, stage_index) != (s.maintenancePlanId, s.stageIndex):
            self._check_index(db, plan_id, stage_index, exclude_id=stage_id)

        s.maintenancePlanId = plan_id
        s.stageIndex        = stage_index
        if data.maintenance_type_id:    s.maintenanceTypeId = data.maintenance_type_id
        if data.kilometers is not None: s.kilometers        = data.kilometers
        if data.days is not None:       s.days              = data.days

        log_action(db, user_id, "UPDATE", "MaintenanceStage", s.id,
                   f"Updated stage {s.stageIndex} of plan {s.maintenancePlanId}")
        db.commit()
        db.refresh(s)
        return serialize_stage(s)

    def delete_stage(self, db: Session, stage_id: str, user_id: str) -> dict:
        s = self._get(db, stage_id, user_id)
        log_action(db, user_id, "DELETE", "MaintenanceStage", stage_id,
                   f"Deleted stage {s.stageIndex} of plan {s.maintenancePlanId}")
        db.delete(s)
        db.commit()
        return {"id": stage_id}

    def reorder(self, db: Session, data: StageReorderRequest, user_id: str) -> dict:
        """
        Renumber one plan's stages 1..n following new_order. The list must name
        every stage of that plan exactly once.
        """
        ids = data.new_order
        repeated = [i for i, n in Counter(ids).items() if n > 1]
        if repeated:
            raise InvalidStageOrderException("Stage ids must not repeat", repeated)

        stages = {s.id: s for s in db.query(MaintenanceStage).filter(
            MaintenanceStage.userId == user_id, MaintenanceStage.id.in_(ids)).all()}
        unknown = [i for i in ids if i not in stages]
        if unknown:
            raise InvalidStageOrderException("Some stages do not exist", unknown)

        plan_ids = {s.maintenancePlanId for s in stages.values()}
        if len(plan_ids) > 1:
            raise InvalidStageOrderException("All stages must belong to the same plan")
        plan_id = plan_ids.pop()

        left_out = [sid for (sid,) in db.query(MaintenanceStage.id).filter(
            MaintenanceStage.maintenancePlanId == plan_id, MaintenanceStage.id.notin_(ids)).all()]
        if left_out:
            raise InvalidStageOrderException("The new order must list every stage of the plan", left_out)

        # Park every stage on a negative index first so (plan, index) stays unique mid-update
        for position, sid in enumerate(ids, start=1):
            stages[sid].stageIndex = -position
        db.flush()
        for position, sid in enumerate(ids, start=1):
            stages[sid].stageIndex = position

        log_action(db, user_id, "UPDATE", "MaintenancePlan", plan_id, f"Reordered {len(ids)} stage(s)")
        db.commit()
        return {"maintenance_plan_id": plan_id, "reordered_count": len(ids)}


maintenance_plan_service = MaintenancePlanService()
maintenance_stage_service = MaintenanceStageService()
