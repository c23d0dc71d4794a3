from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from fleet_maintenance.config import settings
from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.maintenance_plan import (
    MaintenancePlanCreateRequest, MaintenancePlanUpdateRequest,
    MaintenanceStageCreateRequest, MaintenanceStageUpdateRequest, StageReorderRequest,
)
from fleet_maintenance.schemas.common import success_response, page_response
from fleet_maintenance.services.maintenance_plan_service import (
    maintenance_plan_service, maintenance_stage_service,
)

router = APIRouter()


# ─── Plans ────────────────────────────────────────────────────────────────────
@router.get("/maintenance-plans", summary="List maintenance plans")
def list_plans(
    limit:   int           = Query(20, ge=0, le=settings.MAX_PAGE_LIMIT),
    offset:  int           = Query(0, ge=0),
    search:  Optional[str] = Query(None, description="Name or description"),
    db:      Session       = Depends(get_db),
    user_id: str           = Depends(get_current_user_id),
):
    data, total = maintenance_plan_service.list_plans(db, user_id, limit, offset, search)
    return page_response("Maintenance plans retrieved", data, total, limit, offset)


@router.get("/maintenance-plans/with-stages", summary="Maintenance plans with their stages")
def list_with_stages(
    includeEmptyPlans: bool    = Query(False, description="Also return plans without stages"),
    db:                Session = Depends(get_db),
    user_id:           str     = Depends(get_current_user_id),
):
    data = maintenance_plan_service.list_with_stages(db, user_id, includeEmptyPlans)
    return success_response("Maintenance plans retrieved", data)


@router.get("/maintenance-plans/{plan_id}", summary="Get maintenance plan with stages")
def get_plan(plan_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Maintenance plan retrieved", maintenance_plan_service.get_plan(db, plan_id, user_id))


@router.get("/maintenance-plans/{plan_id}/can-delete", summary="Check whether a plan can be deleted")
def can_delete_plan(plan_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Delete check completed", maintenance_plan_service.can_delete(db, plan_id, user_id))


@router.post("/maintenance-plans", status_code=status.HTTP_201_CREATED, summary="Create maintenance plan")
def create_plan(
    body:    MaintenancePlanCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Maintenance plan created", maintenance_plan_service.create_plan(db, body, user_id))


@router.put("/maintenance-plans/{plan_id}", summary="Update maintenance plan")
def update_plan(
    plan_id: str,
    body:    MaintenancePlanUpdateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data = maintenance_plan_service.update_plan(db, plan_id, body, user_id)
    return success_response("Maintenance plan updated", data)


@router.delete("/maintenance-plans/{plan_id}", summary="Delete maintenance plan (only without stages or equipments)")
def delete_plan(plan_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Maintenance plan deleted", maintenance_plan_service.delete_plan(db, plan_id, user_id))


# ─── Stages ───────────────────────────────────────────────────────────────────
@router.get("/maintenance-stages", summary="List maintenance stages")
def list_stages(
    limit:             int           = Query(0, ge=0, le=settings.MAX_PAGE_LIMIT, description="0 = every stage"),
    offset:            int           = Query(0, ge=0),
    maintenancePlanId: Optional[str] = Query(None, description="Only stages of this plan"),
    db:                Session       = Depends(get_db),
    user_id:           str           = Depends(get_current_user_id),
):
    data, total = maintenance_stage_service.list_stages(db, user_id, limit, offset, maintenancePlanId)
    return page_response("Maintenance stages retrieved", data, total, limit, offset)


@router.put("/maintenance-stages/reorder", summary="Renumber the stages of one plan")
def reorder_stages(
    body:    StageReorderRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Stages reordered", maintenance_stage_service.reorder(db, body, user_id))


@router.get("/maintenance-stages/{stage_id}", summary="Get maintenance stage")
def get_stage(stage_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Maintenance stage retrieved", maintenance_stage_service.get_stage(db, stage_id, user_id))


@router.post("/maintenance-stages", status_code=status.HTTP_201_CREATED, summary="Create maintenance stage")
def create_stage(
    body:    MaintenanceStageCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Maintenance stage created", maintenance_stage_service.create_stage(db, body, user_id))


@router.put("/maintenance-stages/{stage_id}", summary="Update maintenance stage")
def update_stage(
    stage_id: str,
    body:     MaintenanceStageUpdateRequest,
    db:       Session = Depends(get_db),
    user_id:  str     = Depends(get_current_user_id),
):
    data = maintenance_stage_service.update_stage(db, stage_id, body, user_id)
    return success_response("Maintenance stage updated", data)


@router.delete("/maintenance-stages/{stage_id}", summary="Delete maintenance stage")
def delete_stage(stage_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Maintenance stage deleted", maintenance_stage_service.delete_stage(db, stage_id, user_id))
