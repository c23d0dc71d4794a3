from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.maintenance_record import (
    MaintenanceActivityCreateRequest, MaintenanceActivityUpdateRequest,
    MaintenanceSparePartCreateRequest, MaintenanceSparePartUpdateRequest,
    BulkActivitiesRequest, BulkSparePartsRequest,
)
from fleet_maintenance.schemas.common import success_response
from fleet_maintenance.services.association_service import association_service

router = APIRouter()


# ─── Maintenance activities ───────────────────────────────────────────────────
@router.post("/maintenance-activities", status_code=status.HTTP_201_CREATED,
             summary="Attach one activity to a maintenance record")
def add_activity(
    body:    MaintenanceActivityCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Activity added", association_service.add_activity(db, body, user_id))


@router.post("/maintenance-activities/bulk", summary="Replace every activity of a maintenance record")
def replace_activities(
    body:    BulkActivitiesRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Activities saved", association_service.replace_activities(db, body, user_id))


@router.put("/maintenance-activities/{row_id}", summary="Update activity status, priority or observations")
def update_activity(
    row_id:  str,
    body:    MaintenanceActivityUpdateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Activity updated", association_service.update_activity(db, row_id, body, user_id))


@router.delete("/maintenance-activities/{row_id}", summary="Detach activity")
def remove_activity(row_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Activity removed", association_service.remove_activity(db, row_id, user_id))


# ─── Maintenance spare parts ──────────────────────────────────────────────────
@router.post("/maintenance-spare-parts", status_code=status.HTTP_201_CREATED,
             summary="Attach one spare part to a maintenance record")
def add_spare_part(
    body:    MaintenanceSparePartCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Spare part added", association_service.add_spare_part(db, body, user_id))


@router.post("/maintenance-spare-parts/bulk", summary="Replace every spare part of a maintenance record")
def replace_spare_parts(
    body:    BulkSparePartsRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Spare parts saved", association_service.replace_spare_parts(db, body, user_id))


@router.put("/maintenance-spare-parts/{row_id}", summary="Update spare part quantity or unit price")
def update_spare_part(
    row_id:  str,
    body:    MaintenanceSparePartUpdateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Spare part updated", association_service.update_spare_part(db, row_id, body, user_id))


@router.delete("/maintenance-spare-parts/{row_id}", summary="Detach spare part")
def remove_spare_part(row_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Spare part removed", association_service.remove_spare_part(db, row_id, user_id))
