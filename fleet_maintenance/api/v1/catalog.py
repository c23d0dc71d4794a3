from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from fleet_maintenance.config import settings
from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.catalog import (
    ActivityCreateRequest, ActivityUpdateRequest, SparePartCreateRequest, SparePartUpdateRequest,
)
from fleet_maintenance.schemas.common import success_response, page_response
from fleet_maintenance.services.catalog_service import activity_service, spare_part_service

router = APIRouter()


# ─── Activities ───────────────────────────────────────────────────────────────
@router.get("/activities", summary="List activities")
def list_activities(
    limit:             int           = Query(0, ge=0, le=settings.MAX_PAGE_LIMIT, description="0 = every activity"),
    offset:            int           = Query(0, ge=0),
    maintenanceTypeId: Optional[str] = Query(None, description="Only activities allowed for this type"),
    db:                Session       = Depends(get_db),
    user_id:           str           = Depends(get_current_user_id),
):
    data, total = activity_service.list_activities(db, user_id, limit, offset, maintenanceTypeId)
    return page_response("Activities retrieved", data, total, limit, offset)


@router.get("/activities/{activity_id}", summary="Get activity")
def get_activity(activity_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Activity retrieved", activity_service.get_activity(db, activity_id, user_id))


@router.post("/activities", status_code=status.HTTP_201_CREATED, summary="Create activity")
def create_activity(
    body:    ActivityCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Activity created", activity_service.create_activity(db, body, user_id))


@router.put("/activities/{activity_id}", summary="Update activity")
def update_activity(
    activity_id: str,
    body:        ActivityUpdateRequest,
    db:          Session = Depends(get_db),
    user_id:     str     = Depends(get_current_user_id),
):
    return success_response("Activity updated", activity_service.update_activity(db, activity_id, body, user_id))


@router.delete("/activities/{activity_id}", summary="Delete activity")
def delete_activity(activity_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Activity deleted", activity_service.delete_activity(db, activity_id, user_id))


# ─── Spare parts ──────────────────────────────────────────────────────────────
@router.get("/spare-parts", summary="List spare parts")
def list_spare_parts(
    limit:   int           = Query(20, ge=0, le=settings.MAX_PAGE_LIMIT),
    offset:  int           = Query(0, ge=0),
    search:  Optional[str] = Query(None),
    db:      Session       = Depends(get_db),
    user_id: str           = Depends(get_current_user_id),
):
    data, total = spare_part_service.list_spare_parts(db, user_id, limit, offset, search)
    return page_response("Spare parts retrieved", data, total, limit, offset)


@router.get("/spare-parts/{part_id}", summary="Get spare part")
def get_spare_part(part_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Spare part retrieved", spare_part_service.get_spare_part(db, part_id, user_id))


@router.post("/spare-parts", status_code=status.HTTP_201_CREATED, summary="Create spare part")
def create_spare_part(
    body:    SparePartCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Spare part created", spare_part_service.create_spare_part(db, body, user_id))


@router.put("/spare-parts/{part_id}", summary="Update spare part")
def update_spare_part(
    part_id: str,
    body:    SparePartUpdateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Spare part updated", spare_part_service.update_spare_part(db, part_id, body, user_id))


@router.delete("/spare-parts/{part_id}", summary="Delete spare part")
def delete_spare_part(part_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Spare part deleted", spare_part_service.delete_spare_part(db, part_id, user_id))
