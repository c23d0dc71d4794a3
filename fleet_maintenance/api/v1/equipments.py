from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from fleet_maintenance.config import settings
from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.equipment import (
    EquipmentCreateRequest, EquipmentUpdateRequest, EquipmentWithRecordsRequest, HasRecordsRequest,
)
from fleet_maintenance.schemas.common import success_response, page_response
from fleet_maintenance.services.equipment_service import equipment_service

router = APIRouter(prefix="/equipments")


@router.get("", summary="List equipments (paginated)")
def list_equipments(
    limit:   int           = Query(20, ge=0, le=settings.MAX_PAGE_LIMIT),
    offset:  int           = Query(0, ge=0),
    search:  Optional[str] = Query(None, description="License plate, code or type"),
    db:      Session       = Depends(get_db),
    user_id: str           = Depends(get_current_user_id),
):
    data, total = equipment_service.list_equipments(db, user_id, limit, offset, search)
    return page_response("Equipments retrieved successfully", data, total, limit, offset)


@router.post("/with-records", summary="Equipments with nested maintenance and mileage pages")
def list_with_records(
    body:    EquipmentWithRecordsRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data = equipment_service.list_with_records(db, user_id, body)
    return success_response("Equipments with records retrieved", data)


@router.get("/with-pending-records", summary="Equipments with their open maintenance records")
def list_with_pending_records(
    limit:   int     = Query(10, ge=0, le=settings.MAX_PAGE_LIMIT),
    offset:  int     = Query(0, ge=0),
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data, total = equipment_service.list_with_pending_records(db, user_id, limit, offset)
    return page_response("Equipments with pending records retrieved", data, total, limit, offset)


@router.post("/has-records", summary="Whether an equipment has maintenance or mileage records")
def has_records(
    body:    HasRecordsRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    return success_response("Record check completed", equipment_service.has_records(db, body.equipment_id, user_id))


@router.get("/{equipment_id}", summary="Get equipment by ID")
def get_equipment(equipment_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Equipment retrieved", equipment_service.get_equipment(db, equipment_id, user_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create equipment")
def create_equipment(
    body:    EquipmentCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data = equipment_service.create_equipment(db, body, user_id)
    return success_response("Equipment created successfully", data)


@router.put("/{equipment_id}", summary="Update equipment")
def update_equipment(
    equipment_id: str,
    body:         EquipmentUpdateRequest,
    db:           Session = Depends(get_db),
    user_id:      str     = Depends(get_current_user_id),
):
    data = equipment_service.update_equipment(db, equipment_id, body, user_id)
    return success_response("Equipment updated successfully", data)


@router.delete("/{equipment_id}", summary="Delete equipment (only without records)")
def delete_equipment(equipment_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    data = equipment_service.delete_equipment(db, equipment_id, user_id)
    return success_response("Equipment deleted", data)
