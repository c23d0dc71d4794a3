from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.maintenance_record import (
    MaintenanceRecordCreateRequest, MaintenanceRecordUpdateRequest,
    MaintenanceRecordCompleteRequest, ByEquipmentRequest,
)
from fleet_maintenance.schemas.common import success_response, page_response
from fleet_maintenance.services.maintenance_record_service import maintenance_record_service

router = APIRouter(prefix="/maintenance-records")


@router.post("/by-equipment", summary="Page of maintenance records for one equipment")
def list_by_equipment(
    body:    ByEquipmentRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data, total = maintenance_record_service.list_by_equipment(db, user_id, body.equipment_id, body.limit, body.offset)
    return page_response("Maintenance records retrieved", data, total, body.limit, body.offset)


@router.get("/{record_id}", summary="Get maintenance record with activities and spare parts")
def get_record(record_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Record retrieved", maintenance_record_service.get_record(db, record_id, user_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create maintenance record")
def create_record(
    body:    MaintenanceRecordCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data = maintenance_record_service.create_record(db, body, user_id)
    return success_response("Maintenance record created", data)


@router.put("/{record_id}", summary="Update maintenance record")
def update_record(
    record_id: str,
    body:      MaintenanceRecordUpdateRequest,
    db:        Session = Depends(get_db),
    user_id:   str     = Depends(get_current_user_id),
):
    data = maintenance_record_service.update_record(db, record_id, body, user_id)
    return success_response("Maintenance record updated", data)


@router.post("/{record_id}/complete", summary="Complete maintenance record")
def complete_record(
    record_id: str,
    body:      MaintenanceRecordCompleteRequest,
    db:        Session = Depends(get_db),
    user_id:   str     = Depends(get_current_user_id),
):
    data = maintenance_record_service.complete_record(db, record_id, body, user_id)
    return success_response("Maintenance record completed", data)


@router.delete("/{record_id}", summary="Delete maintenance record")
def delete_record(record_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    data = maintenance_record_service.delete_record(db, record_id, user_id)
    return success_response("Maintenance record deleted", data)
