from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.maintenance_record import ByEquipmentRequest
from fleet_maintenance.schemas.mileage import (
    MileageRecordCreateRequest, MileageRecordUpdateRequest, MileageDateRangeRequest,
)
from fleet_maintenance.schemas.common import success_response, page_response
from fleet_maintenance.services.mileage_service import mileage_service

router = APIRouter(prefix="/mileage-records")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Record mileage (one reading per equipment per day)")
def record_mileage(
    body:     MileageRecordCreateRequest,
    response: Response,
    db:       Session = Depends(get_db),
    user_id:  str     = Depends(get_current_user_id),
):
    data, created = mileage_service.record_mileage(db, body, user_id)
    if not created:
        response.status_code = status.HTTP_200_OK
        return success_response("Mileage record for this date updated", data)
    return success_response("Mileage record created", data)


@router.post("/by-equipment", summary="Page of mileage records for one equipment")
def list_by_equipment(
    body:    ByEquipmentRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data, total = mileage_service.list_by_equipment(db, user_id, body.equipment_id, body.limit, body.offset)
    return page_response("Mileage records retrieved", data, total, body.limit, body.offset)


@router.post("/by-date-range", summary="Mileage records between two dates")
def list_by_date_range(
    body:    MileageDateRangeRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data, total = mileage_service.list_by_date_range(db, user_id, body)
    return page_response("Mileage records retrieved", data, total, body.limit, body.offset)


@router.put("/{record_id}", summary="Update mileage record")
def update_record(
    record_id: str,
    body:      MileageRecordUpdateRequest,
    db:        Session = Depends(get_db),
    user_id:   str     = Depends(get_current_user_id),
):
    data = mileage_service.update_record(db, record_id, body, user_id)
    return success_response("Mileage record updated", data)


@router.delete("/{record_id}", summary="Delete mileage record")
def delete_record(record_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    data = mileage_service.delete_record(db, record_id, user_id)
    return success_response("Mileage record deleted", data)
