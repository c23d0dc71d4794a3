from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fleet_maintenance.config import settings
from fleet_maintenance.database import get_db
from fleet_maintenance.dependencies import get_current_user_id
from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeCreateRequest, MaintenanceTypeUpdateRequest
from fleet_maintenance.schemas.common import success_response, page_response
from fleet_maintenance.services.maintenance_type_service import maintenance_type_service

router = APIRouter(prefix="/maintenance-types")


@router.get("", summary="List maintenance types (flat, paginated)")
def list_types(
    limit:   int     = Query(0, ge=0, le=settings.MAX_PAGE_LIMIT, description="0 = every type"),
    offset:  int     = Query(0, ge=0),
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data, total = maintenance_type_service.list_types(db, user_id, limit, offset)
    return page_response("Maintenance types retrieved", data, total, limit, offset)


@router.get("/tree", summary="Maintenance type forest")
def get_tree(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return success_response("Maintenance type tree retrieved", maintenance_type_service.get_tree(db, user_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create maintenance type")
def create_type(
    body:    MaintenanceTypeCreateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data = maintenance_type_service.create_type(db, body, user_id)
    return success_response("Maintenance type created", data)


@router.put("/{type_id}", summary="Rename or re-parent maintenance type")
def update_type(
    type_id: str,
    body:    MaintenanceTypeUpdateRequest,
    db:      Session = Depends(get_db),
    user_id: str     = Depends(get_current_user_id),
):
    data = maintenance_type_service.update_type(db, type_id, body, user_id)
    return success_response("Maintenance type updated", data)


@router.delete("/{type_id}", summary="Delete maintenance type (only without children)")
def delete_type(type_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    data = maintenance_type_service.delete_type(db, type_id, user_id)
    return success_response("Maintenance type deleted", data)
