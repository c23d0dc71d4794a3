"""
Exception handlers registered on the app. Every error leaves as the same
envelope: {success: false, message, error: {code, details, field}}.
"""

import logging
import traceback
from typing import NamedTuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from fleet_maintenance.utils.exceptions import AppException, ErrorCode

logger = logging.getLogger(__name__)

REQUEST_PARTS = ("body", "query", "path", "header")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all AppException subclasses, including FetchFailed raised server-side."""
    detail = exc.detail
    if exc.status_code >= 500:
        logger.warning(f"{exc.error_code} on {request.method} {request.url}: {exc.message}")
    else:
        logger.info(f"{exc.error_code} on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": detail.get("message", "An error occurred"),
            "error": detail.get("error", {"code": ErrorCode.INTERNAL_SERVER_ERROR}),
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors (422) with one detail per failing field.
    """
    details = []
    for error in exc.errors():
        # loc is a tuple like ("body", "mileage_record", "kilometers") or ("query", "limit")
        loc = [str(part) for part in error.get("loc", []) if part not in REQUEST_PARTS]
        details.append({
            "field": ".".join(loc) or None,
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type"),
        })
    logger.info(f"Rejected {request.method} {request.url.path}: {len(details)} invalid field(s)")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Invalid request data",
            "error": {
                "code": ErrorCode.VALIDATION_ERROR,
                "details": details,
                "field": None,
            }
        }
    )


class UniqueKey(NamedTuple):
    name:    str   # constraint name, reported by PostgreSQL
    column:  str   # last "table.column" of the key, reported by SQLite
    code:    str
    message: str
    field:   str | None


# Services check these keys before writing; the database only trips them when
# two requests race for the same key.
UNIQUE_KEYS = (
    UniqueKey("uq_maintenance_activities_record_activity", "maintenance_activities.activityId",
              ErrorCode.DUPLICATE_ASSOCIATION, "Activity is already linked to this maintenance record", "activity_id"),
    UniqueKey("uq_maintenance_spare_parts_record_part", "maintenance_spare_parts.sparePartId",
              ErrorCode.DUPLICATE_ASSOCIATION, "Spare part is already linked to this maintenance record", "spare_part_id"),
    UniqueKey("uq_mileage_records_equipment_date", "mileage_records.recordDate",
              ErrorCode.MILEAGE_DATE_TAKEN, "A mileage record already exists for this equipment on this date",
              "record_date"),
    UniqueKey("uq_equipments_user_plate", "equipments.licensePlate",
              ErrorCode.DUPLICATE_ENTRY, "License plate is already registered", "license_plate"),
    UniqueKey("uq_equipments_user_code", "equipments.code",
              ErrorCode.DUPLICATE_ENTRY, "Equipment code is already registered", "code"),
    UniqueKey("uq_spare_parts_user_factory_code", "spare_parts.factoryCode",
              ErrorCode.DUPLICATE_ENTRY, "Factory code is already registered", "factory_code"),
    UniqueKey("uq_maintenance_plans_user_name", "maintenance_plans.name",
              ErrorCode.DUPLICATE_ENTRY, "A maintenance plan with this name already exists", "name"),
    UniqueKey("uq_maintenance_stages_plan_index", "maintenance_stages.stageIndex",
              ErrorCode.DUPLICATE_STAGE_INDEX, "The plan already has a stage at this index", "stage_index"),
)


def describe_integrity_error(exc: IntegrityError) -> tuple[str, str, str | None]:
    """(error code, message, field) for a constraint the database rejected."""
    reason = str(exc.orig)
    lowered = reason.lower()
    if "foreign key" in lowered:
        return (ErrorCode.INVALID_REFERENCE,
                "A referenced record does not exist or is still referenced elsewhere", None)
    for key in UNIQUE_KEYS:
        if key.name in reason or key.column in reason:
            return key.code, key.message, key.field
    if "unique" in lowered or "duplicate" in lowered:
        return ErrorCode.DUPLICATE_ENTRY, "A record with this data already exists", None
    return ErrorCode.CONSTRAINT_VIOLATION, "The data violates a database constraint", None


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """
    Handle SQLAlchemy IntegrityError raised on flush or commit.
    Maps the violated key to its error code so raw DB errors never reach the client.
    """
    code, message, field = describe_integrity_error(exc)
    logger.warning(f"{code} on {request.method} {request.url}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "success": False,
            "message": message,
            "error": {
                "code": code,
                "details": None,
                "field": field,
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.
    Logs the full traceback, returns a safe 500 response.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url}\n"
        f"{traceback.format_exc()}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "An unexpected error occurred. Please try again later.",
            "error": {
                "code": ErrorCode.INTERNAL_SERVER_ERROR,
                "details": None,
                "field": None,
            }
        }
    )
