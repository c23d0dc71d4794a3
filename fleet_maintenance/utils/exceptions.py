from fastapi import HTTPException, status


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES: Machine-readable constants for frontend switch/case
# ═══════════════════════════════════════════════════════════════════════════════
class ErrorCode:
    VALIDATION_ERROR              = "VALIDATION_ERROR"
    UNAUTHORIZED                  = "UNAUTHORIZED"
    NOT_FOUND                     = "NOT_FOUND"
    DUPLICATE_ENTRY               = "DUPLICATE_ENTRY"
    MILEAGE_DATE_TAKEN            = "MILEAGE_DATE_TAKEN"
    INVALID_REFERENCE             = "INVALID_REFERENCE"
    CONSTRAINT_VIOLATION          = "CONSTRAINT_VIOLATION"
    RESOURCE_IN_USE               = "RESOURCE_IN_USE"
    INVALID_DATE_RANGE            = "INVALID_DATE_RANGE"
    ALREADY_COMPLETED             = "ALREADY_COMPLETED"
    PARENT_NOT_FOUND              = "PARENT_NOT_FOUND"
    HAS_CHILDREN                  = "HAS_CHILDREN"
    CYCLIC_PARENT                 = "CYCLIC_PARENT"
    EQUIPMENT_HAS_RECORDS         = "EQUIPMENT_HAS_RECORDS"
    DUPLICATE_STAGE_INDEX         = "DUPLICATE_STAGE_INDEX"
    INVALID_STAGE_ORDER           = "INVALID_STAGE_ORDER"
    DUPLICATE_ASSOCIATION         = "DUPLICATE_ASSOCIATION"
    DUPLICATE_IN_BATCH            = "DUPLICATE_IN_BATCH"
    EMPTY_BATCH                   = "EMPTY_BATCH"
    BATCH_TOO_LARGE               = "BATCH_TOO_LARGE"
    INVALID_QUANTITY              = "INVALID_QUANTITY"
    INVALID_PRICE                 = "INVALID_PRICE"
    INCOMPATIBLE_MAINTENANCE_TYPE = "INCOMPATIBLE_MAINTENANCE_TYPE"
    FETCH_FAILED                  = "FETCH_FAILED"
    INTERNAL_SERVER_ERROR         = "INTERNAL_SERVER_ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════
class AppException(HTTPException):
    """
    Base exception for all application-level errors.
    Carries a machine-readable error_code for frontend handling.
    """
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: list | None = None,
        field: str | None = None,
    ):
        super().__init__(status_code=status_code, detail={
            "message": message,
            "error": {
                "code": error_code,
                "details": details,
                "field": field,
            }
        })

    @property
    def message(self) -> str:
        return self.detail["message"]

    @property
    def error_code(self) -> str:
        return self.detail["error"]["code"]

    @property
    def details(self) -> list | None:
        return self.detail["error"]["details"]

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# CONCRETE EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class UnauthorizedException(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.UNAUTHORIZED)


class NotFoundException(AppException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found", ErrorCode.NOT_FOUND)


class InvalidFieldException(AppException):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.VALIDATION_ERROR, field=field)


class DuplicateEntryException(AppException):
    def __init__(self, message: str = "Record already exists", field: str | None = None):
        super().__init__(status.HTTP_409_CONFLICT, message, ErrorCode.DUPLICATE_ENTRY, field=field)


class MileageDateTakenException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "A mileage record already exists for this equipment on this date",
            ErrorCode.MILEAGE_DATE_TAKEN,
            field="record_date",
        )


class ResourceInUseException(AppException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"{resource} is referenced by other records and cannot be deleted",
            ErrorCode.RESOURCE_IN_USE,
        )


class InvalidDateRangeException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "End date must be after start date",
            ErrorCode.INVALID_DATE_RANGE,
        )


class AlreadyCompletedException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "Maintenance record is already completed",
            ErrorCode.ALREADY_COMPLETED,
        )


# ─── Taxonomy ─────────────────────────────────────────────────────────────────
class ParentNotFoundException(AppException):
    def __init__(self, parent_id: str | None = None):
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            "Parent maintenance type not found",
            ErrorCode.PARENT_NOT_FOUND,
            field="parent_id",
            details=[{"parent_id": parent_id}] if parent_id else None,
        )


class HasChildrenException(AppException):
    def __init__(self, children: int = 1):
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"Maintenance type has {children} child type(s) and cannot be deleted",
            ErrorCode.HAS_CHILDREN,
        )


class CyclicParentException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "A maintenance type cannot be its own parent or a child of its descendants",
            ErrorCode.CYCLIC_PARENT,
            field="parent_id",
        )


# ─── Equipment ────────────────────────────────────────────────────────────────
class EquipmentHasRecordsException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Equipment has maintenance or mileage records and cannot be deleted",
            ErrorCode.EQUIPMENT_HAS_RECORDS,
        )


# ─── Maintenance plans ────────────────────────────────────────────────────────
class DuplicateStageIndexException(AppException):
    def __init__(self, stage_index: int):
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"The plan already has a stage at index {stage_index}",
            ErrorCode.DUPLICATE_STAGE_INDEX,
            field="stage_index",
        )


class InvalidStageOrderException(AppException):
    def __init__(self, message: str, stage_ids: list[str] | None = None):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            message,
            ErrorCode.INVALID_STAGE_ORDER,
            field="new_order",
            details=stage_ids or None,
        )


# ─── Associations ─────────────────────────────────────────────────────────────
class DuplicateAssociationException(AppException):
    def __init__(self, entity: str = "Item"):
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"{entity} is already associated with this maintenance record",
            ErrorCode.DUPLICATE_ASSOCIATION,
        )


class DuplicateInBatchException(AppException):
    def __init__(self, duplicates: list[str]):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "The batch contains duplicated items",
            ErrorCode.DUPLICATE_IN_BATCH,
            details=duplicates,
        )


class EmptyBatchException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "At least one item is required",
            ErrorCode.EMPTY_BATCH,
        )


class BatchTooLargeException(AppException):
    def __init__(self, limit: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"A batch cannot contain more than {limit} items",
            ErrorCode.BATCH_TOO_LARGE,
        )


class InvalidQuantityException(AppException):
    def __init__(self, minimum: int, maximum: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Quantity must be an integer between {minimum} and {maximum}",
            ErrorCode.INVALID_QUANTITY,
            field="quantity",
        )


class InvalidPriceException(AppException):
    def __init__(self, maximum: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Unit price must be between 0 and {maximum}",
            ErrorCode.INVALID_PRICE,
            field="unit_price",
        )


class IncompatibleMaintenanceTypeException(AppException):
    def __init__(self, activity_ids: list[str]):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "The maintenance type is not allowed for the selected activities",
            ErrorCode.INCOMPATIBLE_MAINTENANCE_TYPE,
            field="maintenance_type_id",
            details=activity_ids,
        )


# ─── Remote access ────────────────────────────────────────────────────────────
class FetchFailedException(AppException):
    def __init__(self, message: str = "Remote request failed", details: list | None = None):
        super().__init__(
            status.HTTP_502_BAD_GATEWAY,
            message,
            ErrorCode.FETCH_FAILED,
            details=details,
        )
