from pydantic import BaseModel, field_validator, model_validator
from typing import Optional, Union
from datetime import datetime, date
from decimal import Decimal

from fleet_maintenance.models.maintenance_activity import ActivityStatus, ActivityPriority
from fleet_maintenance.schemas.catalog import ActivityRead, SparePartRead
from fleet_maintenance.utils.dates import as_utc


# ═══════════════════════════════════════════════════════════════════════════════
# ASSOCIATION ITEMS
# ═══════════════════════════════════════════════════════════════════════════════
class ActivityItem(BaseModel):
    activity_id:  str
    status:       ActivityStatus   = ActivityStatus.PENDING
    priority:     ActivityPriority = ActivityPriority.NO
    observations: Optional[str]    = None


class SparePartItem(BaseModel):
    # Any number is accepted here; whole-number and range checks belong to the
    # association validator so they fail with INVALID_QUANTITY, not a 422
    spare_part_id: str
    quantity:      Union[int, float]
    unit_price:    Optional[Decimal] = None


class MaintenanceActivityCreateRequest(ActivityItem):
    maintenance_record_id: str


class MaintenanceActivityUpdateRequest(BaseModel):
    status:       Optional[ActivityStatus]   = None
    priority:     Optional[ActivityPriority] = None
    observations: Optional[str]              = None


class MaintenanceSparePartCreateRequest(SparePartItem):
    maintenance_record_id: str


class MaintenanceSparePartUpdateRequest(BaseModel):
    quantity:   Optional[Union[int, float]] = None
    unit_price: Optional[Decimal]           = None


class BulkActivitiesRequest(BaseModel):
    maintenance_record_id: str
    activities:            list[ActivityItem] = []


class BulkSparePartsRequest(BaseModel):
    maintenance_record_id: str
    spare_parts:           list[SparePartItem] = []


# ═══════════════════════════════════════════════════════════════════════════════
# MAINTENANCE RECORDS
# ═══════════════════════════════════════════════════════════════════════════════
class MileageInput(BaseModel):
    record_date: date
    kilometers:  int

    @field_validator("kilometers")
    @classmethod
    def check_km(cls, v):
        if v < 0: raise ValueError("Kilometers cannot be negative")
        return v


class MaintenanceRecordCreateRequest(BaseModel):
    equipment_id:        str
    maintenance_type_id: str
    start_datetime:      datetime
    end_datetime:        Optional[datetime] = None
    observations:        Optional[str]      = None
    mileage_record:      Optional[MileageInput] = None
    activities:          list[ActivityItem]  = []
    spare_parts:         list[SparePartItem] = []

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def normalize_tz(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_datetime is not None and self.end_datetime <= self.start_datetime:
            raise ValueError("end_datetime must be after start_datetime")
        return self


class MaintenanceRecordUpdateRequest(BaseModel):
    maintenance_type_id: Optional[str]      = None
    start_datetime:      Optional[datetime] = None
    end_datetime:        Optional[datetime] = None
    observations:        Optional[str]      = None

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def normalize_tz(cls, v):
        return as_utc(v)


class MaintenanceRecordCompleteRequest(BaseModel):
    end_datetime: Optional[datetime] = None   # defaults to now

    @field_validator("end_datetime")
    @classmethod
    def normalize_tz(cls, v):
        return as_utc(v)


class ByEquipmentRequest(BaseModel):
    equipment_id: str
    limit:        int = 10
    offset:       int = 0

    @field_validator("limit", "offset")
    @classmethod
    def check_non_negative(cls, v):
        if v < 0: raise ValueError("Must be zero or greater")
        return v


# ─── Read models ──────────────────────────────────────────────────────────────
class MaintenanceActivityRead(BaseModel):
    id:                    str
    maintenance_record_id: str
    activity_id:           str
    status:                ActivityStatus   = ActivityStatus.PENDING
    priority:              ActivityPriority = ActivityPriority.NO
    observations:          Optional[str]    = None
    created_at:            Optional[datetime] = None
    updated_at:            Optional[datetime] = None
    activity:              Optional[ActivityRead] = None


class MaintenanceSparePartRead(BaseModel):
    id:                    str
    maintenance_record_id: str
    spare_part_id:         str
    quantity:              int
    unit_price:            Optional[Decimal] = None
    created_at:            Optional[datetime] = None
    spare_part:            Optional[SparePartRead] = None


class MaintenanceRecordRead(BaseModel):
    id:                  str
    equipment_id:        str
    maintenance_type_id: str
    start_datetime:      datetime
    end_datetime:        Optional[datetime] = None
    observations:        Optional[str]      = None
    mileage_record_id:   Optional[str]      = None
    created_at:          Optional[datetime] = None
    updated_at:          Optional[datetime] = None
    activities:          list[MaintenanceActivityRead]  = []
    spare_parts:         list[MaintenanceSparePartRead] = []

    @property
    def is_completed(self) -> bool:
        return self.end_datetime is not None


class MileageRecordRead(BaseModel):
    id:           str
    equipment_id: str
    record_date:  date
    kilometers:   int
    created_at:   Optional[datetime] = None
    updated_at:   Optional[datetime] = None


class ProcessedItem(BaseModel):
    id:         str
    created_at: datetime


class BulkActivitiesResult(BaseModel):
    maintenance_record_id: str
    processed_activities:  list[ProcessedItem]


class BulkSparePartsResult(BaseModel):
    maintenance_record_id: str
    processed_spare_parts: list[ProcessedItem]
