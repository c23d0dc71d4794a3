from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import datetime

from fleet_maintenance.models.maintenance_activity import ActivityStatus, ActivityPriority
from fleet_maintenance.schemas.common import Page
from fleet_maintenance.schemas.maintenance_plan import MaintenancePlanRef
from fleet_maintenance.schemas.maintenance_record import MaintenanceRecordRead, MileageRecordRead
from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeRef


# ═══════════════════════════════════════════════════════════════════════════════
# EQUIPMENT CRUD
# ═══════════════════════════════════════════════════════════════════════════════
class EquipmentCreateRequest(BaseModel):
    type:                str
    license_plate:       str
    code:                str
    maintenance_plan_id: Optional[str] = None

    @field_validator("type", "license_plate", "code")
    @classmethod
    def check_text(cls, v):
        if not v.strip(): raise ValueError("Value cannot be empty")
        return v.strip()

    @field_validator("license_plate")
    @classmethod
    def upper_plate(cls, v):
        return v.upper()


class EquipmentUpdateRequest(BaseModel):
    type:                Optional[str] = None
    license_plate:       Optional[str] = None
    code:                Optional[str] = None
    maintenance_plan_id: Optional[str] = None   # explicit null detaches the plan

    @field_validator("license_plate")
    @classmethod
    def upper_plate(cls, v):
        return v.strip().upper() if v else v


class HasRecordsRequest(BaseModel):
    equipment_id: str


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATE REQUEST (filters + sort)
# ═══════════════════════════════════════════════════════════════════════════════
SortField = Literal["created_at", "priority", "status"]
SortOrder = Literal["asc", "desc"]


class SortSelection(BaseModel):
    by:    SortField = "priority"
    order: SortOrder = "desc"


class EquipmentWithRecordsRequest(BaseModel):
    """Body of POST /equipments/with-records. Camel-case keys match the wire format."""
    limit:              int = 10
    offset:             int = 0
    maintenance_limit:  int = Field(10, alias="maintenanceLimit")
    maintenance_offset: int = Field(0, alias="maintenanceOffset")
    mileage_limit:      int = Field(30, alias="mileageLimit")
    mileage_offset:     int = Field(0, alias="mileageOffset")
    by_priority:        Optional[list[ActivityPriority]] = None
    by_status:          Optional[list[ActivityStatus]]   = None
    sort_by:            SortSelection = Field(default_factory=SortSelection, alias="sortBy")

    model_config = {"populate_by_name": True}

    @field_validator("limit", "offset", "maintenance_limit", "maintenance_offset",
                     "mileage_limit", "mileage_offset")
    @classmethod
    def check_non_negative(cls, v):
        if v < 0: raise ValueError("Must be zero or greater")
        return v


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATE READ MODEL
# ═══════════════════════════════════════════════════════════════════════════════
class StatusCount(BaseModel):
    pending:     int = 0
    in_progress: int = 0
    completed:   int = 0


class PriorityCount(BaseModel):
    no:        int = 0
    low:       int = 0
    medium:    int = 0
    high:      int = 0
    immediate: int = 0


class MaintenanceCount(BaseModel):
    total:    int = 0
    status:   StatusCount   = Field(default_factory=StatusCount)
    priority: PriorityCount = Field(default_factory=PriorityCount)


class EquipmentAggregate(BaseModel):
    id:                  str
    type:                str
    license_plate:       str
    code:                str
    maintenance_plan_id: Optional[str] = None
    maintenance_plan:    Optional[MaintenancePlanRef] = None
    created_at:          Optional[datetime] = None
    updated_at:          Optional[datetime] = None
    maintenance_records: Optional[Page[MaintenanceRecordRead]] = None
    mileage_records:     Optional[Page[MileageRecordRead]]     = None
    maintenance_count:   MaintenanceCount = Field(default_factory=MaintenanceCount)


# ═══════════════════════════════════════════════════════════════════════════════
# PENDING RECORDS VIEW
# ═══════════════════════════════════════════════════════════════════════════════
class PendingRecord(BaseModel):
    id:               str
    start_datetime:   datetime
    end_datetime:     Optional[datetime] = None
    observations:     Optional[str]      = None
    maintenance_type: Optional[MaintenanceTypeRef] = None


class EquipmentWithPendingRecords(BaseModel):
    id:                  str
    type:                str
    license_plate:       str
    code:                str
    maintenance_plan_id: Optional[str] = None
    pending_records:     list[PendingRecord] = []
