from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeRef

NAME_MIN_LENGTH        = 3
NAME_MAX_LENGTH        = 200
DESCRIPTION_MAX_LENGTH = 1000
STAGE_INDEX_MIN        = 1
STAGE_INDEX_MAX        = 1000


def _check_name(v: str) -> str:
    v = v.strip()
    if not NAME_MIN_LENGTH <= len(v) <= NAME_MAX_LENGTH:
        raise ValueError(f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    return v


def _check_description(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return v


def _check_index(v: Optional[int]) -> Optional[int]:
    if v is not None and not STAGE_INDEX_MIN <= v <= STAGE_INDEX_MAX:
        raise ValueError(f"Stage index must be between {STAGE_INDEX_MIN} and {STAGE_INDEX_MAX}")
    return v


def _check_amount(v: Optional[float]) -> Optional[float]:
    if v is None:
        return v
    if v < 0: raise ValueError("Value cannot be negative")
    return round(v, 2)


# ═══════════════════════════════════════════════════════════════════════════════
# PLANS
# ═══════════════════════════════════════════════════════════════════════════════
class MaintenancePlanCreateRequest(BaseModel):
    name:        str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _check_name(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return _check_description(v)


class MaintenancePlanUpdateRequest(BaseModel):
    name:        Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _check_name(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return _check_description(v)


class MaintenancePlanRef(BaseModel):
    id:          str
    name:        str
    description: Optional[str] = None


class MaintenancePlanRead(BaseModel):
    id:                     str
    name:                   str
    description:            Optional[str] = None
    stage_count:            int = 0
    maintenance_type_count: int = 0
    created_at:             Optional[datetime] = None
    updated_at:             Optional[datetime] = None


class PlanDeleteCheck(BaseModel):
    id:              str
    name:            str
    can_delete:      bool
    stage_count:     int = 0
    equipment_count: int = 0
    blocking_reason: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# STAGES
# ═══════════════════════════════════════════════════════════════════════════════
class MaintenanceStageCreateRequest(BaseModel):
    maintenance_plan_id: str
    maintenance_type_id: str
    stage_index:         int
    kilometers:          float = 0
    days:                float = 0

    @field_validator("stage_index")
    @classmethod
    def check_index(cls, v):
        return _check_index(v)

    @field_validator("kilometers", "days")
    @classmethod
    def check_amount(cls, v):
        return _check_amount(v)


class MaintenanceStageUpdateRequest(BaseModel):
    maintenance_plan_id: Optional[str]   = None
    maintenance_type_id: Optional[str]   = None
    stage_index:         Optional[int]   = None
    kilometers:          Optional[float] = None
    days:                Optional[float] = None

    @field_validator("stage_index")
    @classmethod
    def check_index(cls, v):
        return _check_index(v)

    @field_validator("kilometers", "days")
    @classmethod
    def check_amount(cls, v):
        return _check_amount(v)


class StageReorderRequest(BaseModel):
    """Stage ids of one plan in their new order; position i becomes stage_index i + 1."""
    new_order: list[str] = Field(alias="newOrder")

    model_config = {"populate_by_name": True}

    @field_validator("new_order")
    @classmethod
    def check_not_empty(cls, v):
        if not v: raise ValueError("At least one stage id is required")
        return v


class MaintenanceStageRead(BaseModel):
    id:                  str
    maintenance_plan_id: str
    maintenance_type_id: str
    stage_index:         int
    kilometers:          float = 0
    days:                float = 0
    created_at:          Optional[datetime] = None
    updated_at:          Optional[datetime] = None
    maintenance_type:    Optional[MaintenanceTypeRef] = None


class MaintenancePlanWithStages(MaintenancePlanRead):
    stages: list[MaintenanceStageRead] = []


class StageReorderResult(BaseModel):
    maintenance_plan_id: str
    reordered_count:     int
