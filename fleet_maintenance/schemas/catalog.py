from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeRef


# ─── Activities ───────────────────────────────────────────────────────────────
class ActivityCreateRequest(BaseModel):
    name:                 str
    description:          Optional[str] = None
    maintenance_type_ids: list[str]

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if not v.strip(): raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("maintenance_type_ids")
    @classmethod
    def check_types(cls, v):
        if not v: raise ValueError("At least one maintenance type is required")
        return list(dict.fromkeys(v))


class ActivityUpdateRequest(BaseModel):
    name:                 Optional[str] = None
    description:          Optional[str] = None
    maintenance_type_ids: Optional[list[str]] = None

    @field_validator("maintenance_type_ids")
    @classmethod
    def check_types(cls, v):
        if v is not None and not v: raise ValueError("At least one maintenance type is required")
        return list(dict.fromkeys(v)) if v else v


class ActivityRead(BaseModel):
    id:                str
    name:              str
    description:       Optional[str] = None
    maintenance_types: list[MaintenanceTypeRef] = []
    created_at:        Optional[datetime] = None
    updated_at:        Optional[datetime] = None

    @property
    def maintenance_type_ids(self) -> list[str]:
        return [t.id for t in self.maintenance_types]


# ─── Spare parts ──────────────────────────────────────────────────────────────
class SparePartCreateRequest(BaseModel):
    factory_code: str
    name:         str
    description:  Optional[str] = None
    price:        Decimal = Decimal("0")
    image_url:    Optional[str] = None

    @field_validator("factory_code", "name")
    @classmethod
    def check_text(cls, v):
        if not v.strip(): raise ValueError("Value cannot be empty")
        return v.strip()

    @field_validator("price")
    @classmethod
    def check_price(cls, v):
        if v < 0: raise ValueError("Price cannot be negative")
        return v


class SparePartUpdateRequest(BaseModel):
    factory_code: Optional[str]     = None
    name:         Optional[str]     = None
    description:  Optional[str]     = None
    price:        Optional[Decimal] = None
    image_url:    Optional[str]     = None

    @field_validator("price")
    @classmethod
    def check_price(cls, v):
        if v is not None and v < 0: raise ValueError("Price cannot be negative")
        return v


class SparePartRead(BaseModel):
    id:           str
    factory_code: str
    name:         str
    description:  Optional[str] = None
    price:        Decimal = Decimal("0")
    image_url:    Optional[str] = None
