from pydantic import BaseModel, field_validator, model_validator
from typing import Optional
from datetime import date


class MileageRecordCreateRequest(BaseModel):
    equipment_id: str
    record_date:  date
    kilometers:   int

    @field_validator("kilometers")
    @classmethod
    def check_km(cls, v):
        if v < 0: raise ValueError("Kilometers cannot be negative")
        return v


class MileageRecordUpdateRequest(BaseModel):
    record_date: Optional[date] = None
    kilometers:  Optional[int]  = None

    @field_validator("kilometers")
    @classmethod
    def check_km(cls, v):
        if v is not None and v < 0: raise ValueError("Kilometers cannot be negative")
        return v


class MileageDateRangeRequest(BaseModel):
    equipment_id: Optional[str] = None
    start_date:   date
    end_date:     date
    limit:        int = 30
    offset:       int = 0

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        if self.limit < 0 or self.offset < 0:
            raise ValueError("limit and offset must be zero or greater")
        return self
