from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime


class MaintenanceTypeCreateRequest(BaseModel):
    type:      str
    parent_id: Optional[str] = None

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        if not v.strip(): raise ValueError("Type cannot be empty")
        return v.strip()


class MaintenanceTypeUpdateRequest(BaseModel):
    """
    Rename and/or re-parent a node. Sending "parent_id": null moves the node
    to the root; omitting parent_id keeps the current parent.
    level and path are accepted for wire compatibility but always recomputed.
    """
    type:      Optional[str] = None
    parent_id: Optional[str] = None
    level:     Optional[int] = None
    path:      Optional[str] = None

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        if v is not None and not v.strip(): raise ValueError("Type cannot be empty")
        return v.strip() if v else v

    @property
    def reparent(self) -> bool:
        return "parent_id" in self.model_fields_set


class MaintenanceTypeNode(BaseModel):
    """One taxonomy node. children is only populated inside a built tree."""
    id:         str
    type:       str
    parent_id:  Optional[str] = None
    level:      int = 0
    path:       Optional[str] = None
    user_id:    Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    children:   list["MaintenanceTypeNode"] = []


class MaintenanceTypeCreated(BaseModel):
    id:         str
    created_at: datetime
    level:      int
    path:       Optional[str] = None


class MaintenanceTypeRef(BaseModel):
    id:    str
    type:  str
    level: int = 0
    path:  Optional[str] = None
