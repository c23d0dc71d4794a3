"""
Import all models here so that:
1. Alembic can auto-detect them when generating migrations
2. Relationships between models resolve correctly

Order matters: import parent tables before child tables.
"""

from fleet_maintenance.models.maintenance_type import MaintenanceType
from fleet_maintenance.models.maintenance_plan import MaintenancePlan
from fleet_maintenance.models.maintenance_stage import MaintenanceStage
from fleet_maintenance.models.equipment import Equipment
from fleet_maintenance.models.mileage_record import MileageRecord
from fleet_maintenance.models.activity import Activity, activity_maintenance_types
from fleet_maintenance.models.spare_part import SparePart
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.maintenance_activity import (
    MaintenanceActivity, ActivityStatus, ActivityPriority,
)
from fleet_maintenance.models.maintenance_spare_part import MaintenanceSparePart
from fleet_maintenance.models.audit_log import AuditLog

__all__ = [
    "MaintenanceType",
    "MaintenancePlan",
    "MaintenanceStage",
    "Equipment",
    "MileageRecord",
    "Activity",
    "activity_maintenance_types",
    "SparePart",
    "MaintenanceRecord",
    "MaintenanceActivity",
    "ActivityStatus",
    "ActivityPriority",
    "MaintenanceSparePart",
    "AuditLog",
]
