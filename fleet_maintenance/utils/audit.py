from sqlalchemy.orm import Session
from fleet_maintenance.models.audit_log import AuditLog


def log_action(
    db: Session,
    user_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    description: str | None = None,
) -> None:
    """
    Write an audit log entry.

    Args:
        db:          Active DB session (adds but does NOT commit, caller commits)
        user_id:     Owner performing the action (None = system action)
        action:      Verb: CREATE, UPDATE, DELETE, COMPLETE, BULK_REPLACE, etc.
        entity_type: Model name: "Equipment", "MaintenanceType", "MaintenanceRecord", etc.
        entity_id:   Primary key of the affected record
        description: Human-readable description

    Usage:
        log_action(db, user_id, "COMPLETE", "MaintenanceRecord", record.id,
                   f"Maintenance completed for {record.equipment.licensePlate}")
        db.commit()
    """
    entry = AuditLog(
        userId=user_id,
        action=action,
        entityType=entity_type,
        entityId=entity_id,
        description=description,
    )
    db.add(entry)
    # Committed together with the caller's transaction
