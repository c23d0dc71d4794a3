from sqlalchemy import Column, Integer, String, Text, TIMESTAMP
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id          = Column(Integer, primary_key=True, index=True)
    userId      = Column(String(64), nullable=True)        # NULL = system action
    action      = Column(String(100), nullable=False)      # e.g. CREATE, UPDATE, DELETE, COMPLETE, BULK_REPLACE
    entityType  = Column(String(100), nullable=False)      # e.g. Equipment, MaintenanceType, MaintenanceRecord
    entityId    = Column(String(36), nullable=True)
    description = Column(Text, nullable=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AuditLog id={self.id} action={self.action} entity={self.entityType}:{self.entityId}>"
