import enum
import uuid
from sqlalchemy import Column, String, Text, ForeignKey, TIMESTAMP, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class ActivityStatus(str, enum.Enum):
    PENDING     = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED   = "completed"


class ActivityPriority(str, enum.Enum):
    NO        = "no"
    LOW       = "low"
    MEDIUM    = "medium"
    HIGH      = "high"
    IMMEDIATE = "immediate"


class MaintenanceActivity(Base):
    __tablename__ = "maintenance_activities"

    id                  = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    maintenanceRecordId = Column(String(36), ForeignKey("maintenance_records.id", ondelete="CASCADE"),
                                 nullable=False, index=True)
    activityId          = Column(String(36), ForeignKey("activities.id"), nullable=False)
    status              = Column(Enum(ActivityStatus), default=ActivityStatus.PENDING, nullable=False)
    priority            = Column(Enum(ActivityPriority), default=ActivityPriority.NO, nullable=False)
    observations        = Column(Text, nullable=True)
    createdAt           = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt           = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                                 onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("maintenanceRecordId", "activityId", name="uq_maintenance_activities_record_activity"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    maintenance_record = relationship("MaintenanceRecord", back_populates="activities")
    activity           = relationship("Activity", back_populates="usages")

    def __repr__(self):
        return f"<MaintenanceActivity id={self.id} record={self.maintenanceRecordId} activity={self.activityId}>"
