import uuid
from sqlalchemy import Column, String, Text, ForeignKey, TIMESTAMP, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


# Which maintenance types an activity may be performed under
activity_maintenance_types = Table(
    "activity_maintenance_types",
    Base.metadata,
    Column("activityId", String(36), ForeignKey("activities.id", ondelete="CASCADE"), primary_key=True),
    Column("maintenanceTypeId", String(36), ForeignKey("maintenance_types.id", ondelete="CASCADE"),
           primary_key=True),
)


class Activity(Base):
    __tablename__ = "activities"

    id          = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name        = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    userId      = Column(String(64), nullable=False, index=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                         onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    maintenance_types = relationship("MaintenanceType", secondary=activity_maintenance_types,
                                     back_populates="activities")
    usages            = relationship("MaintenanceActivity", back_populates="activity")

    def __repr__(self):
        return f"<Activity id={self.id} name={self.name}>"
