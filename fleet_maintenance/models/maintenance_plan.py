import uuid
from sqlalchemy import Column, String, Text, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class MaintenancePlan(Base):
    __tablename__ = "maintenance_plans"

    id          = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name        = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    userId      = Column(String(64), nullable=False, index=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                         onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("userId", "name", name="uq_maintenance_plans_user_name"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    stages     = relationship("MaintenanceStage", back_populates="maintenance_plan",
                              order_by="MaintenanceStage.stageIndex", cascade="all, delete-orphan")
    equipments = relationship("Equipment", back_populates="maintenance_plan")

    def __repr__(self):
        return f"<MaintenancePlan id={self.id} name={self.name}>"
