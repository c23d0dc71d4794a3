import uuid
from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class MaintenanceStage(Base):
    __tablename__ = "maintenance_stages"

    id                = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    maintenancePlanId = Column(String(36), ForeignKey("maintenance_plans.id", ondelete="CASCADE"),
                               nullable=False, index=True)
    maintenanceTypeId = Column(String(36), ForeignKey("maintenance_types.id"), nullable=False)
    stageIndex        = Column(Integer, nullable=False)           # 1-based position inside the plan
    kilometers        = Column(Numeric(12, 2), default=0, nullable=False)
    days              = Column(Numeric(10, 2), default=0, nullable=False)
    userId            = Column(String(64), nullable=False, index=True)
    createdAt         = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt         = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                               onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("maintenancePlanId", "stageIndex", name="uq_maintenance_stages_plan_index"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    maintenance_plan = relationship("MaintenancePlan", back_populates="stages")
    maintenance_type = relationship("MaintenanceType")

    def __repr__(self):
        return f"<MaintenanceStage id={self.id} plan={self.maintenancePlanId} index={self.stageIndex}>"
