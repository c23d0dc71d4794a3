import uuid
from sqlalchemy import Column, String, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class Equipment(Base):
    __tablename__ = "equipments"

    id                = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type              = Column(String(100), nullable=False)  # e.g. truck, excavator, forklift
    licensePlate      = Column(String(20), nullable=False)
    code              = Column(String(50), nullable=False)   # internal fleet code
    maintenancePlanId = Column(String(36), ForeignKey("maintenance_plans.id"), nullable=True)  # NULL = no plan
    userId            = Column(String(64), nullable=False, index=True)
    createdAt         = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt         = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                               onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("userId", "licensePlate", name="uq_equipments_user_plate"),
        UniqueConstraint("userId", "code", name="uq_equipments_user_code"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    maintenance_records = relationship("MaintenanceRecord", back_populates="equipment")
    mileage_records     = relationship("MileageRecord", back_populates="equipment")
    maintenance_plan    = relationship("MaintenancePlan", back_populates="equipments")

    def __repr__(self):
        return f"<Equipment id={self.id} plate={self.licensePlate} code={self.code}>"
