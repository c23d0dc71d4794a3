import uuid
from sqlalchemy import Column, Integer, String, Date, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class MileageRecord(Base):
    __tablename__ = "mileage_records"

    id          = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    equipmentId = Column(String(36), ForeignKey("equipments.id"), nullable=False, index=True)
    recordDate  = Column(Date, nullable=False)
    kilometers  = Column(Integer, nullable=False)
    userId      = Column(String(64), nullable=False, index=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                         onupdate=func.now(), nullable=False)

    # One reading per equipment per day
    __table_args__ = (
        UniqueConstraint("equipmentId", "recordDate", name="uq_mileage_records_equipment_date"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    equipment           = relationship("Equipment", back_populates="mileage_records")
    maintenance_records = relationship("MaintenanceRecord", back_populates="mileage_record")

    def __repr__(self):
        return f"<MileageRecord id={self.id} equipmentId={self.equipmentId} date={self.recordDate}>"
