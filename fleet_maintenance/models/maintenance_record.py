import uuid
from sqlalchemy import Column, String, Text, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id                = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    equipmentId       = Column(String(36), ForeignKey("equipments.id"), nullable=False, index=True)
    maintenanceTypeId = Column(String(36), ForeignKey("maintenance_types.id"), nullable=False)
    mileageRecordId   = Column(String(36), ForeignKey("mileage_records.id"), nullable=True)
    startDatetime     = Column(TIMESTAMP(timezone=True), nullable=False)
    endDatetime       = Column(TIMESTAMP(timezone=True), nullable=True)  # NULL = ongoing maintenance
    observations      = Column(Text, nullable=True)
    userId            = Column(String(64), nullable=False, index=True)
    createdAt         = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt         = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                               onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    equipment        = relationship("Equipment", back_populates="maintenance_records")
    maintenance_type = relationship("MaintenanceType", back_populates="maintenance_records")
    mileage_record   = relationship("MileageRecord", back_populates="maintenance_records")
    activities       = relationship("MaintenanceActivity", back_populates="maintenance_record",
                                    cascade="all, delete-orphan")
    spare_parts      = relationship("MaintenanceSparePart", back_populates="maintenance_record",
                                    cascade="all, delete-orphan")

    def __repr__(self):
        return f"<MaintenanceRecord id={self.id} equipmentId={self.equipmentId}>"
