import uuid
from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class MaintenanceSparePart(Base):
    __tablename__ = "maintenance_spare_parts"

    id                  = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    maintenanceRecordId = Column(String(36), ForeignKey("maintenance_records.id", ondelete="CASCADE"),
                                 nullable=False, index=True)
    sparePartId         = Column(String(36), ForeignKey("spare_parts.id"), nullable=False)
    quantity            = Column(Integer, nullable=False)
    unitPrice           = Column(Numeric(12, 2), nullable=True)
    createdAt           = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("maintenanceRecordId", "sparePartId", name="uq_maintenance_spare_parts_record_part"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    maintenance_record = relationship("MaintenanceRecord", back_populates="spare_parts")
    spare_part         = relationship("SparePart", back_populates="usages")

    def __repr__(self):
        return f"<MaintenanceSparePart id={self.id} record={self.maintenanceRecordId} part={self.sparePartId}>"
