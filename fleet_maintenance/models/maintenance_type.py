import uuid
from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class MaintenanceType(Base):
    __tablename__ = "maintenance_types"

    id        = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type      = Column(String(150), nullable=False)
    parentId  = Column(String(36), ForeignKey("maintenance_types.id"), nullable=True)  # NULL = root
    level     = Column(Integer, default=0, nullable=False)
    path      = Column(String(1000), nullable=True)        # ancestor types, e.g. "Preventive/Engine"
    userId    = Column(String(64), nullable=False, index=True)
    createdAt = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                       onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_maintenance_types_user_parent", "userId", "parentId"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    activities          = relationship("Activity", secondary="activity_maintenance_types",
                                       back_populates="maintenance_types")
    maintenance_records = relationship("MaintenanceRecord", back_populates="maintenance_type")

    def __repr__(self):
        return f"<MaintenanceType id={self.id} type={self.type} level={self.level}>"
