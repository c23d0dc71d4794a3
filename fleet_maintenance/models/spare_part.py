import uuid
from sqlalchemy import Column, String, Text, TIMESTAMP, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleet_maintenance.database import Base


class SparePart(Base):
    __tablename__ = "spare_parts"

    id          = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    factoryCode = Column(String(100), nullable=False)
    name        = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price       = Column(Numeric(12, 2), default=0, nullable=False)
    imageUrl    = Column(String(500), nullable=True)
    userId      = Column(String(64), nullable=False, index=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                         onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("userId", "factoryCode", name="uq_spare_parts_user_factory_code"),
    )

    # ─── Relationships ─────────────────────────────────────────────────────────
    usages = relationship("MaintenanceSparePart", back_populates="spare_part")

    def __repr__(self):
        return f"<SparePart id={self.id} factoryCode={self.factoryCode}>"
