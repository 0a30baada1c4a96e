"""
Manual Block Model

Operator-entered unavailability (maintenance, owner use, ...).
Created and removed only through the BlockManager; never expires.
"""

import uuid
from sqlalchemy import Column, String, Date, DateTime, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.db_helpers import utcnow


class ManualBlock(Base):
    __tablename__ = "manual_blocks"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    
    # Inclusive range
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    
    reason = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    
    # Relationships
    vehicle = relationship("Vehicle", back_populates="manual_blocks")
    
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_manual_block_range"),
        Index("ix_manual_block_vehicle_dates", "vehicle_id", "start_date", "end_date"),
    )
    
    def __repr__(self):
        return f"<ManualBlock {self.vehicle_id} {self.start_date}..{self.end_date}>"
