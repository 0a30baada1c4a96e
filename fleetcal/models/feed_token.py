"""
Feed Token Model

Capability token that gates the public calendar feed of one vehicle.
At most one row per vehicle; rotating replaces the value in place.
"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from ..database import Base
from ..utils.db_helpers import utcnow


class FeedToken(Base):
    __tablename__ = "feed_tokens"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id = Column(
        String(36),
        ForeignKey("vehicles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    token = Column(String(128), nullable=False, unique=True)
    issued_at = Column(DateTime, default=utcnow, nullable=False)
    
    def __repr__(self):
        # Never render the token itself
        return f"<FeedToken vehicle={self.vehicle_id} issued={self.issued_at}>"
