"""
External Calendar Feed Models

- ExternalFeed: an operator-registered iCal source for one vehicle
- ExternalEvent: mirror of one upstream VEVENT, keyed by its UID

Events are written only by the FeedIngestionService and are deleted together
with their feed.
"""

import uuid
from sqlalchemy import Column, String, Date, DateTime, Text, Integer, ForeignKey, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.db_helpers import utcnow


class ExternalFeed(Base):
    __tablename__ = "external_feeds"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    
    feed_name = Column(String(200), nullable=False)
    feed_url = Column(String(2000), nullable=False)
    description = Column(Text, nullable=True)
    
    # Sync tracking - last_synced_at moves only on a successful fetch+parse
    last_synced_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    last_error_at = Column(DateTime, nullable=True)
    consecutive_failures = Column(Integer, default=0, nullable=False)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    
    # Relationships
    vehicle = relationship("Vehicle", back_populates="external_feeds")
    events = relationship(
        "ExternalEvent",
        back_populates="feed",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    
    __table_args__ = (
        Index("ix_external_feed_vehicle", "vehicle_id"),
    )
    
    def __repr__(self):
        return f"<ExternalFeed {self.feed_name} vehicle={self.vehicle_id}>"


class ExternalEvent(Base):
    __tablename__ = "external_events"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    feed_id = Column(String(36), ForeignKey("external_feeds.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    
    # UID from the source calendar (synthesized when absent)
    external_uid = Column(String(500), nullable=False)
    
    # Inclusive range, time of day discarded
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    summary = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    
    # Relationships
    feed = relationship("ExternalFeed", back_populates="events")
    
    __table_args__ = (
        UniqueConstraint("feed_id", "external_uid", name="uq_external_event_feed_uid"),
        CheckConstraint("start_date <= end_date", name="ck_external_event_range"),
        Index("ix_external_event_vehicle_dates", "vehicle_id", "start_date", "end_date"),
    )
    
    def __repr__(self):
        return f"<ExternalEvent {self.external_uid} {self.start_date}..{self.end_date}>"
