"""
Company / Vehicle Models

Minimal mirrors of the fleet entities owned by the company and vehicle CRUD
screens. Only what availability and the calendar feed need is kept here:
ownership (for company-wide block clearing) and the vehicle name (for the
exported calendar name and file name).
"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.db_helpers import utcnow


class Company(Base):
    __tablename__ = "companies"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    
    created_at = Column(DateTime, default=utcnow)
    
    vehicles = relationship("Vehicle", back_populates="company")
    
    def __repr__(self):
        return f"<Company {self.name}>"


class Vehicle(Base):
    __tablename__ = "vehicles"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    
    # Relationships
    company = relationship("Company", back_populates="vehicles")
    bookings = relationship("Booking", back_populates="vehicle", passive_deletes=True)
    manual_blocks = relationship("ManualBlock", back_populates="vehicle", passive_deletes=True)
    external_feeds = relationship("ExternalFeed", back_populates="vehicle", passive_deletes=True)
    
    __table_args__ = (
        Index("ix_vehicle_company", "company_id"),
    )
    
    def __repr__(self):
        return f"<Vehicle {self.name}>"
