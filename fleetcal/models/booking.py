import uuid
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.db_helpers import utcnow
import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses whose dates count as a confirmed booking interval.
# A completed booking is a confirmed one that has already run.
CONFIRMED_BOOKING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


class Booking(Base):
    """
    Rental booking, owned by the booking subsystem.
    
    This service only reads bookings, except for the pending -> confirmed
    transition done by the booking gate under the vehicle lock.
    Dates are inclusive (pickup day through drop-off day).
    """
    __tablename__ = "bookings"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    
    # Relationships
    vehicle = relationship("Vehicle", back_populates="bookings")
    
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_booking_range"),
        Index("ix_booking_vehicle_dates", "vehicle_id", "start_date", "end_date"),
        Index("ix_booking_status", "status"),
    )
    
    @property
    def is_confirmed(self) -> bool:
        return self.status in CONFIRMED_BOOKING_STATUSES
    
    def __repr__(self):
        return f"<Booking {self.vehicle_id} {self.start_date}..{self.end_date} {self.status}>"
