"""
Booking Gate

The booking flow calls confirm_booking() to move a booking from pending to
confirmed. The availability re-check and the status change share one
vehicle transaction, so two overlapping bookings can never both be confirmed.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import BookingNotFoundError, ConflictError
from ..models.booking import Booking, BookingStatus
from ..utils.db_helpers import vehicle_transaction
from .availability_classifier import AvailabilityClassifier

logger = logging.getLogger(__name__)


class BookingGate:
    
    def __init__(self, db: Session, classifier: Optional[AvailabilityClassifier] = None):
        self.db = db
        self.classifier = classifier or AvailabilityClassifier(db)
    
    def confirm_booking(self, booking: Booking) -> Booking:
        """
        Confirm a booking if its dates are still free.
        
        The booking may still be pending in the session; it is flushed inside
        the vehicle transaction. Already-confirmed bookings are returned as is.
        
        Raises:
            ConflictError: If any day is taken or the booking was cancelled
            InvalidRangeError: If the booking's dates are malformed
        """
        if booking.is_confirmed:
            return booking
        if booking.status == BookingStatus.CANCELLED.value:
            raise ConflictError("A cancelled booking cannot be confirmed")
        
        with vehicle_transaction(self.db, booking.vehicle_id):
            self.db.flush()
            if not self.classifier.is_range_available(
                booking.vehicle_id,
                booking.start_date,
                booking.end_date,
                exclude_booking_id=booking.id
            ):
                raise ConflictError(
                    f"{booking.start_date}..{booking.end_date} is no longer available"
                )
            booking.status = BookingStatus.CONFIRMED.value
        
        logger.info(f"Booking {booking.id} confirmed for vehicle {booking.vehicle_id}")
        return booking
    
    def confirm_booking_by_id(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return self.confirm_booking(booking)
