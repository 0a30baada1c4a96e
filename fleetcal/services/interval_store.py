"""
Interval Store

Data access for the three interval kinds of a vehicle:
- ConfirmedBooking (bookings table, confirmed/completed only)
- ManualBlock
- ExternalEvent

No policy lives here: callers decide precedence, conflicts and transactions.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.vehicle import Vehicle
from ..models.booking import Booking, CONFIRMED_BOOKING_STATUSES
from ..models.manual_block import ManualBlock
from ..models.external_feed import ExternalFeed, ExternalEvent

logger = logging.getLogger(__name__)


class SourceKind(str, enum.Enum):
    BOOKING = "booking"
    MANUAL_BLOCK = "manual-block"
    EXTERNAL = "external"


@dataclass(frozen=True)
class DateInterval:
    """
    Closed day range from one of the three sources, tagged by source_kind.
    
    record_id is the id of the underlying booking / block / external event.
    """
    vehicle_id: str
    start_date: date
    end_date: date
    source_kind: SourceKind
    record_id: str
    label: Optional[str] = None
    stamp: Optional[datetime] = None
    
    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def _in_window(query, model, start: Optional[date], end: Optional[date]):
    if end is not None:
        query = query.filter(model.start_date <= end)
    if start is not None:
        query = query.filter(model.end_date >= start)
    return query


class IntervalStore:
    """Reads and writes interval records. Never commits."""
    
    def __init__(self, db: Session):
        self.db = db
    
    # ==================
    # Vehicles
    # ==================
    
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return self.db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    
    def vehicle_exists(self, vehicle_id: str) -> bool:
        return self.db.query(Vehicle.id).filter(Vehicle.id == vehicle_id).first() is not None
    
    def vehicle_ids_for_company(self, company_id: str) -> List[str]:
        rows = self.db.query(Vehicle.id).filter(
            Vehicle.company_id == company_id
        ).order_by(Vehicle.id).all()
        return [row[0] for row in rows]
    
    # ==================
    # Interval reads
    # ==================
    
    def confirmed_bookings(
        self,
        vehicle_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        exclude_booking_id: Optional[str] = None
    ) -> List[DateInterval]:
        query = self.db.query(Booking).filter(
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_(CONFIRMED_BOOKING_STATUSES)
        )
        query = _in_window(query, Booking, start, end)
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        
        return [
            DateInterval(
                vehicle_id=b.vehicle_id,
                start_date=b.start_date,
                end_date=b.end_date,
                source_kind=SourceKind.BOOKING,
                record_id=b.id,
                stamp=b.updated_at or b.created_at,
            )
            for b in query.all()
        ]
    
    def manual_blocks(
        self,
        vehicle_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[DateInterval]:
        query = self.db.query(ManualBlock).filter(ManualBlock.vehicle_id == vehicle_id)
        query = _in_window(query, ManualBlock, start, end)
        
        return [
            DateInterval(
                vehicle_id=b.vehicle_id,
                start_date=b.start_date,
                end_date=b.end_date,
                source_kind=SourceKind.MANUAL_BLOCK,
                record_id=b.id,
                label=b.reason,
                stamp=b.updated_at or b.created_at,
            )
            for b in query.all()
        ]
    
    def external_events(
        self,
        vehicle_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[DateInterval]:
        query = self.db.query(ExternalEvent).filter(ExternalEvent.vehicle_id == vehicle_id)
        query = _in_window(query, ExternalEvent, start, end)
        
        return [
            DateInterval(
                vehicle_id=e.vehicle_id,
                start_date=e.start_date,
                end_date=e.end_date,
                source_kind=SourceKind.EXTERNAL,
                record_id=e.id,
                label=e.summary,
                stamp=e.updated_at or e.created_at,
            )
            for e in query.all()
        ]
    
    def intervals(
        self,
        vehicle_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        exclude_booking_id: Optional[str] = None
    ) -> List[DateInterval]:
        """All intervals of a vehicle touching [start, end] (unbounded when None)"""
        return (
            self.confirmed_bookings(vehicle_id, start, end, exclude_booking_id)
            + self.external_events(vehicle_id, start, end)
            + self.manual_blocks(vehicle_id, start, end)
        )
    
    # ==================
    # Manual blocks
    # ==================
    
    def get_block(self, block_id: str) -> Optional[ManualBlock]:
        return self.db.query(ManualBlock).filter(ManualBlock.id == block_id).first()
    
    def list_blocks(self, vehicle_id: str) -> List[ManualBlock]:
        return self.db.query(ManualBlock).filter(
            ManualBlock.vehicle_id == vehicle_id
        ).order_by(ManualBlock.start_date, ManualBlock.id).all()
    
    def add_block(
        self,
        vehicle_id: str,
        start: date,
        end: date,
        reason: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> ManualBlock:
        block = ManualBlock(
            vehicle_id=vehicle_id,
            start_date=start,
            end_date=end,
            reason=reason,
            created_by=created_by
        )
        self.db.add(block)
        self.db.flush()
        return block
    
    def delete_block(self, block_id: str) -> int:
        return self.db.query(ManualBlock).filter(
            ManualBlock.id == block_id
        ).delete(synchronize_session=False)
    
    def delete_vehicle_blocks(self, vehicle_id: str) -> int:
        return self.db.query(ManualBlock).filter(
            ManualBlock.vehicle_id == vehicle_id
        ).delete(synchronize_session=False)
    
    # ==================
    # External feeds / events
    # ==================
    
    def get_feed(self, feed_id: str) -> Optional[ExternalFeed]:
        return self.db.query(ExternalFeed).filter(ExternalFeed.id == feed_id).first()
    
    def list_feeds(self, vehicle_id: Optional[str] = None) -> List[ExternalFeed]:
        query = self.db.query(ExternalFeed)
        if vehicle_id is not None:
            query = query.filter(ExternalFeed.vehicle_id == vehicle_id)
        return query.order_by(ExternalFeed.created_at, ExternalFeed.id).all()
    
    def add_feed(
        self,
        vehicle_id: str,
        feed_name: str,
        feed_url: str,
        description: Optional[str] = None
    ) -> ExternalFeed:
        feed = ExternalFeed(
            vehicle_id=vehicle_id,
            feed_name=feed_name,
            feed_url=feed_url,
            description=description
        )
        self.db.add(feed)
        self.db.flush()
        return feed
    
    def delete_feed(self, feed_id: str) -> int:
        # Children first so the cascade holds even without FK enforcement
        self.db.query(ExternalEvent).filter(
            ExternalEvent.feed_id == feed_id
        ).delete(synchronize_session=False)
        return self.db.query(ExternalFeed).filter(
            ExternalFeed.id == feed_id
        ).delete(synchronize_session=False)
    
    def feed_events(self, feed_id: str) -> Dict[str, ExternalEvent]:
        """Stored events of one feed keyed by external UID"""
        events = self.db.query(ExternalEvent).filter(ExternalEvent.feed_id == feed_id).all()
        return {e.external_uid: e for e in events}
    
    def add_external_event(
        self,
        feed_id: str,
        vehicle_id: str,
        external_uid: str,
        start: date,
        end: date,
        summary: Optional[str] = None
    ) -> ExternalEvent:
        event = ExternalEvent(
            feed_id=feed_id,
            vehicle_id=vehicle_id,
            external_uid=external_uid,
            start_date=start,
            end_date=end,
            summary=summary
        )
        self.db.add(event)
        return event
