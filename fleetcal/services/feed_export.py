"""
Feed Export Service

Renders a vehicle's unavailable ranges as an iCalendar document that other
platforms can subscribe to.

Output is deterministic for a given store state: stable event UIDs, DTSTAMP
taken from the record's own timestamp, and a fixed event order.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from icalendar import Calendar, Event
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AuthError, VehicleNotFoundError
from ..models.vehicle import Vehicle
from ..utils.dates import ONE_DAY
from .interval_store import DateInterval, IntervalStore, SourceKind
from .token_authority import TokenAuthority

logger = logging.getLogger(__name__)

CALENDAR_NOT_FOUND = "Calendar not found"

# Export order: bookings, then external events, then manual blocks
KIND_ORDER = {
    SourceKind.BOOKING: 0,
    SourceKind.EXTERNAL: 1,
    SourceKind.MANUAL_BLOCK: 2,
}

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class CalendarDocument:
    content: bytes
    filename: str


def calendar_filename(vehicle_name: Optional[str]) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", vehicle_name or "").strip("-").lower()
    return f"{slug or 'vehicle'}-calendar.ics"


def event_uid(interval: DateInterval) -> str:
    return f"{interval.source_kind.value}-{interval.record_id}@{settings.calendar_uid_domain}"


def _stamp(interval: DateInterval) -> datetime:
    if interval.stamp is None:
        return EPOCH
    return interval.stamp.replace(tzinfo=timezone.utc)


class FeedExportService:
    
    def __init__(
        self,
        db: Session,
        store: Optional[IntervalStore] = None,
        tokens: Optional[TokenAuthority] = None
    ):
        self.db = db
        self.store = store or IntervalStore(db)
        self.tokens = tokens or TokenAuthority(db)
    
    def export_feed(self, vehicle_id: str, token: str) -> CalendarDocument:
        """
        Render the public feed of a vehicle.
        
        Raises:
            VehicleNotFoundError: Unknown vehicle
            AuthError: Token missing, revoked or rotated away
        """
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(CALENDAR_NOT_FOUND)
        if not self.tokens.verify(vehicle_id, token):
            logger.info(f"Rejected calendar feed request for vehicle {vehicle_id}")
            raise AuthError(CALENDAR_NOT_FOUND)
        
        return CalendarDocument(
            content=self.render(vehicle),
            filename=calendar_filename(vehicle.name)
        )
    
    def _describe(self, vehicle: Vehicle, interval: DateInterval):
        if interval.source_kind == SourceKind.BOOKING:
            return "Reserved", f"Vehicle booking ({vehicle.name})"
        if interval.source_kind == SourceKind.EXTERNAL:
            return "Reserved", "Booked on another platform"
        return "Blocked", interval.label or "Not available"
    
    def render(self, vehicle: Vehicle) -> bytes:
        """Every confirmed booking, external event and manual block of the vehicle"""
        intervals: List[DateInterval] = sorted(
            self.store.intervals(vehicle.id),
            key=lambda i: (KIND_ORDER[i.source_kind], i.start_date, i.record_id)
        )
        
        cal = Calendar()
        cal.add("prodid", settings.calendar_product_id)
        cal.add("version", "2.0")
        cal.add("calscale", "GREGORIAN")
        cal.add("method", "PUBLISH")
        cal.add("x-wr-calname", f"{vehicle.name} Availability Calendar")
        
        for interval in intervals:
            summary, description = self._describe(vehicle, interval)
            
            event = Event()
            event.add("uid", event_uid(interval))
            event.add("dtstamp", _stamp(interval))
            event.add("dtstart", interval.start_date)
            # DTEND of an all-day event is exclusive
            event.add("dtend", interval.end_date + ONE_DAY)
            event.add("summary", summary)
            event.add("description", description)
            event.add("transp", "OPAQUE")
            event.add("status", "CONFIRMED")
            cal.add_component(event)
        
        return cal.to_ical()
