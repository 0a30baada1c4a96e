"""
iCalendar parsing for inbound feeds.

Turns an RFC 5545 document into all-day date ranges keyed by event UID.

Rules:
- DTSTART/DTEND are reduced to calendar days; time of day is dropped
- A DATE-valued DTEND is exclusive, so the last blocked day is DTEND - 1
- A DATE-TIME DTEND at exactly midnight is exclusive as well
- Without DTEND, DURATION is used; without either the event covers one day
- STATUS:CANCELLED events are left out
- Unparseable events and repeated UIDs are skipped and counted
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Optional, Union

from icalendar import Calendar

from ..errors import ParseError
from ..utils.dates import ONE_DAY

logger = logging.getLogger(__name__)


@dataclass
class ParsedEvent:
    uid: str
    start_date: date
    end_date: date
    summary: Optional[str] = None


@dataclass
class ParsedFeed:
    """Events in document order, keyed by UID"""
    events: Dict[str, ParsedEvent] = field(default_factory=dict)
    skipped: int = 0
    cancelled: int = 0


def _as_day(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _inclusive_end(start: date, end_value) -> date:
    """Convert an exclusive DTEND (or computed end moment) to the last busy day"""
    end_day = _as_day(end_value)
    if end_day is None:
        raise ValueError(f"Unsupported end value: {end_value!r}")
    
    if isinstance(end_value, datetime) and end_value.time() != time(0):
        last_day = end_day
    else:
        last_day = end_day - ONE_DAY
    
    if last_day < start:
        # Zero-length events still occupy their start day
        if end_day < start:
            raise ValueError(f"Event ends ({end_day}) before it starts ({start})")
        return start
    return last_day


def _synthetic_uid(start: date, end: date, summary: Optional[str]) -> str:
    digest = hashlib.sha256(
        f"{start.isoformat()}|{end.isoformat()}|{summary or ''}".encode("utf-8")
    ).hexdigest()
    return f"synthetic-{digest[:32]}"


def _parse_event(component) -> Optional[ParsedEvent]:
    """Returns None for cancelled events, raises ValueError for broken ones"""
    status = str(component.get("STATUS", "")).strip().upper()
    if status == "CANCELLED":
        return None
    
    start_value = getattr(component.get("DTSTART"), "dt", None)
    start = _as_day(start_value)
    if start is None:
        raise ValueError("Missing or unparseable DTSTART")
    
    dtend = component.get("DTEND")
    duration = component.get("DURATION")
    if dtend is not None:
        end = _inclusive_end(start, getattr(dtend, "dt", None))
    elif duration is not None:
        delta = getattr(duration, "dt", None)
        if not isinstance(delta, timedelta):
            raise ValueError("Unparseable DURATION")
        end = _inclusive_end(start, start_value + delta)
    else:
        end = start
    
    summary = str(component.get("SUMMARY", "")).strip() or None
    
    uid = str(component.get("UID", "")).strip()
    if not uid:
        uid = _synthetic_uid(start, end, summary)
    
    recurrence_id = component.get("RECURRENCE-ID")
    if recurrence_id is not None:
        occurrence = _as_day(getattr(recurrence_id, "dt", None))
        if occurrence is None:
            raise ValueError("Unparseable RECURRENCE-ID")
        uid = f"{uid}#{occurrence.isoformat()}"
    
    return ParsedEvent(uid=uid, start_date=start, end_date=end, summary=summary)


def parse_calendar(document: Union[bytes, str]) -> ParsedFeed:
    """
    Parse one iCalendar document.
    
    Raises:
        ParseError: If the document itself is not a calendar
    """
    if not document or not document.strip():
        raise ParseError("Calendar document is empty")
    
    try:
        calendar = Calendar.from_ical(document)
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ParseError(f"Calendar document is malformed: {e}") from e
    
    if calendar.name != "VCALENDAR":
        raise ParseError(f"Expected VCALENDAR, got {calendar.name}")
    
    parsed = ParsedFeed()
    for component in calendar.walk("VEVENT"):
        try:
            event = _parse_event(component)
        except (ValueError, TypeError, AttributeError) as e:
            parsed.skipped += 1
            logger.debug(f"Skipping unparseable event {component.get('UID')}: {e}")
            continue
        
        if event is None:
            parsed.cancelled += 1
            continue
        if event.uid in parsed.events:
            parsed.skipped += 1
            logger.debug(f"Skipping repeated event UID {event.uid}")
            continue
        
        parsed.events[event.uid] = event
    
    return parsed
