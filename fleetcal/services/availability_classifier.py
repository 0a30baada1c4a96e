"""
Availability Classifier

Maps (vehicle, day) to a DateStatus by merging the three interval sources.
Nothing is cached: every call reads the Interval Store afresh.

Precedence (highest first):
1. confirmed booking  -> booked-confirmed
2. external event     -> booked-external
3. manual block       -> blocked-manual
4. otherwise          -> available
"""

import enum
import logging
from collections import Counter
from datetime import date
from typing import Dict, Iterable, Iterator, Optional, Tuple

from sqlalchemy.orm import Session

from ..errors import VehicleNotFoundError
from ..utils.dates import day_count, iter_days, validate_range
from .interval_store import DateInterval, IntervalStore, SourceKind

logger = logging.getLogger(__name__)

# Longest window a single range query may cover (two years, leap day included)
MAX_RANGE_DAYS = 731


class DateStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED_CONFIRMED = "booked-confirmed"
    BLOCKED_MANUAL = "blocked-manual"
    BOOKED_EXTERNAL = "booked-external"


# Highest precedence first
PRECEDENCE: Tuple[Tuple[SourceKind, DateStatus], ...] = (
    (SourceKind.BOOKING, DateStatus.BOOKED_CONFIRMED),
    (SourceKind.EXTERNAL, DateStatus.BOOKED_EXTERNAL),
    (SourceKind.MANUAL_BLOCK, DateStatus.BLOCKED_MANUAL),
)


def classify_day(day: date, intervals: Iterable[DateInterval]) -> DateStatus:
    """Pure precedence rule over an already-loaded set of intervals"""
    kinds = {interval.source_kind for interval in intervals if interval.contains(day)}
    for kind, status in PRECEDENCE:
        if kind in kinds:
            return status
    return DateStatus.AVAILABLE


class ClassifiedRange:
    """
    Lazy, finite, restartable sequence of (day, DateStatus).
    
    Each iteration loads the intervals of the window once and then yields one
    day at a time, so iterating twice reflects any write in between.
    """
    
    def __init__(self, store: IntervalStore, vehicle_id: str, start: date, end: date):
        self._store = store
        self.vehicle_id = vehicle_id
        self.start = start
        self.end = end
    
    def __iter__(self) -> Iterator[Tuple[date, DateStatus]]:
        intervals = self._store.intervals(self.vehicle_id, self.start, self.end)
        for day in iter_days(self.start, self.end):
            yield day, classify_day(day, intervals)
    
    def __len__(self) -> int:
        return day_count(self.start, self.end)


class AvailabilityClassifier:
    """
    Read-side availability API.
    
    is_range_available() is the predicate the booking flow must call both
    before offering a range and again inside its commit (see booking_gate).
    """
    
    def __init__(self, db: Session, store: Optional[IntervalStore] = None):
        self.db = db
        self.store = store or IntervalStore(db)
    
    def _require_vehicle(self, vehicle_id: str) -> None:
        if not self.store.vehicle_exists(vehicle_id):
            raise VehicleNotFoundError(f"Vehicle {vehicle_id} not found")
    
    def classify(self, vehicle_id: str, day: date) -> DateStatus:
        self._require_vehicle(vehicle_id)
        return classify_day(day, self.store.intervals(vehicle_id, day, day))
    
    def classify_range(self, vehicle_id: str, start: date, end: date) -> ClassifiedRange:
        validate_range(start, end, MAX_RANGE_DAYS)
        self._require_vehicle(vehicle_id)
        return ClassifiedRange(self.store, vehicle_id, start, end)
    
    def is_range_available(
        self,
        vehicle_id: str,
        start: date,
        end: date,
        exclude_booking_id: Optional[str] = None
    ) -> bool:
        """True iff every day of [start, end] classifies as available"""
        validate_range(start, end)
        self._require_vehicle(vehicle_id)
        
        # Any interval touching the window makes at least one day unavailable
        intervals = self.store.intervals(vehicle_id, start, end, exclude_booking_id)
        return not intervals
    
    def summarize(self, vehicle_id: str, start: date, end: date) -> Dict[str, int]:
        """Day counts per status over [start, end]"""
        counts = Counter(status for _, status in self.classify_range(vehicle_id, start, end))
        return {status.value: counts.get(status, 0) for status in DateStatus}
