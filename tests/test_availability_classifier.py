"""
Availability Classifier Tests

Tests cover:
- Precedence table (pure classify_day)
- classify / classify_range / is_range_available against a real store
- Restartable range iteration
- Range validation
"""

import pytest
from datetime import date, timedelta

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fleetcal.errors import InvalidRangeError, VehicleNotFoundError
from fleetcal.models import BookingStatus, ExternalEvent, ExternalFeed, ManualBlock
from fleetcal.services.availability_classifier import (
    AvailabilityClassifier,
    DateStatus,
    MAX_RANGE_DAYS,
    classify_day,
)
from fleetcal.services.interval_store import DateInterval, SourceKind


def _interval(kind, start, end, record_id="r1"):
    return DateInterval(
        vehicle_id="v1",
        start_date=start,
        end_date=end,
        source_kind=kind,
        record_id=record_id,
    )


def _add_block(db, vehicle_id, start, end):
    block = ManualBlock(vehicle_id=vehicle_id, start_date=start, end_date=end)
    db.add(block)
    db.commit()
    return block


def _add_external(db, vehicle_id, start, end, uid="abc"):
    feed = ExternalFeed(vehicle_id=vehicle_id, feed_name="Other", feed_url="https://example.com/a.ics")
    db.add(feed)
    db.flush()
    event = ExternalEvent(
        feed_id=feed.id, vehicle_id=vehicle_id, external_uid=uid,
        start_date=start, end_date=end
    )
    db.add(event)
    db.commit()
    return event


class TestPrecedence:
    """classify_day is the single place the ordering lives"""
    
    day = date(2025, 6, 3)
    
    def test_no_intervals_is_available(self):
        assert classify_day(self.day, []) == DateStatus.AVAILABLE
    
    def test_interval_not_covering_day_is_ignored(self):
        intervals = [_interval(SourceKind.BOOKING, date(2025, 6, 4), date(2025, 6, 6))]
        assert classify_day(self.day, intervals) == DateStatus.AVAILABLE
    
    def test_each_kind_alone(self):
        span = (date(2025, 6, 1), date(2025, 6, 5))
        assert classify_day(self.day, [_interval(SourceKind.BOOKING, *span)]) == DateStatus.BOOKED_CONFIRMED
        assert classify_day(self.day, [_interval(SourceKind.EXTERNAL, *span)]) == DateStatus.BOOKED_EXTERNAL
        assert classify_day(self.day, [_interval(SourceKind.MANUAL_BLOCK, *span)]) == DateStatus.BLOCKED_MANUAL
    
    def test_external_outranks_manual_block(self):
        span = (date(2025, 6, 1), date(2025, 6, 5))
        intervals = [
            _interval(SourceKind.MANUAL_BLOCK, *span),
            _interval(SourceKind.EXTERNAL, *span),
        ]
        assert classify_day(self.day, intervals) == DateStatus.BOOKED_EXTERNAL
    
    def test_booking_outranks_everything(self):
        span = (date(2025, 6, 1), date(2025, 6, 5))
        intervals = [
            _interval(SourceKind.MANUAL_BLOCK, *span),
            _interval(SourceKind.EXTERNAL, *span),
            _interval(SourceKind.BOOKING, *span),
        ]
        assert classify_day(self.day, intervals) == DateStatus.BOOKED_CONFIRMED
    
    def test_boundaries_are_inclusive(self):
        interval = _interval(SourceKind.MANUAL_BLOCK, date(2025, 6, 1), date(2025, 6, 3))
        assert classify_day(date(2025, 6, 1), [interval]) == DateStatus.BLOCKED_MANUAL
        assert classify_day(date(2025, 6, 3), [interval]) == DateStatus.BLOCKED_MANUAL
        assert classify_day(date(2025, 6, 4), [interval]) == DateStatus.AVAILABLE


class TestClassify:
    """classify() against the store"""
    
    def test_empty_vehicle_available_for_thirty_days(self, db, vehicle):
        """Scenario A"""
        classifier = AvailabilityClassifier(db)
        start = date(2025, 6, 1)
        end = start + timedelta(days=29)
        
        statuses = list(classifier.classify_range(vehicle.id, start, end))
        
        assert len(statuses) == 30
        assert all(status == DateStatus.AVAILABLE for _, status in statuses)
    
    def test_only_confirmed_bookings_count(self, db, vehicle, make_booking):
        make_booking(vehicle.id, date(2025, 6, 1), date(2025, 6, 2), BookingStatus.PENDING.value)
        make_booking(vehicle.id, date(2025, 6, 3), date(2025, 6, 4), BookingStatus.CANCELLED.value)
        make_booking(vehicle.id, date(2025, 6, 5), date(2025, 6, 6), BookingStatus.COMPLETED.value)
        classifier = AvailabilityClassifier(db)
        
        assert classifier.classify(vehicle.id, date(2025, 6, 1)) == DateStatus.AVAILABLE
        assert classifier.classify(vehicle.id, date(2025, 6, 3)) == DateStatus.AVAILABLE
        assert classifier.classify(vehicle.id, date(2025, 6, 5)) == DateStatus.BOOKED_CONFIRMED
    
    def test_precedence_against_store(self, db, vehicle, make_booking):
        _add_block(db, vehicle.id, date(2025, 6, 1), date(2025, 6, 10))
        _add_external(db, vehicle.id, date(2025, 6, 3), date(2025, 6, 8))
        make_booking(vehicle.id, date(2025, 6, 5), date(2025, 6, 6))
        classifier = AvailabilityClassifier(db)
        
        assert classifier.classify(vehicle.id, date(2025, 6, 2)) == DateStatus.BLOCKED_MANUAL
        assert classifier.classify(vehicle.id, date(2025, 6, 4)) == DateStatus.BOOKED_EXTERNAL
        assert classifier.classify(vehicle.id, date(2025, 6, 5)) == DateStatus.BOOKED_CONFIRMED
    
    def test_classify_is_repeatable(self, db, vehicle):
        _add_block(db, vehicle.id, date(2025, 6, 1), date(2025, 6, 1))
        classifier = AvailabilityClassifier(db)
        
        first = classifier.classify(vehicle.id, date(2025, 6, 1))
        second = classifier.classify(vehicle.id, date(2025, 6, 1))
        
        assert first == second == DateStatus.BLOCKED_MANUAL
    
    def test_other_vehicles_do_not_leak(self, db, make_vehicle):
        a = make_vehicle("A")
        b = make_vehicle("B")
        _add_block(db, a.id, date(2025, 6, 1), date(2025, 6, 5))
        
        assert AvailabilityClassifier(db).classify(b.id, date(2025, 6, 3)) == DateStatus.AVAILABLE
    
    def test_unknown_vehicle(self, db):
        with pytest.raises(VehicleNotFoundError):
            AvailabilityClassifier(db).classify("missing", date(2025, 6, 1))


class TestClassifyRange:
    """Lazy, restartable range classification"""
    
    def test_range_is_restartable_and_fresh(self, db, vehicle):
        classifier = AvailabilityClassifier(db)
        days = classifier.classify_range(vehicle.id, date(2025, 6, 1), date(2025, 6, 3))
        
        before = [status for _, status in days]
        _add_block(db, vehicle.id, date(2025, 6, 2), date(2025, 6, 2))
        after = [status for _, status in days]
        
        assert before == [DateStatus.AVAILABLE] * 3
        assert after == [DateStatus.AVAILABLE, DateStatus.BLOCKED_MANUAL, DateStatus.AVAILABLE]
        assert len(days) == 3
    
    def test_days_are_in_order(self, db, vehicle):
        days = AvailabilityClassifier(db).classify_range(vehicle.id, date(2025, 2, 27), date(2025, 3, 2))
        assert [d for d, _ in days] == [
            date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 2)
        ]
    
    def test_end_before_start(self, db, vehicle):
        with pytest.raises(InvalidRangeError):
            AvailabilityClassifier(db).classify_range(vehicle.id, date(2025, 6, 5), date(2025, 6, 1))
    
    def test_window_too_long(self, db, vehicle):
        start = date(2025, 1, 1)
        with pytest.raises(InvalidRangeError):
            AvailabilityClassifier(db).classify_range(vehicle.id, start, start + timedelta(days=MAX_RANGE_DAYS))
    
    def test_summarize_counts_every_status(self, db, vehicle, make_booking):
        _add_block(db, vehicle.id, date(2025, 6, 1), date(2025, 6, 2))
        make_booking(vehicle.id, date(2025, 6, 3), date(2025, 6, 3))
        
        counts = AvailabilityClassifier(db).summarize(vehicle.id, date(2025, 6, 1), date(2025, 6, 10))
        
        assert counts == {
            "available": 7,
            "booked-confirmed": 1,
            "blocked-manual": 2,
            "booked-external": 0,
        }


class TestIsRangeAvailable:
    
    def test_free_range(self, db, vehicle):
        assert AvailabilityClassifier(db).is_range_available(vehicle.id, date(2025, 6, 1), date(2025, 6, 30))
    
    def test_partial_overlap_is_unavailable(self, db, vehicle):
        _add_external(db, vehicle.id, date(2025, 6, 10), date(2025, 6, 12))
        classifier = AvailabilityClassifier(db)
        
        assert not classifier.is_range_available(vehicle.id, date(2025, 6, 12), date(2025, 6, 20))
        assert classifier.is_range_available(vehicle.id, date(2025, 6, 13), date(2025, 6, 20))
    
    def test_excluded_booking_is_ignored(self, db, vehicle, make_booking):
        booking = make_booking(vehicle.id, date(2025, 6, 1), date(2025, 6, 3))
        classifier = AvailabilityClassifier(db)
        
        assert not classifier.is_range_available(vehicle.id, date(2025, 6, 1), date(2025, 6, 3))
        assert classifier.is_range_available(
            vehicle.id, date(2025, 6, 1), date(2025, 6, 3), exclude_booking_id=booking.id
        )
