# Services package
from .interval_store import IntervalStore, DateInterval, SourceKind
from .availability_classifier import (
    AvailabilityClassifier, ClassifiedRange, DateStatus,
    PRECEDENCE, MAX_RANGE_DAYS, classify_day
)
from .block_manager import BlockManager, CompanyClearResult
from .booking_gate import BookingGate
from .ical_parser import ParsedEvent, ParsedFeed, parse_calendar
from .feed_ingestion import (
    FeedFetcher,
    FeedIngestionService,
    SyncResult,
    SweepSummary,
    normalize_feed_url,
    sync_all_feeds
)
from .token_authority import TokenAuthority
from .feed_export import FeedExportService, CalendarDocument

__all__ = [
    "IntervalStore", "DateInterval", "SourceKind",
    "AvailabilityClassifier", "ClassifiedRange", "DateStatus",
    "PRECEDENCE", "MAX_RANGE_DAYS", "classify_day",
    "BlockManager", "CompanyClearResult",
    "BookingGate",
    "ParsedEvent", "ParsedFeed", "parse_calendar",
    "FeedFetcher", "FeedIngestionService", "SyncResult", "SweepSummary",
    "normalize_feed_url", "sync_all_feeds",
    "TokenAuthority",
    "FeedExportService", "CalendarDocument",
]
