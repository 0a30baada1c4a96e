"""
Feed Ingestion Service

Pulls operator-registered external iCal feeds and mirrors their events as
ExternalEvent rows.

A sync runs in two phases:
1. Fetch + parse, with no database lock held
2. Reconcile the parsed set against the stored set under the feed lock:
   new UIDs are added, changed ones updated, vanished ones removed

A fetch or parse failure leaves the stored events untouched and is recorded
on the feed (last_error, consecutive_failures).
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx
from sqlalchemy.orm import Session

from .. import __version__
from ..config import settings
from ..database import SessionLocal
from ..errors import (
    CalendarError,
    FeedNotFoundError,
    FeedSyncError,
    FetchError,
    InvalidFeedError,
    VehicleNotFoundError,
)
from ..models.external_feed import ExternalFeed
from ..utils.db_helpers import KeyedLock, acquire_row_lock, utcnow
from ..utils.logging_config import get_logger
from .ical_parser import ParsedFeed, parse_calendar
from .interval_store import IntervalStore

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 1000

# One reconciliation per feed at a time within this process
_feed_locks = KeyedLock()


@dataclass
class SyncResult:
    """Counts from reconciling one feed"""
    added: int = 0
    updated: int = 0
    removed: int = 0
    unchanged: int = 0
    skipped: int = 0
    
    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)
    
    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class SweepSummary:
    """Outcome of syncing every registered feed"""
    started_at: datetime
    finished_at: Optional[datetime] = None
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: Dict[str, SyncResult] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)


def normalize_feed_url(url: str) -> str:
    """
    Validate a feed URL and map webcal:// to https://.
    
    Raises:
        InvalidFeedError: If the URL is not an absolute http(s)/webcal URL
    """
    url = (url or "").strip()
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    
    if scheme == "webcal":
        parts = parts._replace(scheme="https")
    elif scheme not in ("http", "https"):
        raise InvalidFeedError(f"Unsupported feed URL scheme: {parts.scheme or '(none)'}")
    
    if not parts.netloc:
        raise InvalidFeedError("Feed URL has no host")
    
    return urlunsplit(parts)


class FeedFetcher:
    """
    Downloads one calendar document over HTTP.
    
    The body is streamed so oversized documents are cut off early. The
    timeout is a deadline for the whole download, not per read.
    """
    
    def __init__(
        self,
        timeout: Optional[float] = None,
        max_bytes: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.timeout = timeout if timeout is not None else settings.feed_fetch_timeout_seconds
        self.max_bytes = max_bytes if max_bytes is not None else settings.feed_max_bytes
        self.transport = transport
    
    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.5",
            "User-Agent": f"fleetcal/{__version__}",
        }
    
    def fetch(self, url: str) -> bytes:
        """
        Raises:
            FetchError: On timeout, transport error, non-2xx status or oversize body
        """
        url = normalize_feed_url(url)
        deadline = time.monotonic() + self.timeout

        try:
            with httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self._headers(),
                transport=self.transport
            ) as client:
                with client.stream("GET", url) as response:
                    if response.status_code >= 400:
                        raise FetchError(f"Feed returned HTTP {response.status_code}")
                    
                    chunks: List[bytes] = []
                    size = 0
                    for chunk in response.iter_bytes():
                        if time.monotonic() > deadline:
                            raise FetchError(
                                f"Timed out after {self.timeout}s fetching feed"
                            )
                        size += len(chunk)
                        if size > self.max_bytes:
                            raise FetchError(
                                f"Feed document exceeds {self.max_bytes} bytes"
                            )
                        chunks.append(chunk)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out after {self.timeout}s fetching feed") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch feed: {e.__class__.__name__}: {e}") from e
        
        return b"".join(chunks)


class FeedIngestionService:
    """
    Registers external feeds and keeps their events in sync.
    """
    
    def __init__(
        self,
        db: Session,
        fetcher: Optional[FeedFetcher] = None,
        store: Optional[IntervalStore] = None
    ):
        self.db = db
        self.fetcher = fetcher or FeedFetcher()
        self.store = store or IntervalStore(db)
    
    # ==================
    # Registration
    # ==================
    
    def register_feed(
        self,
        vehicle_id: str,
        feed_name: str,
        feed_url: str,
        description: Optional[str] = None
    ) -> ExternalFeed:
        """
        Register a feed for a vehicle. The first sync is left to the caller.
        
        Raises:
            VehicleNotFoundError: If the vehicle does not exist
            InvalidFeedError: If the name is blank or the URL is unusable
        """
        feed_name = (feed_name or "").strip()
        if not feed_name:
            raise InvalidFeedError("Feed name is required")
        feed_url = normalize_feed_url(feed_url)
        
        if not self.store.vehicle_exists(vehicle_id):
            raise VehicleNotFoundError(f"Vehicle {vehicle_id} not found")
        
        feed = self.store.add_feed(
            vehicle_id, feed_name, feed_url, (description or "").strip() or None
        )
        self.db.commit()
        self.db.refresh(feed)
        
        logger.info(f"External feed {feed.id} ({feed_name}) registered for vehicle {vehicle_id}")
        return feed
    
    def list_feeds(self, vehicle_id: str) -> List[ExternalFeed]:
        if not self.store.vehicle_exists(vehicle_id):
            raise VehicleNotFoundError(f"Vehicle {vehicle_id} not found")
        return self.store.list_feeds(vehicle_id)
    
    def get_feed(self, feed_id: str) -> ExternalFeed:
        feed = self.store.get_feed(feed_id)
        if feed is None:
            raise FeedNotFoundError(f"Feed {feed_id} not found")
        return feed
    
    def delete_feed(self, feed_id: str) -> bool:
        """Delete a feed and every event it produced. Idempotent."""
        with _feed_locks.hold(feed_id):
            try:
                removed = self.store.delete_feed(feed_id)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        
        if removed:
            logger.info(f"External feed {feed_id} deleted with its events")
        return bool(removed)
    
    # ==================
    # Sync
    # ==================
    
    def sync(self, feed_id: str) -> SyncResult:
        """
        Fetch, parse and reconcile one feed.
        
        Raises:
            FeedNotFoundError: If the feed does not exist
            FetchError / ParseError: Stored events are left as they were
        """
        feed = self.get_feed(feed_id)
        feed_url = feed.feed_url
        vehicle_id = feed.vehicle_id
        
        # End the read transaction before going to the network
        self.db.rollback()
        
        started = time.monotonic()
        try:
            parsed = parse_calendar(self.fetcher.fetch(feed_url))
        except FeedSyncError as e:
            duration_ms = (time.monotonic() - started) * 1000
            logger.feed_sync_failed(feed_id, e, duration_ms)
            self._record_failure(feed_id, e)
            raise
        
        result = self._reconcile(feed_id, vehicle_id, parsed)
        
        duration_ms = (time.monotonic() - started) * 1000
        logger.feed_synced(feed_id, result.as_dict(), duration_ms)
        return result
    
    def _reconcile(self, feed_id: str, vehicle_id: str, parsed: ParsedFeed) -> SyncResult:
        """Apply the parsed event set in one transaction"""
        result = SyncResult(skipped=parsed.skipped)
        
        with _feed_locks.hold(feed_id):
            try:
                feed = acquire_row_lock(self.db, ExternalFeed, ExternalFeed.id == feed_id)
                if feed is None:
                    raise FeedNotFoundError(f"Feed {feed_id} was deleted during sync")
                
                stored = self.store.feed_events(feed_id)
                
                for uid, incoming in parsed.events.items():
                    existing = stored.pop(uid, None)
                    if existing is None:
                        self.store.add_external_event(
                            feed_id,
                            vehicle_id,
                            uid,
                            incoming.start_date,
                            incoming.end_date,
                            incoming.summary
                        )
                        result.added += 1
                    elif (
                        existing.start_date != incoming.start_date
                        or existing.end_date != incoming.end_date
                        or existing.summary != incoming.summary
                    ):
                        existing.start_date = incoming.start_date
                        existing.end_date = incoming.end_date
                        existing.summary = incoming.summary
                        result.updated += 1
                    else:
                        result.unchanged += 1
                
                # Whatever the feed no longer lists was cancelled upstream
                for leftover in stored.values():
                    self.db.delete(leftover)
                    result.removed += 1
                
                feed.last_synced_at = utcnow()
                feed.last_error = None
                feed.last_error_at = None
                feed.consecutive_failures = 0
                
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        
        return result
    
    def _record_failure(self, feed_id: str, error: Exception) -> None:
        """Remember the failure on the feed; events are not touched"""
        try:
            feed = self.store.get_feed(feed_id)
            if feed is None:
                return
            feed.last_error = str(error)[:MAX_ERROR_LENGTH]
            feed.last_error_at = utcnow()
            feed.consecutive_failures = (feed.consecutive_failures or 0) + 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Could not record sync failure for feed {feed_id}: {e}")


def sync_all_feeds(
    session_factory: Callable[[], Session] = SessionLocal,
    fetcher: Optional[FeedFetcher] = None,
    max_workers: Optional[int] = None
) -> SweepSummary:
    """
    Sync every registered feed with bounded parallelism.
    
    Each feed gets its own session. One feed failing never stops the others.
    """
    summary = SweepSummary(started_at=utcnow())
    max_workers = max_workers or settings.feed_sync_max_parallel
    fetcher = fetcher or FeedFetcher()
    
    db = session_factory()
    try:
        feed_ids = [row[0] for row in db.query(ExternalFeed.id).order_by(ExternalFeed.created_at).all()]
    finally:
        db.close()
    
    summary.total = len(feed_ids)
    if not feed_ids:
        summary.finished_at = utcnow()
        return summary
    
    def _sync_one(feed_id: str) -> SyncResult:
        session = session_factory()
        try:
            return FeedIngestionService(session, fetcher=fetcher).sync(feed_id)
        finally:
            session.close()
    
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="feed-sync") as pool:
        futures = {pool.submit(_sync_one, feed_id): feed_id for feed_id in feed_ids}
        
        for future in as_completed(futures):
            feed_id = futures[future]
            try:
                summary.results[feed_id] = future.result()
                summary.succeeded += 1
            except CalendarError as e:
                summary.errors[feed_id] = f"{e.code}: {e.message}"
                summary.failed += 1
            except Exception as e:
                logger.exception(f"Unexpected error syncing feed {feed_id}")
                summary.errors[feed_id] = f"{e.__class__.__name__}: {e}"
                summary.failed += 1
    
    summary.finished_at = utcnow()
    logger.info(
        f"Feed sweep finished: {summary.succeeded}/{summary.total} ok, {summary.failed} failed"
    )
    return summary
