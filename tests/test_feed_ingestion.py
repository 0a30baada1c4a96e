"""
Feed Ingestion Tests

Tests cover:
- Feed registration and URL normalization
- Reconciliation: add / update / remove / unchanged (scenario C)
- Stale-but-present behaviour on fetch and parse failures
- Sweep isolation between feeds
- HTTP fetcher limits (status, size, timeout) via httpx.MockTransport
- Whole-download deadline against a server that trickles its body
"""

import pytest
import socket
import threading
import time
from datetime import date
from unittest.mock import MagicMock

import httpx

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fleetcal.errors import (
    FeedNotFoundError,
    FetchError,
    InvalidFeedError,
    ParseError,
    VehicleNotFoundError,
)
from fleetcal.models import ExternalEvent, ExternalFeed
from fleetcal.services.availability_classifier import AvailabilityClassifier, DateStatus
from fleetcal.services.feed_ingestion import (
    FeedFetcher,
    FeedIngestionService,
    normalize_feed_url,
    sync_all_feeds,
)


def _event(uid, start, end, summary="Reserved"):
    return (
        "BEGIN:VEVENT\r\n"
        f"UID:{uid}\r\n"
        f"DTSTART;VALUE=DATE:{start}\r\n"
        f"DTEND;VALUE=DATE:{end}\r\n"
        f"SUMMARY:{summary}\r\n"
        "END:VEVENT\r\n"
    )


def _calendar(*events):
    return (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Test//EN\r\n"
        + "".join(events)
        + "END:VCALENDAR\r\n"
    ).encode("utf-8")


def _fetcher(*documents):
    """Fetcher mock returning the given documents (or raising exceptions) in order"""
    fetcher = MagicMock(spec=FeedFetcher)
    fetcher.fetch.side_effect = list(documents)
    return fetcher


@pytest.fixture
def feed(db, vehicle):
    service = FeedIngestionService(db, fetcher=_fetcher())
    return service.register_feed(vehicle.id, "Turo", "https://example.com/turo.ics")


class TestRegistration:
    
    def test_webcal_is_rewritten(self):
        assert normalize_feed_url("webcal://cal.example.com/x.ics") == "https://cal.example.com/x.ics"
    
    @pytest.mark.parametrize("url", ["ftp://example.com/a.ics", "not a url", "https://", ""])
    def test_invalid_urls(self, url):
        with pytest.raises(InvalidFeedError):
            normalize_feed_url(url)
    
    def test_register_and_list(self, db, vehicle):
        service = FeedIngestionService(db, fetcher=_fetcher())
        feed = service.register_feed(vehicle.id, "  Turo ", "webcal://example.com/t.ics", "main account")
        
        assert feed.feed_name == "Turo"
        assert feed.feed_url == "https://example.com/t.ics"
        assert feed.last_synced_at is None
        assert [f.id for f in service.list_feeds(vehicle.id)] == [feed.id]
    
    def test_blank_name_rejected(self, db, vehicle):
        with pytest.raises(InvalidFeedError):
            FeedIngestionService(db).register_feed(vehicle.id, "  ", "https://example.com/t.ics")
    
    def test_unknown_vehicle(self, db):
        with pytest.raises(VehicleNotFoundError):
            FeedIngestionService(db).register_feed("missing", "Turo", "https://example.com/t.ics")
    
    def test_delete_cascades_to_events(self, db, vehicle, feed):
        doc = _calendar(_event("abc", "20250701", "20250704"))
        FeedIngestionService(db, fetcher=_fetcher(doc)).sync(feed.id)
        feed_id = feed.id
        
        service = FeedIngestionService(db)
        assert service.delete_feed(feed_id) is True
        assert service.delete_feed(feed_id) is False
        assert db.query(ExternalEvent).count() == 0
        with pytest.raises(FeedNotFoundError):
            service.get_feed(feed_id)


class TestSync:
    
    def test_add_then_remove_upstream_event(self, db, vehicle, feed):
        """Scenario C"""
        first = _calendar(_event("abc", "20250701", "20250704"))
        second = _calendar()
        service = FeedIngestionService(db, fetcher=_fetcher(first, second))
        classifier = AvailabilityClassifier(db)
        
        result = service.sync(feed.id)
        assert result.added == 1
        assert classifier.classify(vehicle.id, date(2025, 7, 2)) == DateStatus.BOOKED_EXTERNAL
        
        result = service.sync(feed.id)
        assert result.removed == 1
        assert classifier.classify(vehicle.id, date(2025, 7, 2)) == DateStatus.AVAILABLE
    
    def test_second_sync_of_same_document_changes_nothing(self, db, feed):
        doc = _calendar(
            _event("a", "20250701", "20250703"),
            _event("b", "20250710", "20250712"),
        )
        service = FeedIngestionService(db, fetcher=_fetcher(doc, doc))
        
        service.sync(feed.id)
        result = service.sync(feed.id)
        
        assert (result.added, result.updated, result.removed, result.unchanged) == (0, 0, 0, 2)
        assert not result.changed
    
    def test_only_vanished_event_is_removed(self, db, feed):
        before = _calendar(
            _event("a", "20250701", "20250703"),
            _event("b", "20250710", "20250712"),
        )
        after = _calendar(_event("b", "20250710", "20250712"))
        service = FeedIngestionService(db, fetcher=_fetcher(before, after))
        
        service.sync(feed.id)
        b_id = db.query(ExternalEvent).filter(ExternalEvent.external_uid == "b").one().id
        result = service.sync(feed.id)
        
        assert (result.removed, result.unchanged) == (1, 1)
        remaining = db.query(ExternalEvent).all()
        assert [(e.external_uid, e.id) for e in remaining] == [("b", b_id)]
    
    def test_changed_event_is_updated_in_place(self, db, feed):
        before = _calendar(_event("a", "20250701", "20250703", "Reserved"))
        after = _calendar(_event("a", "20250702", "20250706", "Extended"))
        service = FeedIngestionService(db, fetcher=_fetcher(before, after))
        
        service.sync(feed.id)
        event_id = db.query(ExternalEvent).one().id
        result = service.sync(feed.id)
        
        assert result.updated == 1
        event = db.query(ExternalEvent).one()
        assert event.id == event_id
        assert (event.start_date, event.end_date, event.summary) == (
            date(2025, 7, 2), date(2025, 7, 5), "Extended"
        )
    
    def test_malformed_event_is_skipped_not_fatal(self, db, feed):
        doc = _calendar(
            _event("ok", "20250701", "20250703"),
            "BEGIN:VEVENT\r\nUID:broken\r\nSUMMARY:no dates\r\nEND:VEVENT\r\n",
        )
        
        result = FeedIngestionService(db, fetcher=_fetcher(doc)).sync(feed.id)
        
        assert (result.added, result.skipped) == (1, 1)
    
    def test_success_updates_sync_state(self, db, feed):
        FeedIngestionService(db, fetcher=_fetcher(_calendar())).sync(feed.id)
        
        stored = db.query(ExternalFeed).filter(ExternalFeed.id == feed.id).one()
        assert stored.last_synced_at is not None
        assert stored.consecutive_failures == 0
    
    def test_unknown_feed(self, db):
        with pytest.raises(FeedNotFoundError):
            FeedIngestionService(db, fetcher=_fetcher()).sync("missing")


class TestSyncFailures:
    """A failed fetch or parse keeps the previous events"""
    
    def _seed(self, db, feed):
        doc = _calendar(_event("abc", "20250701", "20250704"))
        FeedIngestionService(db, fetcher=_fetcher(doc)).sync(feed.id)
        return db.query(ExternalFeed).filter(ExternalFeed.id == feed.id).one().last_synced_at
    
    def test_fetch_error_preserves_events(self, db, feed):
        synced_at = self._seed(db, feed)
        service = FeedIngestionService(db, fetcher=_fetcher(FetchError("Feed returned HTTP 503")))
        
        with pytest.raises(FetchError):
            service.sync(feed.id)
        
        assert db.query(ExternalEvent).count() == 1
        stored = db.query(ExternalFeed).filter(ExternalFeed.id == feed.id).one()
        assert stored.last_synced_at == synced_at
        assert stored.last_error == "Feed returned HTTP 503"
        assert stored.consecutive_failures == 1
    
    def test_parse_error_preserves_events(self, db, feed):
        self._seed(db, feed)
        service = FeedIngestionService(db, fetcher=_fetcher(b"<html>gone</html>"))
        
        with pytest.raises(ParseError):
            service.sync(feed.id)
        
        assert db.query(ExternalEvent).count() == 1
    
    def test_success_after_failure_resets_health(self, db, feed):
        service = FeedIngestionService(db, fetcher=_fetcher(FetchError("down"), _calendar()))
        
        with pytest.raises(FetchError):
            service.sync(feed.id)
        service.sync(feed.id)
        
        stored = db.query(ExternalFeed).filter(ExternalFeed.id == feed.id).one()
        assert stored.consecutive_failures == 0
        assert stored.last_error is None


class TestSweep:
    
    def test_one_failing_feed_does_not_stop_others(self, db, session_factory, vehicle):
        service = FeedIngestionService(db)
        good = service.register_feed(vehicle.id, "Good", "https://good.example.com/a.ics")
        bad = service.register_feed(vehicle.id, "Bad", "https://bad.example.com/a.ics")
        good_id, bad_id = good.id, bad.id
        
        def fetch(url):
            if "bad." in url:
                raise FetchError("Timed out after 10.0s fetching feed")
            return _calendar(_event("abc", "20250701", "20250704"))
        
        fetcher = MagicMock(spec=FeedFetcher)
        fetcher.fetch.side_effect = fetch
        
        summary = sync_all_feeds(session_factory, fetcher=fetcher, max_workers=2)
        
        assert (summary.total, summary.succeeded, summary.failed) == (2, 1, 1)
        assert summary.results[good_id].added == 1
        assert bad_id in summary.errors
        assert summary.errors[bad_id].startswith("feed_fetch_failed")
    
    def test_no_feeds(self, session_factory):
        summary = sync_all_feeds(session_factory, fetcher=_fetcher())
        
        assert summary.total == 0
        assert summary.finished_at is not None


class TestFeedFetcher:
    """Real httpx client over a mock transport"""
    
    def _fetcher(self, handler, **kwargs):
        return FeedFetcher(transport=httpx.MockTransport(handler), **kwargs)
    
    def test_returns_body(self):
        fetcher = self._fetcher(lambda request: httpx.Response(200, content=b"BEGIN:VCALENDAR"))
        
        assert fetcher.fetch("https://example.com/a.ics") == b"BEGIN:VCALENDAR"
    
    def test_webcal_fetched_over_https(self):
        seen = []
        
        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, content=b"")
        
        self._fetcher(handler).fetch("webcal://example.com/a.ics")
        
        assert seen == ["https://example.com/a.ics"]
    
    def test_error_status(self):
        fetcher = self._fetcher(lambda request: httpx.Response(404))
        
        with pytest.raises(FetchError, match="404"):
            fetcher.fetch("https://example.com/a.ics")
    
    def test_oversize_document(self):
        fetcher = self._fetcher(
            lambda request: httpx.Response(200, content=b"x" * 2048),
            max_bytes=1024
        )
        
        with pytest.raises(FetchError, match="exceeds"):
            fetcher.fetch("https://example.com/a.ics")
    
    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)
        
        with pytest.raises(FetchError, match="Timed out"):
            self._fetcher(handler).fetch("https://example.com/a.ics")
    
    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)
        
        with pytest.raises(FetchError):
            self._fetcher(handler).fetch("https://example.com/a.ics")


@pytest.fixture
def trickling_server():
    """Local HTTP server that sends headers, then one body byte every 0.2s"""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)
    stop = threading.Event()
    
    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            conn.recv(4096)
            conn.sendall(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: text/calendar\r\n"
                b"Content-Length: 100000\r\n\r\n"
            )
            while not stop.is_set():
                try:
                    conn.sendall(b"x")
                except OSError:
                    return
                stop.wait(0.2)
    
    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    host, port = listener.getsockname()
    
    yield f"http://{host}:{port}/slow.ics"
    
    stop.set()
    listener.close()
    thread.join(timeout=5)


class TestFetchDeadline:
    """The fetch timeout bounds the whole download"""
    
    def test_trickling_body_hits_deadline(self, trickling_server):
        fetcher = FeedFetcher(timeout=1.0, transport=httpx.HTTPTransport())
        
        started = time.monotonic()
        with pytest.raises(FetchError, match="Timed out"):
            fetcher.fetch(trickling_server)
        elapsed = time.monotonic() - started
        
        assert elapsed < 3
