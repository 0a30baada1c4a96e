"""
Script to manually sync external calendar feeds

    python run_sync.py            # every registered feed
    python run_sync.py <feed_id>  # one feed
"""
import sys
sys.path.insert(0, '.')

from fleetcal.database import SessionLocal
from fleetcal.errors import CalendarError
from fleetcal.services.feed_ingestion import FeedIngestionService, sync_all_feeds


def sync_one(feed_id: str) -> int:
    db = SessionLocal()
    try:
        result = FeedIngestionService(db).sync(feed_id)
        print(f"Feed {feed_id}:")
        print(f"  added={result.added} updated={result.updated} removed={result.removed}")
        print(f"  unchanged={result.unchanged} skipped={result.skipped}")
        return 0
    except CalendarError as e:
        print(f"Sync failed ({e.code}): {e.message}")
        return 1
    finally:
        db.close()


def sync_all() -> int:
    print("=" * 50)
    print("Syncing all external feeds...")
    print("=" * 50)
    
    summary = sync_all_feeds()
    
    print(f"\nResults:")
    print(f"  Feeds:     {summary.total}")
    print(f"  Succeeded: {summary.succeeded}")
    print(f"  Failed:    {summary.failed}")
    for feed_id, error in summary.errors.items():
        print(f"    {feed_id}: {error}")
    print("=" * 50)
    
    return 1 if summary.failed else 0


def main():
    if len(sys.argv) > 1:
        return sync_one(sys.argv[1])
    return sync_all()


if __name__ == "__main__":
    sys.exit(main())
