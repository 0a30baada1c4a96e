from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
import logging

from ..database import get_db, get_session_factory
from ..errors import FeedSyncError
from ..schemas.feed import (
    ExternalFeedCreate,
    ExternalFeedResponse,
    SweepSummaryResponse,
    SyncResultResponse,
)
from ..services.feed_ingestion import FeedIngestionService, sync_all_feeds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["External Feeds"])


@router.get("/vehicles/{vehicle_id}/feeds", response_model=List[ExternalFeedResponse])
async def list_feeds(vehicle_id: str, db: Session = Depends(get_db)):
    return FeedIngestionService(db).list_feeds(vehicle_id)


@router.post(
    "/vehicles/{vehicle_id}/feeds",
    response_model=ExternalFeedResponse,
    status_code=status.HTTP_201_CREATED
)
def register_feed(
    vehicle_id: str,
    payload: ExternalFeedCreate,
    db: Session = Depends(get_db)
):
    """
    Register an external iCal feed. With sync_now the first sync runs
    immediately; a failed first sync still keeps the registration.
    """
    service = FeedIngestionService(db)
    feed = service.register_feed(
        vehicle_id, payload.feed_name, payload.feed_url, payload.description
    )
    
    if payload.sync_now:
        try:
            service.sync(feed.id)
        except FeedSyncError as e:
            logger.warning(f"First sync of feed {feed.id} failed: {e}")
        feed = service.get_feed(feed.id)
    
    return feed


@router.get("/feeds/{feed_id}", response_model=ExternalFeedResponse)
async def get_feed(feed_id: str, db: Session = Depends(get_db)):
    return FeedIngestionService(db).get_feed(feed_id)


@router.delete("/feeds/{feed_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feed(feed_id: str, db: Session = Depends(get_db)):
    FeedIngestionService(db).delete_feed(feed_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Network-bound endpoints are plain functions so they run in the threadpool

@router.post("/feeds/sync-all", response_model=SweepSummaryResponse)
def sync_feeds(session_factory=Depends(get_session_factory)):
    summary = sync_all_feeds(session_factory)
    return SweepSummaryResponse(
        started_at=summary.started_at,
        finished_at=summary.finished_at,
        total=summary.total,
        succeeded=summary.succeeded,
        failed=summary.failed,
        errors=summary.errors
    )


@router.post("/feeds/{feed_id}/sync", response_model=SyncResultResponse)
def sync_feed(feed_id: str, db: Session = Depends(get_db)):
    result = FeedIngestionService(db).sync(feed_id)
    return SyncResultResponse(feed_id=feed_id, **result.as_dict())
