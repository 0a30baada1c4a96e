from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime


class ExternalFeedCreate(BaseModel):
    feed_name: str = Field(..., min_length=1, max_length=200)
    feed_url: str = Field(..., min_length=1, max_length=2000)
    description: Optional[str] = Field(None, max_length=2000)
    sync_now: bool = Field(False, description="Run the first sync right after registering")


class ExternalFeedResponse(BaseModel):
    id: str
    vehicle_id: str
    feed_name: str
    feed_url: str
    description: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    consecutive_failures: int = 0
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class SyncResultResponse(BaseModel):
    feed_id: str
    added: int
    updated: int
    removed: int
    unchanged: int
    skipped: int


class SweepSummaryResponse(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    total: int
    succeeded: int
    failed: int
    errors: Dict[str, str] = {}


class FeedTokenResponse(BaseModel):
    vehicle_id: str
    token: str
    feed_url: str
    issued_at: datetime
