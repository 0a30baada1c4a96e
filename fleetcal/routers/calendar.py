"""
Calendar feed endpoints

- Token management for operators (issue/rotate, revoke)
- Public subscription URL /calendar/{vehicle_id}/{token}

The public endpoint answers an unknown vehicle and a bad token with the
same 404 so a caller cannot probe which vehicles exist.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..errors import AuthError, NotFoundError
from ..schemas.feed import FeedTokenResponse
from ..services.feed_export import CALENDAR_NOT_FOUND, FeedExportService
from ..services.token_authority import TokenAuthority
from ..utils.rate_limiter import limiter

router = APIRouter(tags=["Calendar Feed"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.post(
    "/api/vehicles/{vehicle_id}/feed-token",
    response_model=FeedTokenResponse,
    status_code=status.HTTP_201_CREATED
)
async def issue_feed_token(vehicle_id: str, db: Session = Depends(get_db)):
    """Issue a feed token, or rotate it if one exists"""
    authority = TokenAuthority(db)
    row = authority.issue(vehicle_id)
    return FeedTokenResponse(
        vehicle_id=vehicle_id,
        token=row.token,
        feed_url=authority.feed_url(vehicle_id, row.token),
        issued_at=row.issued_at
    )


@router.delete("/api/vehicles/{vehicle_id}/feed-token", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_feed_token(vehicle_id: str, db: Session = Depends(get_db)):
    TokenAuthority(db).revoke(vehicle_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/calendar/{vehicle_id}/{token}")
@limiter.limit(settings.calendar_feed_rate_limit)
async def calendar_feed(
    request: Request,
    vehicle_id: str,
    token: str,
    db: Session = Depends(get_db)
):
    try:
        document = FeedExportService(db).export_feed(vehicle_id, token)
    except (AuthError, NotFoundError):
        return PlainTextResponse(
            CALENDAR_NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
            headers=NO_CACHE_HEADERS
        )
    
    return Response(
        content=document.content,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{document.filename}"',
            **NO_CACHE_HEADERS,
        }
    )
