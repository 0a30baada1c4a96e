"""
Token Authority

Issues, verifies and revokes the capability token that gates a vehicle's
public calendar feed. One active token per vehicle; issuing again rotates it
and the old value stops working immediately.
"""

import hmac
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.feed_token import FeedToken
from ..utils.db_helpers import utcnow, vehicle_transaction
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class TokenAuthority:
    
    def __init__(self, db: Session):
        self.db = db
    
    def _row(self, vehicle_id: str) -> Optional[FeedToken]:
        return self.db.query(FeedToken).filter(FeedToken.vehicle_id == vehicle_id).first()
    
    def issue(self, vehicle_id: str) -> FeedToken:
        """
        Issue (or rotate) the feed token of a vehicle.
        
        Raises:
            VehicleNotFoundError: If the vehicle does not exist
        """
        value = secrets.token_urlsafe(settings.feed_token_bytes)
        
        with vehicle_transaction(self.db, vehicle_id):
            row = self._row(vehicle_id)
            rotated = row is not None
            if row is None:
                row = FeedToken(vehicle_id=vehicle_id, token=value, issued_at=utcnow())
                self.db.add(row)
            else:
                row.token = value
                row.issued_at = utcnow()
        
        self.db.refresh(row)
        logger.token_issued(vehicle_id, rotated)
        return row
    
    def verify(self, vehicle_id: str, token: Optional[str]) -> bool:
        """Constant-time comparison against the vehicle's current token"""
        if not token:
            return False
        row = self._row(vehicle_id)
        if row is None:
            return False
        return hmac.compare_digest(row.token.encode("utf-8"), token.encode("utf-8"))
    
    def revoke(self, vehicle_id: str) -> bool:
        """Drop the vehicle's token; its feed URL stops working. Idempotent."""
        with vehicle_transaction(self.db, vehicle_id):
            removed = self.db.query(FeedToken).filter(
                FeedToken.vehicle_id == vehicle_id
            ).delete(synchronize_session=False)
        
        if removed:
            logger.info(f"Feed token revoked for vehicle {vehicle_id}")
        return bool(removed)
    
    def feed_url(self, vehicle_id: str, token: Optional[str] = None) -> Optional[str]:
        """Public subscription URL; uses the current token when none is given"""
        if token is None:
            row = self._row(vehicle_id)
            if row is None:
                return None
            token = row.token
        base = settings.public_base_url.rstrip("/")
        return f"{base}/calendar/{vehicle_id}/{token}"
