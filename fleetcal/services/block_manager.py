"""
Block Manager

Operator-facing manual blocks ("not rentable" ranges).

Every write runs inside vehicle_transaction(), so the conflict check and the
insert happen atomically with respect to other writers of the same vehicle.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import CalendarError, ConflictError, NotFoundError, VehicleNotFoundError
from ..models.manual_block import ManualBlock
from ..models.vehicle import Company
from ..utils.dates import validate_range
from ..utils.db_helpers import vehicle_transaction
from ..utils.logging_config import get_logger
from .availability_classifier import MAX_RANGE_DAYS
from .interval_store import IntervalStore

logger = get_logger(__name__)

MAX_REASON_LENGTH = 500


@dataclass
class CompanyClearResult:
    """Outcome of clearing every vehicle of a company"""
    company_id: str
    vehicles_total: int = 0
    vehicles_cleared: int = 0
    removed: int = 0
    failures: Dict[str, str] = field(default_factory=dict)


class BlockManager:
    """
    Creates, lists and removes manual blocks.
    
    A new block may not overlap a confirmed booking or another manual block
    of the same vehicle. It may overlap external events; the classifier
    ranks those above manual blocks anyway.
    """
    
    def __init__(self, db: Session, store: Optional[IntervalStore] = None):
        self.db = db
        self.store = store or IntervalStore(db)
    
    def _normalize_reason(self, reason: Optional[str]) -> Optional[str]:
        if reason is None:
            return None
        reason = reason.strip()
        if not reason:
            return None
        return reason[:MAX_REASON_LENGTH]
    
    def create_block(
        self,
        vehicle_id: str,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> ManualBlock:
        """
        Create a manual block over [start_date, end_date].
        
        Raises:
            InvalidRangeError: If the range is malformed
            VehicleNotFoundError: If the vehicle does not exist
            ConflictError: If the range overlaps a confirmed booking or block
        """
        validate_range(start_date, end_date, MAX_RANGE_DAYS)
        reason = self._normalize_reason(reason)
        
        try:
            with vehicle_transaction(self.db, vehicle_id):
                if self.store.confirmed_bookings(vehicle_id, start_date, end_date):
                    raise ConflictError(
                        f"{start_date}..{end_date} overlaps a confirmed booking"
                    )
                if self.store.manual_blocks(vehicle_id, start_date, end_date):
                    raise ConflictError(
                        f"{start_date}..{end_date} overlaps an existing manual block"
                    )
                
                block = self.store.add_block(
                    vehicle_id, start_date, end_date, reason, created_by
                )
                block_id = block.id
        except IntegrityError as e:
            # Exclusion constraint on PostgreSQL caught a writer from another process
            logger.warning(f"Block insert rejected by database for vehicle {vehicle_id}: {e.orig}")
            raise ConflictError(
                f"{start_date}..{end_date} overlaps an existing manual block"
            ) from e
        
        logger.block_created(block_id, vehicle_id, start_date, end_date)
        return block
    
    def remove_block(self, block_id: str) -> bool:
        """
        Delete one block. Idempotent: returns False when it was already gone.
        """
        block = self.store.get_block(block_id)
        if block is None:
            return False
        
        vehicle_id = block.vehicle_id
        try:
            with vehicle_transaction(self.db, vehicle_id):
                removed = self.store.delete_block(block_id)
        except VehicleNotFoundError:
            # Vehicle deleted meanwhile; its blocks went with it
            return False
        
        if removed:
            logger.info(f"Manual block {block_id} removed from vehicle {vehicle_id}")
        return bool(removed)
    
    def list_blocks(self, vehicle_id: str) -> List[ManualBlock]:
        if not self.store.vehicle_exists(vehicle_id):
            raise VehicleNotFoundError(f"Vehicle {vehicle_id} not found")
        return self.store.list_blocks(vehicle_id)
    
    def clear_vehicle_blocks(self, vehicle_id: str) -> int:
        """Remove every manual block of one vehicle; returns the count removed"""
        with vehicle_transaction(self.db, vehicle_id):
            removed = self.store.delete_vehicle_blocks(vehicle_id)
        
        logger.blocks_cleared("vehicle", vehicle_id, removed)
        return removed
    
    def clear_company_blocks(self, company_id: str) -> CompanyClearResult:
        """
        Remove every manual block of every vehicle of a company.
        
        Each vehicle is cleared in its own transaction. A failure on one
        vehicle is recorded and the remaining vehicles are still cleared.
        """
        if self.db.query(Company.id).filter(Company.id == company_id).first() is None:
            raise NotFoundError(f"Company {company_id} not found")
        
        vehicle_ids = self.store.vehicle_ids_for_company(company_id)
        result = CompanyClearResult(company_id=company_id, vehicles_total=len(vehicle_ids))
        
        for vehicle_id in vehicle_ids:
            try:
                with vehicle_transaction(self.db, vehicle_id):
                    removed = self.store.delete_vehicle_blocks(vehicle_id)
            except VehicleNotFoundError:
                # Deleted while we were iterating: nothing left to clear
                result.vehicles_cleared += 1
                continue
            except (SQLAlchemyError, CalendarError) as e:
                logger.error(f"Failed to clear blocks of vehicle {vehicle_id}: {e}")
                result.failures[vehicle_id] = str(e)
                continue
            
            result.vehicles_cleared += 1
            result.removed += removed
        
        logger.blocks_cleared("company", company_id, result.removed)
        return result
