"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row-level locking helpers
- Per-vehicle write serialization (vehicle_transaction)
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Hashable, List, Optional, TypeVar, Type
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar('T')


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'postgresql'
    except Exception:
        return False


def acquire_row_lock(db: Session, model: Type[T], filter_condition) -> Optional[T]:
    """
    Load one row, locked FOR UPDATE on PostgreSQL.
    
    SQLite has no row locks; there the in-process KeyedLock is the only
    serialization.
    
    Example:
        vehicle = acquire_row_lock(db, Vehicle, Vehicle.id == vehicle_id)
    """
    query = db.query(model).filter(filter_condition)
    
    if is_postgres(db):
        query = query.with_for_update()
    
    return query.first()


class KeyedLock:
    """
    In-process mutex per key.
    
    Entries are dropped once nobody holds or waits on them, so the registry
    does not grow with the number of vehicles ever touched.
    
    Example:
        locks = KeyedLock()
        with locks.hold(vehicle_id):
            ...
    """
    
    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, List] = {}
    
    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(key, None)
    
    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Serializes writers of one vehicle inside this process. On PostgreSQL the
# vehicle row lock extends the same guarantee across processes.
_vehicle_locks = KeyedLock()


@contextmanager
def vehicle_transaction(db: Session, vehicle_id: str):
    """
    Run a write for one vehicle as a single serialized transaction.
    
    Yields the (locked) Vehicle. Commits when the block exits normally and
    rolls back on any exception, so a failed operation never leaves a
    partial write behind.
    
    Raises:
        VehicleNotFoundError: If the vehicle does not exist
    """
    from ..models.vehicle import Vehicle
    from ..errors import VehicleNotFoundError
    
    with _vehicle_locks.hold(vehicle_id):
        try:
            vehicle = acquire_row_lock(db, Vehicle, Vehicle.id == vehicle_id)
            if vehicle is None:
                raise VehicleNotFoundError(f"Vehicle {vehicle_id} not found")
            
            yield vehicle
            db.commit()
        except Exception:
            db.rollback()
            raise
