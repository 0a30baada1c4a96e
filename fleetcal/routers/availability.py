from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date

from ..database import get_db
from ..schemas.availability import (
    AvailabilityCheckResponse,
    AvailabilityRangeResponse,
    AvailabilitySummaryResponse,
    DayStatusResponse,
)
from ..services.availability_classifier import AvailabilityClassifier

router = APIRouter(prefix="/api/vehicles", tags=["Availability"])


@router.get("/{vehicle_id}/availability", response_model=AvailabilityRangeResponse)
async def get_availability(
    vehicle_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    """Per-day status of a vehicle over [start_date, end_date]"""
    days = AvailabilityClassifier(db).classify_range(vehicle_id, start_date, end_date)
    return AvailabilityRangeResponse(
        vehicle_id=vehicle_id,
        start_date=start_date,
        end_date=end_date,
        days=[DayStatusResponse(date=day, status=status) for day, status in days]
    )


@router.get("/{vehicle_id}/availability/summary", response_model=AvailabilitySummaryResponse)
async def get_availability_summary(
    vehicle_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    counts = AvailabilityClassifier(db).summarize(vehicle_id, start_date, end_date)
    return AvailabilitySummaryResponse(
        vehicle_id=vehicle_id,
        start_date=start_date,
        end_date=end_date,
        counts=counts
    )


@router.get("/{vehicle_id}/availability/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    vehicle_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    """True only if every day of the range is available"""
    available = AvailabilityClassifier(db).is_range_available(vehicle_id, start_date, end_date)
    return AvailabilityCheckResponse(
        vehicle_id=vehicle_id,
        start_date=start_date,
        end_date=end_date,
        available=available
    )


@router.get("/{vehicle_id}/availability/{day}", response_model=DayStatusResponse)
async def get_day_status(vehicle_id: str, day: date, db: Session = Depends(get_db)):
    return DayStatusResponse(date=day, status=AvailabilityClassifier(db).classify(vehicle_id, day))
