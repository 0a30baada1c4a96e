from pydantic import BaseModel
from typing import Dict, List
from datetime import date

from ..services.availability_classifier import DateStatus


class DayStatusResponse(BaseModel):
    date: date
    status: DateStatus


class AvailabilityRangeResponse(BaseModel):
    vehicle_id: str
    start_date: date
    end_date: date
    days: List[DayStatusResponse]


class AvailabilityCheckResponse(BaseModel):
    vehicle_id: str
    start_date: date
    end_date: date
    available: bool


class AvailabilitySummaryResponse(BaseModel):
    vehicle_id: str
    start_date: date
    end_date: date
    counts: Dict[str, int]
