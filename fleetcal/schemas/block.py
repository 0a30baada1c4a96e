from pydantic import BaseModel, Field, field_validator
from typing import Dict, Optional
from datetime import date, datetime


class ManualBlockCreate(BaseModel):
    # Range checks live in BlockManager so every caller gets invalid_range
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=500)
    created_by: Optional[str] = Field(None, max_length=100)
    
    @field_validator('reason', 'created_by', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ManualBlockResponse(BaseModel):
    id: str
    vehicle_id: str
    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class ClearBlocksResponse(BaseModel):
    vehicle_id: str
    removed: int


class CompanyClearResponse(BaseModel):
    company_id: str
    vehicles_total: int
    vehicles_cleared: int
    removed: int
    failures: Dict[str, str] = {}
