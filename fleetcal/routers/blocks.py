from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..schemas.block import (
    ClearBlocksResponse,
    CompanyClearResponse,
    ManualBlockCreate,
    ManualBlockResponse,
)
from ..services.block_manager import BlockManager

router = APIRouter(prefix="/api", tags=["Manual Blocks"])


@router.get("/vehicles/{vehicle_id}/blocks", response_model=List[ManualBlockResponse])
async def list_blocks(vehicle_id: str, db: Session = Depends(get_db)):
    return BlockManager(db).list_blocks(vehicle_id)


@router.post(
    "/vehicles/{vehicle_id}/blocks",
    response_model=ManualBlockResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_block(
    vehicle_id: str,
    payload: ManualBlockCreate,
    db: Session = Depends(get_db)
):
    """Block a range; 409 if it overlaps a confirmed booking or another block"""
    return BlockManager(db).create_block(
        vehicle_id,
        payload.start_date,
        payload.end_date,
        reason=payload.reason,
        created_by=payload.created_by
    )


@router.delete("/vehicles/{vehicle_id}/blocks", response_model=ClearBlocksResponse)
async def clear_vehicle_blocks(vehicle_id: str, db: Session = Depends(get_db)):
    removed = BlockManager(db).clear_vehicle_blocks(vehicle_id)
    return ClearBlocksResponse(vehicle_id=vehicle_id, removed=removed)


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_block(block_id: str, db: Session = Depends(get_db)):
    # Idempotent: an already-removed block is not an error
    BlockManager(db).remove_block(block_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/companies/{company_id}/blocks", response_model=CompanyClearResponse)
async def clear_company_blocks(company_id: str, db: Session = Depends(get_db)):
    result = BlockManager(db).clear_company_blocks(company_id)
    return CompanyClearResponse(
        company_id=result.company_id,
        vehicles_total=result.vehicles_total,
        vehicles_cleared=result.vehicles_cleared,
        removed=result.removed,
        failures=result.failures
    )
