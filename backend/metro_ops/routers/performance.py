from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from metro_ops.core.database import get_db
from metro_ops.core.security import Identity, get_current_identity
from metro_ops.schemas.performance import MonthlySummary, PerformanceCreate, PerformanceResponse
from metro_ops.services.performance import PerformanceService

router = APIRouter(tags=["performance"])

def get_performance_service(db: AsyncSession = Depends(get_db)) -> PerformanceService:
    return PerformanceService(db)

@router.post("/performances/", response_model=PerformanceResponse)
async def record_performance(
    performance_in: PerformanceCreate,
    identity: Identity = Depends(get_current_identity),
    service: PerformanceService = Depends(get_performance_service),
):
    return await service.record(identity, performance_in)

@router.get("/performances/", response_model=List[PerformanceResponse])
async def list_performances(
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    identity: Identity = Depends(get_current_identity),
    service: PerformanceService = Depends(get_performance_service),
):
    return await service.list(identity, user_id, start_date, end_date)

@router.get("/stats/summary", response_model=MonthlySummary)
async def monthly_summary(
    year: Optional[int] = Query(None, ge=1, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    identity: Identity = Depends(get_current_identity),
    service: PerformanceService = Depends(get_performance_service),
):
    return await service.monthly_summary(identity, year, month)
