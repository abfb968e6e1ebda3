from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from metro_ops.core.database import get_db
from metro_ops.core.security import Identity, get_current_identity
from metro_ops.schemas.schedule import RouteAssignment, RouteResponse, ScheduleClear, ScheduleResponse
from metro_ops.services.schedules import ScheduleService

router = APIRouter(tags=["schedules"])

def get_schedule_service(db: AsyncSession = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)

@router.get("/routes", response_model=List[RouteResponse])
async def list_routes(
    identity: Identity = Depends(get_current_identity),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.list_routes()

@router.get("/schedules/", response_model=List[ScheduleResponse])
async def list_schedules(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    user_id: Optional[int] = None,
    identity: Identity = Depends(get_current_identity),
    service: ScheduleService = Depends(get_schedule_service),
):
    """The roster is visible to all staff; filter by ``start_date``+``end_date`` or ``date``."""
    return await service.list(start_date, end_date, on_date, user_id)

@router.post("/schedules/route", response_model=ScheduleResponse)
async def assign_route(
    assignment: RouteAssignment,
    identity: Identity = Depends(get_current_identity),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.assign_route(identity, assignment)

@router.post("/schedules/clear", response_model=ScheduleResponse)
async def clear_route(
    clear_in: ScheduleClear,
    identity: Identity = Depends(get_current_identity),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.clear_route(identity, clear_in.schedule_id)
