from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from metro_ops.core.database import get_db
from metro_ops.core.security import Identity, get_current_identity
from metro_ops.schemas.leave import LeaveCreate, LeaveDecision, LeaveDecisionResponse, LeaveResponse
from metro_ops.services.leaves import LeaveService

router = APIRouter(prefix="/leaves", tags=["leaves"])

def get_leave_service(db: AsyncSession = Depends(get_db)) -> LeaveService:
    return LeaveService(db)

@router.post("/", response_model=LeaveResponse)
async def submit_leave(
    leave_in: LeaveCreate,
    identity: Identity = Depends(get_current_identity),
    service: LeaveService = Depends(get_leave_service),
):
    return await service.submit(identity.id, leave_in)

@router.get("/", response_model=List[LeaveResponse])
async def list_leaves(
    identity: Identity = Depends(get_current_identity),
    service: LeaveService = Depends(get_leave_service),
):
    """Captains and admins see every request, everyone else their own."""
    return await service.list(identity)

@router.post("/approve", response_model=LeaveDecisionResponse)
async def decide_leave(
    decision: LeaveDecision,
    identity: Identity = Depends(get_current_identity),
    service: LeaveService = Depends(get_leave_service),
):
    leave = await service.decide(decision.leave_id, identity, decision.status)
    return {"message": "Decision recorded", "leave_request": leave}
