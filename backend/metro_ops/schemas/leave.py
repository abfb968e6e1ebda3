from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from enum import Enum
from .incident import UserSummary

class LeaveType(str, Enum):
    ANNUAL = "ANNUAL"
    LEGAL = "LEGAL"
    CASUAL = "CASUAL"
    SICK = "SICK"

class LeaveStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class LeaveCreate(BaseModel):
    type: Optional[str] = None
    start_date: Optional[str] = None  # YYYY-MM-DD
    end_date: Optional[str] = None
    reason: Optional[str] = None

class LeaveDecision(BaseModel):
    leave_id: int
    status: str

class LeaveResponse(BaseModel):
    id: int
    user_id: int
    type: LeaveType
    start_date: date
    end_date: date
    reason: str
    status: LeaveStatus
    approver_id: Optional[int]
    created_at: Optional[datetime]

    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True

class LeaveDecisionResponse(BaseModel):
    message: str
    leave_request: LeaveResponse
