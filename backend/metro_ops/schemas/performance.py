from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from .incident import UserSummary

class PerformanceCreate(BaseModel):
    user_id: int
    date: date
    score: float
    comment: Optional[str] = None

class PerformanceResponse(BaseModel):
    id: int
    user_id: int
    date: date
    score: float
    comment: Optional[str]
    auditor_id: int
    created_at: Optional[datetime]

    user: Optional[UserSummary] = None
    auditor: Optional[UserSummary] = None

    class Config:
        from_attributes = True

class MonthlySummary(BaseModel):
    year: int
    month: int
    total_hours: float
    total_km: float
    leave_days: int
    avg_score: float
    performance_count: int
