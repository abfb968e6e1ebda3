from pydantic import BaseModel
from typing import Optional
from datetime import date
from .incident import UserSummary

class RouteResponse(BaseModel):
    id: int
    name: str
    code: str
    standard_hours: float
    standard_km: float

    class Config:
        from_attributes = True

class ScheduleResponse(BaseModel):
    id: int
    user_id: int
    date: date
    shift_type: str
    status: str
    leave_type: Optional[str]
    route_id: Optional[int]
    custom_route_name: Optional[str]
    work_hours: float
    kilometers: float
    note: Optional[str]

    user: Optional[UserSummary] = None
    route: Optional[RouteResponse] = None

    class Config:
        from_attributes = True

class RouteAssignment(BaseModel):
    schedule_id: int
    route_id: int
    # Left out, the route's standard values apply
    work_hours: Optional[float] = None
    kilometers: Optional[float] = None
    route_name: Optional[str] = None

class ScheduleClear(BaseModel):
    schedule_id: int
