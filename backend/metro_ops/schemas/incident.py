from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from enum import Enum

class IncidentStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_CAPTAIN = "PENDING_CAPTAIN"
    PENDING_ADMIN = "PENDING_ADMIN"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class AttachmentType(str, Enum):
    PHOTO = "PHOTO"
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    HANDWRITING = "HANDWRITING"

class IncidentCreate(BaseModel):
    # Arrives as multipart form fields, so everything is still text here
    description: str = ""
    voice_text: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    status: Optional[str] = None

class IncidentUpdate(BaseModel):
    status: Optional[IncidentStatus] = None
    captain_comment: Optional[str] = None
    admin_comment: Optional[str] = None
    description: Optional[str] = None
    expected_status: Optional[IncidentStatus] = None  # last status the caller saw

class AttachmentResponse(BaseModel):
    id: int
    incident_id: int
    type: AttachmentType
    url: str

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    id: int
    name: str
    department: Optional[str] = None

    class Config:
        from_attributes = True

class IncidentResponse(BaseModel):
    id: int
    user_id: int
    description: str
    voice_text: Optional[str]
    location: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    status: IncidentStatus
    captain_comment: Optional[str]
    admin_comment: Optional[str]
    approver_id: Optional[int]
    created_at: Optional[datetime]

    reporter: Optional[UserSummary] = None
    approver: Optional[UserSummary] = None
    attachments: List[AttachmentResponse] = []

    class Config:
        from_attributes = True
