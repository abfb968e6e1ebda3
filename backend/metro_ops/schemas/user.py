from pydantic import BaseModel
from typing import Optional

class UserResponse(BaseModel):
    id: int
    username: str
    name: str
    role: str
    department: Optional[str]

    class Config:
        from_attributes = True
