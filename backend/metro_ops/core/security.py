import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings

logger = logging.getLogger(__name__)

ALGORITHM = settings.ALGORITHM


class Role(str, Enum):
    ADMIN = "ADMIN"
    CAPTAIN = "CAPTAIN"
    EMPLOYEE = "EMPLOYEE"


# Older accounts were created with the DRIVER designation
ROLE_ALIASES = {"DRIVER": Role.EMPLOYEE}


def normalize_role(value: str) -> Role:
    value = (value or "").upper()
    if value in ROLE_ALIASES:
        return ROLE_ALIASES[value]
    return Role(value)


class Identity(BaseModel):
    id: int
    role: Role

    @property
    def is_reviewer(self) -> bool:
        return self.role in (Role.CAPTAIN, Role.ADMIN)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=1440))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_identity(token: str) -> Identity:
    """Turn a bearer token issued by the auth service into an Identity.

    Raises ``JWTError`` for bad signatures or expired tokens and ``ValueError``
    when the claims do not carry a usable user id and role.
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    user_id = payload.get("user_id")
    role = payload.get("role")
    if user_id is None or role is None:
        raise ValueError("token missing user_id or role")
    return Identity(id=int(user_id), role=normalize_role(role))


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")


async def get_current_identity(token: Annotated[str, Depends(oauth2_scheme)]) -> Identity:
    try:
        return decode_identity(token)
    except (JWTError, ValueError) as e:
        logger.info("Rejected bearer token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
