from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from metro_ops.core.database import get_db
from metro_ops.core.exceptions import PersistenceFailure
from metro_ops.core.security import Identity, get_current_identity
from metro_ops.models.user import User
from metro_ops.schemas.user import UserResponse

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/", response_model=List[UserResponse])
async def list_users(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Staff directory for rosters and pickers; never includes credentials."""
    try:
        result = await db.execute(select(User).order_by(User.id))
    except SQLAlchemyError as e:
        raise PersistenceFailure("Could not read users") from e
    return result.scalars().all()
