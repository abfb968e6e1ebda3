import calendar
import logging
import math
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from metro_ops.core.exceptions import Forbidden, NotFound, PersistenceFailure, ValidationFailure
from metro_ops.core.security import Identity
from metro_ops.models.performance import Performance
from metro_ops.models.schedule import Schedule
from metro_ops.models.user import User
from metro_ops.schemas.performance import MonthlySummary, PerformanceCreate

logger = logging.getLogger(__name__)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class PerformanceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt, what: str):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read {what}") from e

    async def _load(self, performance_id: int) -> Performance:
        result = await self._execute(
            select(Performance)
            .options(selectinload(Performance.user), selectinload(Performance.auditor))
            .where(Performance.id == performance_id),
            "performance record",
        )
        return result.scalar_one()

    async def record(self, identity: Identity, payload: PerformanceCreate) -> Performance:
        if not identity.is_reviewer:
            raise Forbidden("Only captains and admins can record performance")
        if not math.isfinite(payload.score):
            raise ValidationFailure("score must be a finite number")
        result = await self._execute(select(User.id).where(User.id == payload.user_id), "user")
        if result.scalar_one_or_none() is None:
            raise NotFound("User not found")

        performance = Performance(
            user_id=payload.user_id,
            date=payload.date,
            score=payload.score,
            comment=payload.comment,
            auditor_id=identity.id,
        )
        self.db.add(performance)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Could not save performance record")
            raise PersistenceFailure("Could not save performance record") from e
        logger.info("%s %s scored user %s: %s", identity.role.value, identity.id, payload.user_id, payload.score)
        return await self._load(performance.id)

    async def list(
        self,
        identity: Identity,
        user_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Performance]:
        """Newest first. Employees only ever see their own records."""
        if not identity.is_reviewer:
            user_id = identity.id
        stmt = (
            select(Performance)
            .options(selectinload(Performance.user), selectinload(Performance.auditor))
            .order_by(Performance.date.desc(), Performance.id.desc())
        )
        if user_id is not None:
            stmt = stmt.where(Performance.user_id == user_id)
        if start_date is not None and end_date is not None:
            stmt = stmt.where(Performance.date >= start_date, Performance.date <= end_date)
        result = await self._execute(stmt, "performance records")
        return list(result.scalars().all())

    async def monthly_summary(
        self, identity: Identity, year: Optional[int] = None, month: Optional[int] = None
    ) -> MonthlySummary:
        """The caller's hours, kilometers, leave days and average score for a month.

        Defaults to the current month.
        """
        today = date.today()
        year = year or today.year
        month = month or today.month
        if not 1 <= month <= 12:
            raise ValidationFailure("month must be between 1 and 12")
        first, last = month_bounds(year, month)

        schedule_totals = await self._execute(
            select(
                func.coalesce(func.sum(Schedule.work_hours), 0),
                func.coalesce(func.sum(Schedule.kilometers), 0),
                func.coalesce(func.sum(case((Schedule.status == "LEAVE", 1), else_=0)), 0),
            ).where(Schedule.user_id == identity.id, Schedule.date >= first, Schedule.date <= last),
            "schedules",
        )
        total_hours, total_km, leave_days = schedule_totals.one()

        score_totals = await self._execute(
            select(func.avg(Performance.score), func.count(Performance.id)).where(
                Performance.user_id == identity.id, Performance.date >= first, Performance.date <= last
            ),
            "performance records",
        )
        avg_score, performance_count = score_totals.one()

        return MonthlySummary(
            year=year,
            month=month,
            total_hours=total_hours,
            total_km=total_km,
            leave_days=leave_days,
            avg_score=round(avg_score, 1) if performance_count else 0.0,
            performance_count=performance_count,
        )
