"""Duty roster: listing schedule rows and assigning or clearing routes.

Schedule rows are also written by leave approval (see ``leaves.py``); route
changes are limited to admins.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from metro_ops.core.exceptions import Forbidden, NotFound, PersistenceFailure
from metro_ops.core.security import Identity, Role
from metro_ops.models.route import Route
from metro_ops.models.schedule import Schedule
from metro_ops.schemas.schedule import RouteAssignment

logger = logging.getLogger(__name__)


class ScheduleService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt, what: str):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read {what}") from e

    async def _commit(self, what: str):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Could not %s", what)
            raise PersistenceFailure(f"Could not {what}") from e

    async def _load(self, schedule_id: int) -> Optional[Schedule]:
        result = await self._execute(
            select(Schedule)
            .options(selectinload(Schedule.user), selectinload(Schedule.route))
            .where(Schedule.id == schedule_id)
            .execution_options(populate_existing=True),
            "schedule",
        )
        return result.scalar_one_or_none()

    async def _load_for_admin(self, schedule_id: int, identity: Identity, action: str) -> Schedule:
        schedule = await self._load(schedule_id)
        if schedule is None:
            raise NotFound("Schedule not found")
        if identity.role != Role.ADMIN:
            raise Forbidden(f"Only admins can {action}")
        return schedule

    async def list_routes(self) -> List[Route]:
        result = await self._execute(select(Route).order_by(Route.code), "routes")
        return list(result.scalars().all())

    async def list(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        on_date: Optional[date] = None,
        user_id: Optional[int] = None,
    ) -> List[Schedule]:
        """Roster rows in date order.

        A range needs both ends; otherwise ``on_date`` picks a single day.
        With neither, every row is returned.
        """
        stmt = (
            select(Schedule)
            .options(selectinload(Schedule.user), selectinload(Schedule.route))
            .order_by(Schedule.date, Schedule.id)
        )
        if start_date is not None and end_date is not None:
            stmt = stmt.where(Schedule.date >= start_date, Schedule.date <= end_date)
        elif on_date is not None:
            stmt = stmt.where(Schedule.date == on_date)
        if user_id is not None:
            stmt = stmt.where(Schedule.user_id == user_id)
        result = await self._execute(stmt, "schedules")
        return list(result.scalars().all())

    async def assign_route(self, identity: Identity, assignment: RouteAssignment) -> Schedule:
        schedule = await self._load_for_admin(assignment.schedule_id, identity, "change routes")
        result = await self._execute(select(Route).where(Route.id == assignment.route_id), "route")
        route = result.scalar_one_or_none()
        if route is None:
            raise NotFound("Route not found")

        schedule.route_id = route.id
        schedule.custom_route_name = assignment.route_name
        schedule.work_hours = route.standard_hours if assignment.work_hours is None else assignment.work_hours
        schedule.kilometers = route.standard_km if assignment.kilometers is None else assignment.kilometers
        await self._commit("assign route")
        logger.info("Admin %s put schedule %s on route %s", identity.id, schedule.id, route.code)
        return await self._load(schedule.id)

    async def clear_route(self, identity: Identity, schedule_id: int) -> Schedule:
        """Take the route off a schedule row and mark the day as rest."""
        schedule = await self._load_for_admin(schedule_id, identity, "clear routes")
        schedule.route_id = None
        schedule.custom_route_name = None
        schedule.work_hours = 0
        schedule.kilometers = 0
        schedule.status = "OFF"
        schedule.shift_type = "OFF"
        await self._commit("clear route")
        logger.info("Admin %s cleared schedule %s", identity.id, schedule_id)
        return await self._load(schedule_id)
