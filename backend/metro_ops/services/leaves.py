import logging
import re
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from metro_ops.core.exceptions import Conflict, Forbidden, NotFound, PersistenceFailure, ValidationFailure
from metro_ops.core.security import Identity
from metro_ops.models.leave import LeaveRequest
from metro_ops.models.schedule import Schedule
from metro_ops.schemas.leave import LeaveCreate, LeaveStatus, LeaveType

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MIN_REASON_LENGTH = 5
PAID_LEAVE_HOURS = 8.0
PAID_LEAVE_TYPES = (LeaveType.ANNUAL, LeaveType.LEGAL)


def parse_leave_date(value: str, name: str) -> date:
    if not DATE_PATTERN.match(value):
        raise ValidationFailure(f"{name} must use the YYYY-MM-DD format")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationFailure(f"{name} is not a valid date")


def validate_leave(payload: LeaveCreate) -> Tuple[LeaveType, date, date, str]:
    if not (payload.type and payload.start_date and payload.end_date and payload.reason):
        raise ValidationFailure("All fields are required")
    try:
        leave_type = LeaveType(payload.type)
    except ValueError:
        raise ValidationFailure(f"Unknown leave type: {payload.type}")
    start = parse_leave_date(payload.start_date, "start_date")
    end = parse_leave_date(payload.end_date, "end_date")
    if start > end:
        raise ValidationFailure("start_date cannot be after end_date")
    if len(payload.reason.strip()) < MIN_REASON_LENGTH:
        raise ValidationFailure(f"Reason must be at least {MIN_REASON_LENGTH} characters")
    return leave_type, start, end, payload.reason


def leave_days(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def paid_hours(leave_type: str) -> float:
    # Casual and sick leave are unpaid
    return PAID_LEAVE_HOURS if leave_type in PAID_LEAVE_TYPES else 0.0


class LeaveService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, leave_id: int) -> Optional[LeaveRequest]:
        try:
            result = await self.db.execute(
                select(LeaveRequest)
                .options(selectinload(LeaveRequest.user))
                .where(LeaveRequest.id == leave_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise PersistenceFailure("Could not read leave request") from e
        return result.scalar_one_or_none()

    async def _commit(self, what: str):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Could not %s", what)
            raise PersistenceFailure(f"Could not {what}") from e

    async def submit(self, user_id: int, payload: LeaveCreate) -> LeaveRequest:
        leave_type, start, end, reason = validate_leave(payload)
        leave = LeaveRequest(
            user_id=user_id,
            type=leave_type.value,
            start_date=start,
            end_date=end,
            reason=reason,
            status=LeaveStatus.PENDING.value,
        )
        self.db.add(leave)
        await self._commit("save leave request")
        logger.info("User %s requested %s leave %s..%s", user_id, leave_type.value, start, end)
        return await self._load(leave.id)

    async def list(self, identity: Identity) -> List[LeaveRequest]:
        stmt = (
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.user))
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
        )
        if not identity.is_reviewer:
            stmt = stmt.where(LeaveRequest.user_id == identity.id)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceFailure("Could not read leave requests") from e
        return list(result.scalars().all())

    async def decide(self, leave_id: int, identity: Identity, status: str) -> LeaveRequest:
        """Approve or reject a pending request.

        Approval marks every day of the leave on the requester's schedule,
        creating an OFF-shift row for days that have none yet. The decision
        and the schedule rows are committed together.
        """
        if not identity.is_reviewer:
            raise Forbidden("Only captains and admins can decide leave requests")
        if status not in (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value):
            raise ValidationFailure("status must be APPROVED or REJECTED")

        leave = await self._load(leave_id)
        if leave is None:
            raise NotFound("Leave request not found")
        if leave.status != LeaveStatus.PENDING.value:
            raise Conflict(f"Leave request is already {leave.status}")

        leave.status = status
        leave.approver_id = identity.id
        if status == LeaveStatus.APPROVED.value:
            await self._mark_schedule(leave)
        await self._commit("record leave decision")
        logger.info("%s %s %s leave request %s", identity.role.value, identity.id, status.lower(), leave_id)
        return await self._load(leave_id)

    async def _mark_schedule(self, leave: LeaveRequest):
        try:
            result = await self.db.execute(
                select(Schedule).where(
                    Schedule.user_id == leave.user_id,
                    Schedule.date >= leave.start_date,
                    Schedule.date <= leave.end_date,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceFailure("Could not read schedules") from e
        existing = {schedule.date: schedule for schedule in result.scalars().all()}

        hours = paid_hours(leave.type)
        for day in leave_days(leave.start_date, leave.end_date):
            schedule = existing.get(day)
            if schedule is None:
                schedule = Schedule(user_id=leave.user_id, date=day, shift_type="OFF")
                self.db.add(schedule)
            schedule.status = "LEAVE"
            schedule.leave_type = leave.type
            schedule.work_hours = hours
            schedule.kilometers = 0
            schedule.note = f"Leave: {leave.reason}"
