from datetime import date

import pytest

from metro_ops.core.exceptions import Forbidden, NotFound, ValidationFailure
from metro_ops.models.schedule import Schedule
from metro_ops.schemas.leave import LeaveCreate
from metro_ops.schemas.performance import PerformanceCreate
from metro_ops.services.leaves import LeaveService
from metro_ops.services.performance import PerformanceService, month_bounds


@pytest.fixture
def service(db):
    return PerformanceService(db)


def score(user_id, day, value, comment=None):
    return PerformanceCreate(user_id=user_id, date=day, score=value, comment=comment)


async def test_reviewers_record_scores(service, users):
    record = await service.record(users["captain"], score(users["driver"].id, date(2026, 4, 2), 92.5, "Smooth braking"))

    assert record.score == 92.5
    assert record.auditor_id == users["captain"].id
    assert record.auditor.name == "Captain Zhang"
    assert record.user.name == "Driver Li"


async def test_employees_cannot_record(service, users):
    with pytest.raises(Forbidden):
        await service.record(users["driver"], score(users["driver2"].id, date(2026, 4, 2), 50))


async def test_record_checks_user_and_score(service, users):
    with pytest.raises(NotFound):
        await service.record(users["admin"], score(999, date(2026, 4, 2), 80))
    with pytest.raises(ValidationFailure):
        await service.record(users["admin"], score(users["driver"].id, date(2026, 4, 2), float("nan")))


async def test_list_scope(service, users):
    await service.record(users["admin"], score(users["driver"].id, date(2026, 4, 1), 80))
    await service.record(users["admin"], score(users["driver"].id, date(2026, 4, 9), 90))
    await service.record(users["admin"], score(users["driver2"].id, date(2026, 4, 5), 70))

    mine = await service.list(users["driver"], user_id=users["driver2"].id)
    assert [p.date for p in mine] == [date(2026, 4, 9), date(2026, 4, 1)]

    assert len(await service.list(users["captain"])) == 3
    assert [p.score for p in await service.list(users["captain"], user_id=users["driver2"].id)] == [70]
    ranged = await service.list(users["admin"], start_date=date(2026, 4, 2), end_date=date(2026, 4, 8))
    assert [p.score for p in ranged] == [70]


async def test_monthly_summary(service, db, users):
    driver = users["driver"].id
    db.add_all([
        Schedule(user_id=driver, date=date(2026, 4, 1), shift_type="MORNING", status="DUTY", work_hours=6.5, kilometers=120),
        Schedule(user_id=driver, date=date(2026, 4, 2), shift_type="DAY", status="DUTY", work_hours=7.5, kilometers=140),
        Schedule(user_id=driver, date=date(2026, 5, 1), shift_type="DAY", status="DUTY", work_hours=7.5, kilometers=140),
        Schedule(user_id=users["driver2"].id, date=date(2026, 4, 1), status="DUTY", work_hours=8, kilometers=150),
    ])
    await db.commit()
    leaves = LeaveService(db)
    leave = await leaves.submit(driver, LeaveCreate(
        type="ANNUAL", start_date="2026-04-29", end_date="2026-04-30", reason="Family visit"))
    await leaves.decide(leave.id, users["admin"], "APPROVED")
    await service.record(users["admin"], score(driver, date(2026, 4, 10), 90))
    await service.record(users["captain"], score(driver, date(2026, 4, 20), 85))
    await service.record(users["captain"], score(driver, date(2026, 3, 31), 10))

    summary = await service.monthly_summary(users["driver"], 2026, 4)

    assert (summary.year, summary.month) == (2026, 4)
    assert summary.total_hours == 6.5 + 7.5 + 8 + 8
    assert summary.total_km == 260
    assert summary.leave_days == 2
    assert summary.avg_score == 87.5
    assert summary.performance_count == 2


async def test_empty_month(service, users):
    summary = await service.monthly_summary(users["driver2"], 2026, 2)
    assert summary.total_hours == 0
    assert summary.leave_days == 0
    assert summary.avg_score == 0
    assert summary.performance_count == 0


async def test_summary_defaults_to_current_month(service, users):
    today = date.today()
    summary = await service.monthly_summary(users["driver"])
    assert (summary.year, summary.month) == (today.year, today.month)


async def test_summary_rejects_bad_month(service, users):
    with pytest.raises(ValidationFailure):
        await service.monthly_summary(users["driver"], 2026, 13)


def test_month_bounds():
    assert month_bounds(2028, 2) == (date(2028, 2, 1), date(2028, 2, 29))
    assert month_bounds(2026, 12) == (date(2026, 12, 1), date(2026, 12, 31))
