from datetime import date

import pytest

from metro_ops.core.exceptions import Forbidden, NotFound
from metro_ops.models.schedule import Schedule
from metro_ops.schemas.schedule import RouteAssignment
from metro_ops.services.schedules import ScheduleService


@pytest.fixture
def service(db):
    return ScheduleService(db)


@pytest.fixture
async def roster(db, users):
    """Three days for driver, one for driver2."""
    rows = [
        Schedule(user_id=users["driver"].id, date=date(2026, 3, 1), shift_type="MORNING", status="DUTY"),
        Schedule(user_id=users["driver"].id, date=date(2026, 3, 2), shift_type="DAY", status="DUTY"),
        Schedule(user_id=users["driver"].id, date=date(2026, 3, 31), shift_type="OFF", status="OFF"),
        Schedule(user_id=users["driver2"].id, date=date(2026, 3, 2), shift_type="NIGHT", status="DUTY"),
    ]
    db.add_all(rows)
    await db.commit()
    return rows


async def test_list_is_date_ordered(service, roster):
    listed = await service.list()
    assert [s.date for s in listed] == [date(2026, 3, 1), date(2026, 3, 2), date(2026, 3, 2), date(2026, 3, 31)]
    assert listed[0].user.name == "Driver Li"


async def test_list_filters(service, roster, users):
    march_start = await service.list(start_date=date(2026, 3, 1), end_date=date(2026, 3, 2))
    assert len(march_start) == 3

    one_day = await service.list(on_date=date(2026, 3, 2))
    assert {s.user_id for s in one_day} == {users["driver"].id, users["driver2"].id}

    mine = await service.list(user_id=users["driver2"].id)
    assert [s.shift_type for s in mine] == ["NIGHT"]


async def test_half_open_range_is_ignored(service, roster):
    assert len(await service.list(start_date=date(2026, 3, 31))) == 4


async def test_assign_route_uses_standard_values(service, roster, routes, users):
    assigned = await service.assign_route(
        users["admin"], RouteAssignment(schedule_id=roster[0].id, route_id=routes["morning"].id)
    )

    assert assigned.route.code == "101"
    assert assigned.work_hours == 6.5
    assert assigned.kilometers == 120
    assert assigned.custom_route_name is None


async def test_assign_route_with_overrides(service, roster, routes, users):
    assigned = await service.assign_route(
        users["admin"],
        RouteAssignment(
            schedule_id=roster[1].id, route_id=routes["day"].id,
            work_hours=9, kilometers=0, route_name="Day 102 + depot run",
        ),
    )

    assert assigned.work_hours == 9
    assert assigned.kilometers == 0
    assert assigned.custom_route_name == "Day 102 + depot run"


@pytest.mark.parametrize("role", ["captain", "driver"])
async def test_only_admins_assign_routes(service, roster, routes, users, role):
    with pytest.raises(Forbidden):
        await service.assign_route(users[role], RouteAssignment(schedule_id=roster[0].id, route_id=routes["day"].id))
    with pytest.raises(Forbidden):
        await service.clear_route(users[role], roster[0].id)


async def test_assign_unknown_schedule_or_route(service, roster, routes, users):
    with pytest.raises(NotFound):
        await service.assign_route(users["admin"], RouteAssignment(schedule_id=999, route_id=routes["day"].id))
    with pytest.raises(NotFound):
        await service.assign_route(users["admin"], RouteAssignment(schedule_id=roster[0].id, route_id=999))
    with pytest.raises(NotFound):
        await service.clear_route(users["admin"], 999)


async def test_clear_route_makes_a_rest_day(service, roster, routes, users):
    await service.assign_route(users["admin"], RouteAssignment(schedule_id=roster[0].id, route_id=routes["day"].id))

    cleared = await service.clear_route(users["admin"], roster[0].id)

    assert cleared.route is None
    assert cleared.route_id is None
    assert (cleared.work_hours, cleared.kilometers) == (0, 0)
    assert (cleared.status, cleared.shift_type) == ("OFF", "OFF")


async def test_routes_listed_by_code(service, routes):
    assert [r.code for r in await service.list_routes()] == ["101", "102"]
