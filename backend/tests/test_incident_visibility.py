import itertools
from datetime import datetime, timedelta, timezone

import pytest

from metro_ops.models.incident import Incident
from metro_ops.services.incident_workflow import visible_in_list


@pytest.fixture
async def reported(db, users):
    """Driver A's DRAFT, PENDING_CAPTAIN and APPROVED reports plus a captain's own draft."""
    base = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    rows = {
        "draft": Incident(user_id=users["driver"].id, description="a", status="DRAFT", created_at=base),
        "pending": Incident(user_id=users["driver"].id, description="b", status="PENDING_CAPTAIN",
                            created_at=base + timedelta(hours=1)),
        "approved": Incident(user_id=users["driver"].id, description="c", status="APPROVED",
                             created_at=base + timedelta(hours=2)),
        "captain_draft": Incident(user_id=users["captain"].id, description="d", status="DRAFT",
                                  created_at=base + timedelta(hours=3)),
    }
    db.add_all(rows.values())
    await db.commit()
    return {key: incident.id for key, incident in rows.items()}


async def listed_ids(workflow, identity):
    return [incident.id for incident in await workflow.list(identity)]


async def test_other_employee_sees_nothing(workflow, users, reported):
    assert await listed_ids(workflow, users["driver2"]) == []


async def test_reporter_sees_own_newest_first(workflow, users, reported):
    assert await listed_ids(workflow, users["driver"]) == [
        reported["approved"], reported["pending"], reported["draft"],
    ]


async def test_captain_sees_submitted_and_own_drafts(workflow, users, reported):
    assert await listed_ids(workflow, users["captain"]) == [
        reported["captain_draft"], reported["approved"], reported["pending"],
    ]


async def test_admin_sees_everything_but_drafts(workflow, users, reported):
    assert await listed_ids(workflow, users["admin"]) == [reported["approved"], reported["pending"]]


async def test_list_carries_reporter_and_attachments(workflow, users, reported):
    listed = await workflow.list(users["admin"])
    assert listed[0].reporter.name == "Driver Li"
    assert listed[0].reporter.department == "DRIVER"
    assert listed[0].attachments == []


async def test_in_memory_rule_matches_query(workflow, users, reported):
    incidents = await workflow.list(users["driver"]) + await workflow.list(users["captain"])
    unique = {incident.id: incident for incident in incidents}.values()
    for identity, incident in itertools.product(users.values(), unique):
        expected = incident.id in await listed_ids(workflow, identity)
        assert visible_in_list(identity, incident) is expected
