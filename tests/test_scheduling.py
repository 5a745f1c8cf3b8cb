import uuid
from datetime import date, datetime, time, timedelta

import pytest
from sqlmodel import select
from sqlalchemy import func

from core_portal.core.exceptions import ConflictError
from core_portal.models.enums import OpsScheduleStatus, UserRole
from core_portal.models.lead import Lead
from core_portal.models.scheduling import CalendarSlot, OpsSchedule
from core_portal.services import availability_service, ops_schedule_service
from core_portal.services.availability_service import OPS_SCHEDULE


def _tomorrow() -> date:
    return date.today() + timedelta(days=1)


async def _schedule(client, headers, at, duration=30, description="Visa call"):
    return await client.post(
        "/api/ops/schedules",
        json={
            "scheduled_date": _tomorrow().isoformat(),
            "scheduled_time": at,
            "duration": duration,
            "description": description,
        },
        headers=headers,
    )


# ------------------------------------------------------------------
# pure helpers
# ------------------------------------------------------------------
def test_overlap_is_half_open():
    assert availability_service.overlaps(600, 30, 615, 30)
    assert not availability_service.overlaps(600, 30, 630, 30)
    assert not availability_service.overlaps(630, 15, 600, 30)


@pytest.mark.parametrize("at,duration", [("10:03", 30), ("9:00", 30), ("23:45", 30), ("10:00", 0)])
def test_invalid_slots_are_rejected(at, duration):
    with pytest.raises(ValueError):
        availability_service.validate_slot(at, duration)


# ------------------------------------------------------------------
# OPS schedule
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_ops_schedule_overlap_is_rejected(client, tenant, auth_headers):
    headers = auth_headers(tenant.ops)

    res = await _schedule(client, headers, "10:00")
    assert res.status_code == 201, res.text

    res = await _schedule(client, headers, "10:15")
    assert res.status_code == 409
    assert res.json()["message"].startswith("Time conflict")

    # back-to-back is fine
    res = await _schedule(client, headers, "10:30")
    assert res.status_code == 201


@pytest.mark.asyncio
async def test_check_availability_reports_conflicts(client, tenant, auth_headers):
    headers = auth_headers(tenant.ops)
    await _schedule(client, headers, "10:00", description="Document review")

    res = await client.post(
        "/api/ops/schedules/check-availability",
        json={"scheduled_date": _tomorrow().isoformat(), "scheduled_time": "10:15", "duration": 30},
        headers=headers,
    )
    data = res.json()["data"]
    assert data["available"] is False
    assert data["conflicts"][0]["title"] == "Document review"
    assert "10:00 to 10:30" in data["conflicts"][0]["message"]


@pytest.mark.asyncio
async def test_lost_slot_claim_raises_conflict(session, tenant):
    ops_id = tenant.ops.id
    tomorrow = _tomorrow()
    # a concurrent request already claimed 10:15 but has not written its schedule yet
    session.add(CalendarSlot(
        participant_id=ops_id,
        slot_date=tomorrow,
        slot_minute=615,
        event_type=OPS_SCHEDULE,
        event_id=uuid.uuid4(),
    ))
    await session.commit()

    with pytest.raises(ConflictError):
        await ops_schedule_service.create_schedule(session, tenant.ops, tomorrow, "10:00", "Call", duration=30)

    count = await session.execute(
        select(func.count()).select_from(OpsSchedule).where(OpsSchedule.ops_id == ops_id)
    )
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_update_keeps_its_own_slot(client, tenant, auth_headers):
    headers = auth_headers(tenant.ops)
    res = await _schedule(client, headers, "14:00")
    schedule_id = res.json()["data"]["id"]
    await _schedule(client, headers, "15:00", description="Other task")

    res = await client.patch(
        f"/api/ops/schedules/{schedule_id}",
        json={"duration": 45, "description": "Longer visa call"},
        headers=headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["duration"] == 45

    res = await client.patch(f"/api/ops/schedules/{schedule_id}", json={"scheduled_time": "14:30"}, headers=headers)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_deleting_a_schedule_frees_the_slot(client, tenant, auth_headers):
    headers = auth_headers(tenant.ops)
    res = await _schedule(client, headers, "09:00")
    schedule_id = res.json()["data"]["id"]

    res = await client.delete(f"/api/ops/schedules/{schedule_id}", headers=headers)
    assert res.status_code == 200

    res = await _schedule(client, headers, "09:00")
    assert res.status_code == 201


@pytest.mark.asyncio
async def test_mark_missed_frees_slots(session, tenant):
    tomorrow = _tomorrow()
    schedule = await ops_schedule_service.create_schedule(session, tenant.ops, tomorrow, "09:00", "Morning call")

    # before the end time nothing changes
    assert await ops_schedule_service.mark_missed(session, tenant.ops.id, now=datetime.combine(tomorrow, time(9, 15))) == 0

    missed = await ops_schedule_service.mark_missed(session, tenant.ops.id, now=datetime.combine(tomorrow, time(12, 0)))
    assert missed == 1

    await session.refresh(schedule)
    assert schedule.status == OpsScheduleStatus.MISSED

    replacement = await ops_schedule_service.create_schedule(session, tenant.ops, tomorrow, "09:00", "Retry call")
    assert replacement.status == OpsScheduleStatus.SCHEDULED


@pytest.mark.asyncio
async def test_other_ops_cannot_touch_a_schedule(client, tenant, auth_headers):
    res = await _schedule(client, auth_headers(tenant.ops), "11:00")
    schedule_id = res.json()["data"]["id"]

    res = await client.get(f"/api/ops/schedules/{schedule_id}", headers=auth_headers(tenant.other_ops))
    assert res.status_code == 403


# ------------------------------------------------------------------
# team meets block the same calendar
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_pending_team_meet_blocks_ops_until_rejected(client, tenant, auth_headers):
    res = await client.post(
        "/api/team-meets",
        json={
            "requested_to": str(tenant.ops.id),
            "subject": "Weekly sync",
            "scheduled_date": _tomorrow().isoformat(),
            "scheduled_time": "11:00",
            "duration": 30,
        },
        headers=auth_headers(tenant.counselor),
    )
    assert res.status_code == 201, res.text
    meet = res.json()["data"]
    assert meet["status"] == "PENDING_CONFIRMATION"
    assert meet["zoho_meeting_url"] is None

    ops_headers = auth_headers(tenant.ops)
    res = await _schedule(client, ops_headers, "11:15")
    assert res.status_code == 409

    # only the invitee may reject
    res = await client.patch(
        f"/api/team-meets/{meet['id']}/reject", json={"message": "On leave"}, headers=auth_headers(tenant.counselor)
    )
    assert res.status_code == 403

    res = await client.patch(f"/api/team-meets/{meet['id']}/reject", json={"message": "On leave"}, headers=ops_headers)
    assert res.status_code == 200
    assert res.json()["data"]["rejection_message"] == "On leave"

    res = await _schedule(client, ops_headers, "11:15")
    assert res.status_code == 201


@pytest.mark.asyncio
async def test_team_meet_lifecycle(client, tenant, auth_headers):
    counselor_headers = auth_headers(tenant.counselor)
    ops_headers = auth_headers(tenant.ops)
    res = await client.post(
        "/api/team-meets",
        json={
            "requested_to": str(tenant.ops.id),
            "subject": "Case handover",
            "scheduled_date": _tomorrow().isoformat(),
            "scheduled_time": "12:00",
            "duration": 45,
            "meeting_type": "FACE_TO_FACE",
        },
        headers=counselor_headers,
    )
    meet_id = res.json()["data"]["id"]

    res = await client.patch(f"/api/team-meets/{meet_id}/complete", headers=ops_headers)
    assert res.status_code == 400

    res = await client.patch(f"/api/team-meets/{meet_id}/accept", headers=ops_headers)
    assert res.json()["data"]["status"] == "CONFIRMED"

    res = await client.patch(f"/api/team-meets/{meet_id}/complete", headers=ops_headers)
    assert res.json()["data"]["status"] == "COMPLETED"

    res = await client.get("/api/team-meets", params={"status": "COMPLETED"}, headers=counselor_headers)
    assert [m["id"] for m in res.json()["data"]] == [meet_id]


@pytest.mark.asyncio
async def test_team_meet_across_tenants_is_denied(client, tenant, auth_headers, make_user):
    other_admin = await make_user(UserRole.ADMIN, company_name="Elsewhere")
    res = await client.post(
        "/api/team-meets",
        json={
            "requested_to": str(other_admin.id),
            "subject": "Hello",
            "scheduled_date": _tomorrow().isoformat(),
            "scheduled_time": "13:00",
        },
        headers=auth_headers(tenant.counselor),
    )
    assert res.status_code == 403


# ------------------------------------------------------------------
# counselor follow-ups
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_follow_ups_number_and_block_the_counselor(client, session, tenant, auth_headers):
    lead = Lead(
        name="Ravi Kumar",
        email="ravi@example.com",
        mobile_number="9000000002",
        service_types=["EDUCATION_PLANNING"],
        admin_id=tenant.admin.id,
        assigned_counselor_id=tenant.counselor.id,
    )
    session.add(lead)
    await session.commit()

    headers = auth_headers(tenant.counselor)

    async def _follow_up(at):
        return await client.post(
            "/api/counselor/follow-ups",
            json={"lead_id": str(lead.id), "scheduled_date": _tomorrow().isoformat(), "scheduled_time": at},
            headers=headers,
        )

    res = await _follow_up("16:00")
    assert res.status_code == 201, res.text
    assert res.json()["message"] == "Follow-up #1 scheduled with Ravi Kumar"
    first = res.json()["data"]
    assert first["stage_at_follow_up"] == "NEW"

    res = await _follow_up("16:30")
    assert res.json()["data"]["follow_up_number"] == 2

    res = await _follow_up("16:15")
    assert res.status_code == 409

    res = await client.get("/api/counselor/follow-ups/summary", headers=headers)
    assert res.json()["data"]["counts"]["upcoming"] == 2

    # cancelling frees the slot, and an outcome moves the lead
    res = await client.patch(f"/api/counselor/follow-ups/{first['id']}", json={"status": "CANCELLED"}, headers=headers)
    assert res.status_code == 200
    res = await _follow_up("16:00")
    assert res.status_code == 201
    third = res.json()["data"]
    assert third["follow_up_number"] == 3

    res = await client.patch(
        f"/api/counselor/follow-ups/{third['id']}",
        json={"status": "INTERESTED", "stage_changed_to": "HOT"},
        headers=headers,
    )
    assert res.status_code == 200

    res = await client.get(f"/api/counselor/follow-ups/lead/{lead.id}", headers=headers)
    body = res.json()["data"]
    assert body["lead"]["stage"] == "HOT"
    assert [f["follow_up_number"] for f in body["follow_ups"]] == [1, 2, 3]
