from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlmodel import select

from core_portal.core.config import settings
from core_portal.models.enums import UserRole
from core_portal.models.student import Student

ENQUIRY = {
    "name": "Ravi Kumar",
    "email": "Ravi@Example.com",
    "mobile_number": "9000000002",
    "city": "Pune",
    "service_types": ["EDUCATION_PLANNING", "IELTS_GRE_COACHING"],
}


async def _submit_lead(client, slug="acme-study-abroad", **overrides):
    return await client.post(f"/api/enquiry/{slug}", json={**ENQUIRY, **overrides})


async def _assigned_lead(client, tenant, auth_headers):
    res = await _submit_lead(client)
    lead_id = res.json()["data"]["id"]
    res = await client.patch(
        f"/api/admin/leads/{lead_id}/assign",
        json={"counselor_id": str(tenant.counselor.id)},
        headers=auth_headers(tenant.admin),
    )
    assert res.status_code == 200, res.text
    return lead_id


# ------------------------------------------------------------------
# public enquiry form
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_enquiry_form_header(client, tenant):
    res = await client.get("/api/enquiry/acme-study-abroad")
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["company_name"] == "Acme Study Abroad"
    assert "EDUCATION_PLANNING" in data["service_types"]

    res = await client.get("/api/enquiry/nobody-here")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Invalid enquiry link"}


@pytest.mark.asyncio
async def test_enquiry_creates_lead_and_blocks_duplicates(client, tenant, auth_headers):
    res = await _submit_lead(client)
    assert res.status_code == 201
    assert res.json()["message"] == "Thank you! Our team will get in touch with you soon."

    res = await _submit_lead(client, email="ravi@example.com")
    assert res.status_code == 400

    res = await client.get("/api/admin/leads", headers=auth_headers(tenant.admin))
    body = res.json()
    assert [lead["email"] for lead in body["data"]] == ["ravi@example.com"]
    assert body["data"][0]["stage"] == "NEW"
    assert body["data"][0]["source"] == "Enquiry Form"
    assert body["stats"]["NEW"] == 1
    assert body["stats"]["total"] == 1


@pytest.mark.asyncio
async def test_enquiry_requires_a_service(client, tenant):
    res = await _submit_lead(client, service_types=[])
    assert res.status_code == 400
    assert res.json()["success"] is False


@pytest.mark.asyncio
async def test_admin_enquiry_url(client, tenant, auth_headers):
    res = await client.get("/api/admin/enquiry-url", headers=auth_headers(tenant.admin))
    data = res.json()["data"]
    assert data["slug"] == "acme-study-abroad"
    assert data["url"].endswith("/enquiry/acme-study-abroad")


# ------------------------------------------------------------------
# stages
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_stage_cannot_be_set_to_converted_directly(client, tenant, auth_headers):
    lead_id = await _assigned_lead(client, tenant, auth_headers)
    headers = auth_headers(tenant.counselor)

    res = await client.patch(f"/api/leads/{lead_id}/stage", json={"stage": "WARM"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Lead moved to WARM"

    res = await client.patch(f"/api/leads/{lead_id}/stage", json={"stage": "CONVERTED"}, headers=headers)
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_unassigned_counselor_cannot_touch_lead(client, tenant, auth_headers, make_user):
    lead_id = await _assigned_lead(client, tenant, auth_headers)
    stranger = await make_user(UserRole.COUNSELOR, admin=tenant.admin)
    headers = auth_headers(stranger)

    assert (await client.get(f"/api/leads/{lead_id}", headers=headers)).status_code == 403
    res = await client.post("/api/counselor/conversions", json={"lead_id": lead_id}, headers=headers)
    assert res.status_code == 403


# ------------------------------------------------------------------
# conversion
# ------------------------------------------------------------------
@pytest.mark.asyncio
@patch("core_portal.services.email_service.smtplib.SMTP")
async def test_approved_conversion_creates_student(mock_smtp, client, session, tenant, auth_headers, make_user, monkeypatch):
    mock_server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = mock_server
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(settings, "SMTP_PORT", 25)

    super_admin = await make_user(UserRole.SUPER_ADMIN)
    lead_id = await _assigned_lead(client, tenant, auth_headers)
    counselor_headers = auth_headers(tenant.counselor)

    res = await client.post(
        "/api/counselor/follow-ups",
        json={
            "lead_id": lead_id,
            "scheduled_date": (date.today() + timedelta(days=1)).isoformat(),
            "scheduled_time": "17:00",
        },
        headers=counselor_headers,
    )
    follow_up_id = res.json()["data"]["id"]

    res = await client.post("/api/counselor/conversions", json={"lead_id": lead_id}, headers=counselor_headers)
    assert res.status_code == 201
    conversion_id = res.json()["data"]["id"]

    # only one pending request at a time
    res = await client.post("/api/counselor/conversions", json={"lead_id": lead_id}, headers=counselor_headers)
    assert res.status_code == 400

    res = await client.post(f"/api/admin/conversions/{conversion_id}/approve", headers=auth_headers(tenant.admin))
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["lead"]["stage"] == "CONVERTED"
    assert data["conversion"]["status"] == "APPROVED"
    assert data["student"]["email"] == "ravi@example.com"
    assert data["conversion"]["created_student_id"] == data["student"]["id"]

    student = (await session.execute(select(Student).where(Student.email == "ravi@example.com"))).scalar_one()
    assert str(student.converted_from_lead_id) == lead_id
    assert student.counselor_id == tenant.counselor.id

    res = await client.get(f"/api/counselor/follow-ups/{follow_up_id}", headers=counselor_headers)
    assert res.json()["data"]["status"] == "CONVERTED_TO_STUDENT"

    recipients = {c.args[1] for c in mock_server.sendmail.call_args_list}
    assert recipients == {"ravi@example.com", super_admin.email}

    # a converted lead is frozen
    res = await client.patch(f"/api/leads/{lead_id}/stage", json={"stage": "HOT"}, headers=counselor_headers)
    assert res.status_code == 400

    res = await client.post(f"/api/admin/conversions/{conversion_id}/approve", headers=auth_headers(tenant.admin))
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_rejected_conversion_without_reason(client, tenant, auth_headers):
    lead_id = await _assigned_lead(client, tenant, auth_headers)
    counselor_headers = auth_headers(tenant.counselor)

    res = await client.post("/api/counselor/conversions", json={"lead_id": lead_id}, headers=counselor_headers)
    conversion_id = res.json()["data"]["id"]

    res = await client.post(
        f"/api/admin/conversions/{conversion_id}/reject", json={}, headers=auth_headers(tenant.admin)
    )
    assert res.status_code == 200
    assert res.json()["data"]["rejection_reason"] == "No reason provided"

    res = await client.get(f"/api/leads/{lead_id}", headers=counselor_headers)
    lead = res.json()["data"]["lead"]
    assert lead["conversion_status"] == "REJECTED"
    assert lead["stage"] != "CONVERTED"

    # a fresh request is allowed after a rejection
    res = await client.post("/api/counselor/conversions", json={"lead_id": lead_id}, headers=counselor_headers)
    assert res.status_code == 201


@pytest.mark.asyncio
async def test_other_admin_cannot_approve(client, tenant, auth_headers, make_user):
    lead_id = await _assigned_lead(client, tenant, auth_headers)
    res = await client.post(
        "/api/counselor/conversions", json={"lead_id": lead_id}, headers=auth_headers(tenant.counselor)
    )
    conversion_id = res.json()["data"]["id"]

    outsider = await make_user(UserRole.ADMIN, company_name="Other Agency")
    res = await client.post(f"/api/admin/conversions/{conversion_id}/approve", headers=auth_headers(outsider))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_super_admin_conversion_stats(client, tenant, auth_headers, make_user):
    super_admin = await make_user(UserRole.SUPER_ADMIN)
    lead_id = await _assigned_lead(client, tenant, auth_headers)
    await client.post("/api/counselor/conversions", json={"lead_id": lead_id}, headers=auth_headers(tenant.counselor))

    res = await client.get("/api/super-admin/conversions", headers=auth_headers(super_admin))
    assert res.status_code == 200
    body = res.json()
    assert body["stats"]["PENDING"] == 1
    assert body["stats"]["APPROVED"] == 0
