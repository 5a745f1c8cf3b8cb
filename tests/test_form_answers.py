import pytest
from sqlmodel import select

from core_portal.models.enums import FieldType, FormPartKey, UserRole
from core_portal.models.form import FormField, FormPart, FormSection, FormSubSection


async def _profile_ids(client, service_id):
    res = await client.get(f"/api/services/{service_id}/form")
    assert res.status_code == 200
    profile = next(p for p in res.json()["data"] if p["key"] == "PROFILE")
    personal = next(s for s in profile["sections"] if s["title"] == "Personal Details")
    info = next(s for s in personal["sub_sections"] if s["title"] == "Personal Information")
    mailing = next(s for s in personal["sub_sections"] if s["title"] == "Mailing Address")
    return personal, info, mailing


@pytest.mark.asyncio
async def test_form_structure_carries_field_coupling(client, tenant):
    personal, _, mailing = await _profile_ids(client, tenant.service.id)

    fields = {f["key"]: f for f in mailing["fields"]}
    assert fields["mailingState"]["depends_on"] == "mailingCountry"
    assert fields["mailingCity"]["depends_on"] == "mailingState"
    assert fields["mailingCountry"]["default_value"] == "IN"

    permanent = next(s for s in personal["sub_sections"] if s["title"] == "Permanent Address")
    copies = [f for f in permanent["fields"] if f.get("copy_from")]
    assert len(copies) == 6
    assert all(f["copy_from"]["trigger"] == "sameAsMailingAddress" for f in copies)


async def _application_section(session, service_id):
    part = (await session.execute(select(FormPart).where(FormPart.key == FormPartKey.APPLICATION))).scalar_one()
    section = FormSection(part_id=part.id, service_id=service_id, title="University Choices", order=1)
    session.add(section)
    await session.flush()
    sub_section = FormSubSection(section_id=section.id, title="First Choice", order=1)
    session.add(sub_section)
    await session.flush()
    session.add(FormField(
        sub_section_id=sub_section.id, label="University", key="universityName", type=FieldType.TEXT, order=1
    ))
    await session.commit()
    return str(section.id), str(sub_section.id)


@pytest.mark.asyncio
async def test_saving_one_part_leaves_others_untouched(client, session, tenant, auth_headers):
    headers = auth_headers(tenant.student_user)
    rid = tenant.registration.id
    personal, info, _ = await _profile_ids(client, tenant.service.id)
    section_id, sub_section_id = await _application_section(session, tenant.service.id)

    application_answers = {section_id: {sub_section_id: [{"universityName": "University of Toronto"}]}}
    res = await client.put(
        f"/api/form-answers/{rid}/APPLICATION", json={"answers": application_answers}, headers=headers
    )
    assert res.status_code == 200, res.text
    application_row = res.json()["data"]

    profile_answers = {personal["id"]: {info["id"]: [{"firstName": "Asha", "lastName": "Rao", "phone": "9876543210"}]}}
    res = await client.put(
        f"/api/form-answers/{rid}/PROFILE", json={"answers": profile_answers}, headers=headers
    )
    assert res.status_code == 200
    assert res.json()["data"]["answers"] == profile_answers

    res = await client.get(f"/api/form-answers/{rid}", params={"part_key": "PROFILE"}, headers=headers)
    assert [row["answers"] for row in res.json()["data"]] == [profile_answers]

    res = await client.get(f"/api/form-answers/{rid}", params={"part_key": "APPLICATION"}, headers=headers)
    rows = res.json()["data"]
    assert [row["answers"] for row in rows] == [application_answers]
    assert rows[0]["last_saved_at"] == application_row["last_saved_at"]

    # registration moves to IN_PROGRESS and the profile phone reaches the student record
    res = await client.get(f"/api/registrations/{rid}", headers=headers)
    body = res.json()["data"]
    assert body["registration"]["status"] == "IN_PROGRESS"
    assert body["student"]["mobile_number"] == "9876543210"


@pytest.mark.asyncio
async def test_non_repeatable_sub_section_rejects_two_instances(client, tenant, auth_headers):
    headers = auth_headers(tenant.student_user)
    personal, info, _ = await _profile_ids(client, tenant.service.id)

    res = await client.put(
        f"/api/form-answers/{tenant.registration.id}/PROFILE",
        json={"answers": {personal["id"]: {info["id"]: [{"firstName": "A"}, {"firstName": "B"}]}}},
        headers=headers,
    )
    assert res.status_code == 400
    assert res.json()["success"] is False


@pytest.mark.asyncio
async def test_prefilled_form_uses_student_phone(client, tenant, auth_headers):
    personal, info, mailing = await _profile_ids(client, tenant.service.id)

    res = await client.get(
        f"/api/form-answers/{tenant.registration.id}/prefilled", headers=auth_headers(tenant.student_user)
    )
    assert res.status_code == 200
    profile = res.json()["data"]["answers"]["PROFILE"]
    assert profile[personal["id"]][info["id"]] == [{"phone": "9000000001"}]
    assert profile[personal["id"]][mailing["id"]] == [{"mailingCountry": "IN"}]


@pytest.mark.asyncio
async def test_apply_change_endpoint_resets_dependents(client, tenant, auth_headers):
    personal, _, mailing = await _profile_ids(client, tenant.service.id)

    res = await client.post(
        f"/api/form-answers/{tenant.registration.id}/apply-change",
        json={
            "part_key": "PROFILE",
            "section_id": personal["id"],
            "sub_section_id": mailing["id"],
            "index": 0,
            "key": "mailingCountry",
            "value": "US",
            "section_answers": {mailing["id"]: [{"mailingCountry": "IN", "mailingState": "KA", "mailingCity": "Mysuru"}]},
        },
        headers=auth_headers(tenant.student_user),
    )
    assert res.status_code == 200
    instance = res.json()["data"]["section_answers"][mailing["id"]][0]
    assert instance == {"mailingCountry": "US", "mailingState": "", "mailingCity": ""}


# ------------------------------------------------------------------
# access policy
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_only_the_active_ops_reads_and_writes_answers(client, tenant, auth_headers):
    rid = tenant.registration.id

    res = await client.get(f"/api/form-answers/{rid}", headers=auth_headers(tenant.other_ops))
    assert res.status_code == 403
    res = await client.put(f"/api/form-answers/{rid}/APPLICATION", json={"answers": {}}, headers=auth_headers(tenant.other_ops))
    assert res.status_code == 403

    res = await client.get(f"/api/form-answers/{rid}", headers=auth_headers(tenant.ops))
    assert res.status_code == 200
    res = await client.put(f"/api/form-answers/{rid}/APPLICATION", json={"answers": {}}, headers=auth_headers(tenant.ops))
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_switching_active_ops_moves_access(client, tenant, auth_headers, make_user):
    super_admin = await make_user(UserRole.SUPER_ADMIN)
    rid = tenant.registration.id

    res = await client.patch(
        f"/api/super-admin/registrations/{rid}/active-ops",
        json={"active_ops_id": str(tenant.other_ops.id)},
        headers=auth_headers(super_admin),
    )
    assert res.status_code == 200

    res = await client.get(f"/api/form-answers/{rid}", headers=auth_headers(tenant.ops))
    assert res.status_code == 403
    res = await client.get(f"/api/form-answers/{rid}", headers=auth_headers(tenant.other_ops))
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_counselor_reads_but_cannot_write(client, tenant, auth_headers):
    rid = tenant.registration.id
    headers = auth_headers(tenant.counselor)

    assert (await client.get(f"/api/form-answers/{rid}/progress", headers=headers)).status_code == 200
    res = await client.put(f"/api/form-answers/{rid}/APPLICATION", json={"answers": {}}, headers=headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_other_tenant_admin_is_denied(client, tenant, auth_headers, make_user):
    outsider = await make_user(UserRole.ADMIN, company_name="Other Agency")
    res = await client.get(f"/api/form-answers/{tenant.registration.id}", headers=auth_headers(outsider))
    assert res.status_code == 403
    assert res.json() == {"success": False, "message": "You do not have access to this registration"}


@pytest.mark.asyncio
async def test_adding_a_second_instance_to_non_repeatable_fails(client, tenant, auth_headers):
    personal, info, _ = await _profile_ids(client, tenant.service.id)

    res = await client.post(
        f"/api/form-answers/{tenant.registration.id}/instances/add",
        json={
            "part_key": "PROFILE",
            "section_id": personal["id"],
            "sub_section_id": info["id"],
            "instances": [{"firstName": "Asha"}],
        },
        headers=auth_headers(tenant.student_user),
    )
    assert res.status_code == 400


# ------------------------------------------------------------------
# registration status
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_registration_status_transitions(client, tenant, auth_headers):
    rid = tenant.registration.id
    ops_headers = auth_headers(tenant.ops)

    res = await client.patch(f"/api/registrations/{rid}/status", json={"status": "COMPLETED"}, headers=ops_headers)
    assert res.status_code == 400

    res = await client.patch(
        f"/api/registrations/{rid}/status", json={"status": "IN_PROGRESS"}, headers=auth_headers(tenant.counselor)
    )
    assert res.status_code == 403

    res = await client.patch(f"/api/registrations/{rid}/status", json={"status": "IN_PROGRESS"}, headers=ops_headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Registration marked IN_PROGRESS"
