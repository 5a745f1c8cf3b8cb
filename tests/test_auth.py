import pytest

from core_portal.models.enums import UserRole


async def _signup(client, email="meera@example.com"):
    return await client.post(
        "/api/auth/signup",
        json={"name": "Meera Iyer", "email": email, "password": "secret123", "mobile_number": "9000000009"},
    )


@pytest.mark.asyncio
async def test_root_health(client):
    res = await client.get("/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["service"] == "CORE Backend"


@pytest.mark.asyncio
async def test_signup_login_and_me(client):
    res = await _signup(client)
    assert res.status_code == 201, res.text
    assert res.json()["data"]["user"]["role"] == "STUDENT"

    res = await client.post("/api/auth/login", json={"email": "MEERA@example.com", "password": "secret123"})
    assert res.status_code == 200
    token = res.json()["data"]["access_token"]

    res = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    data = res.json()["data"]
    assert data["user"]["email"] == "meera@example.com"
    assert data["student"]["mobile_number"] == "9000000009"


@pytest.mark.asyncio
async def test_duplicate_signup_is_rejected(client):
    await _signup(client)
    res = await _signup(client)
    assert res.status_code == 400
    assert res.json()["success"] is False


@pytest.mark.asyncio
async def test_wrong_password(client, make_user):
    user = await make_user(UserRole.ADMIN, company_name="Acme")
    res = await client.post("/api/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_deactivated_user_is_blocked(client, auth_headers, make_user):
    super_admin = await make_user(UserRole.SUPER_ADMIN)
    admin = await make_user(UserRole.ADMIN, company_name="Acme")

    res = await client.patch(
        f"/api/super-admin/users/{admin.id}/status",
        json={"is_active": False},
        headers=auth_headers(super_admin),
    )
    assert res.status_code == 200

    res = await client.post("/api/auth/login", json={"email": admin.email, "password": "password123"})
    assert res.status_code == 403

    res = await client.get("/api/admin/students", headers=auth_headers(admin))
    assert res.status_code == 403
    assert res.json()["message"] == "Account is deactivated"


@pytest.mark.asyncio
async def test_missing_or_bad_token(client):
    assert (await client.get("/api/auth/me")).status_code == 401
    res = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_role_gates(client, auth_headers, make_user):
    admin = await make_user(UserRole.ADMIN, company_name="Acme")
    student_res = await _signup(client)
    student_token = student_res.json()["data"]["access_token"]

    res = await client.get("/api/admin/students", headers={"Authorization": f"Bearer {student_token}"})
    assert res.status_code == 403

    res = await client.get("/api/super-admin/users", headers=auth_headers(admin))
    assert res.status_code == 403

    super_admin = await make_user(UserRole.SUPER_ADMIN)
    # super admin passes every role gate
    res = await client.get("/api/admin/leads", headers=auth_headers(super_admin))
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_validation_errors_use_envelope(client):
    res = await client.post("/api/auth/login", json={"email": "not-an-email", "password": "x"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"].startswith("email:")
    assert body["errors"]


# ------------------------------------------------------------------
# staff creation
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_super_admin_creates_tenant_staff(client, auth_headers, make_user):
    super_admin = await make_user(UserRole.SUPER_ADMIN)
    headers = auth_headers(super_admin)

    res = await client.post(
        "/api/super-admin/users",
        json={"name": "Nova Admin", "email": "nova@example.com", "password": "secret123",
              "role": "ADMIN", "company_name": "Nova Overseas"},
        headers=headers,
    )
    assert res.status_code == 201
    admin = res.json()["data"]
    assert admin["enquiry_slug"] == "nova-overseas"

    # OPS without an admin is refused
    res = await client.post(
        "/api/super-admin/users",
        json={"name": "Loose Ops", "email": "ops@example.com", "password": "secret123", "role": "OPS"},
        headers=headers,
    )
    assert res.status_code == 400

    res = await client.post(
        "/api/super-admin/users",
        json={"name": "Another", "email": "root2@example.com", "password": "secret123", "role": "SUPER_ADMIN"},
        headers=headers,
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_admin_manages_own_staff_only(client, auth_headers, make_user):
    admin = await make_user(UserRole.ADMIN, company_name="Acme")
    other_admin = await make_user(UserRole.ADMIN, company_name="Other")
    headers = auth_headers(admin)

    res = await client.post(
        "/api/admin/staff",
        json={"name": "Kiran", "email": "kiran@example.com", "password": "secret123", "role": "COUNSELOR"},
        headers=headers,
    )
    assert res.status_code == 201
    counselor = res.json()["data"]
    assert counselor["admin_id"] == str(admin.id)

    res = await client.get("/api/admin/staff", params={"role": "COUNSELOR"}, headers=headers)
    assert [u["email"] for u in res.json()["data"]] == ["kiran@example.com"]

    res = await client.patch(
        f"/api/admin/staff/{counselor['id']}/status", json={"is_active": False}, headers=auth_headers(other_admin)
    )
    assert res.status_code == 404


# ------------------------------------------------------------------
# registration gating
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_ops_sees_registration_only_after_assignment(client, seeded, auth_headers, make_user):
    super_admin = await make_user(UserRole.SUPER_ADMIN)
    admin = await make_user(UserRole.ADMIN, company_name="Acme")
    ops = await make_user(UserRole.OPS, admin=admin)

    res = await _signup(client)
    student_headers = {"Authorization": f"Bearer {res.json()['data']['access_token']}"}

    services = (await client.get("/api/services")).json()["data"]
    service_id = next(s["id"] for s in services if s["slug"] == "study-abroad")

    res = await client.post("/api/services/register", json={"service_id": service_id}, headers=student_headers)
    assert res.status_code == 201
    registration_id = res.json()["data"]["id"]

    res = await client.post("/api/services/register", json={"service_id": service_id}, headers=student_headers)
    assert res.status_code == 409

    res = await client.get(f"/api/form-answers/{registration_id}", headers=auth_headers(ops))
    assert res.status_code == 403

    res = await client.put(
        f"/api/super-admin/registrations/{registration_id}/ops",
        json={"primary_ops_id": str(ops.id)},
        headers=auth_headers(super_admin),
    )
    assert res.status_code == 200
    assert res.json()["data"]["active_ops_id"] == str(ops.id)

    res = await client.get(f"/api/form-answers/{registration_id}", headers=auth_headers(ops))
    assert res.status_code == 200
