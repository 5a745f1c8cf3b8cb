import os
import uuid
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Must be set BEFORE importing core_portal so settings, the engine and
# the rate limiter all see the test configuration.
# ------------------------------------------------------------------
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_core_portal.db"
os.environ["UPLOAD_DIR"] = "test_uploads"
os.environ["SMTP_HOST"] = ""
os.environ["SUPABASE_URL"] = ""
os.environ["ZOHO_CLIENT_ID"] = ""

from sqlmodel import select  # noqa: E402

from core_portal.main import app  # noqa: E402
from core_portal.core.database import AsyncSessionLocal, drop_db, init_db  # noqa: E402
from core_portal.core.security import create_access_token  # noqa: E402
from core_portal.core.seeding_logic import (  # noqa: E402
    link_parts_to_services,
    seed_form_parts,
    seed_profile_sections,
    seed_services,
)
from core_portal.models.enums import UserRole  # noqa: E402
from core_portal.models.service import Service  # noqa: E402
from core_portal.models.user import User  # noqa: E402
from core_portal.services.auth_service import create_user  # noqa: E402
from core_portal.services.registration_service import register_for_service  # noqa: E402
from core_portal.services.student_service import create_student_account  # noqa: E402


@pytest_asyncio.fixture(autouse=True)
async def reset_db():
    await drop_db()
    await init_db()
    yield


@pytest_asyncio.fixture
async def session():
    async with AsyncSessionLocal() as s:
        yield s


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token(subject=str(user.id), data={"role": user.role.value})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest_asyncio.fixture
async def make_user(session):
    async def _make(role: UserRole, admin: User | None = None, name: str | None = None, company_name: str | None = None):
        tag = uuid.uuid4().hex[:8]
        return await create_user(
            session,
            name=name or f"{role.value.title()} {tag}",
            email=f"{role.value.lower()}_{tag}@example.com",
            password="password123",
            role=role,
            admin_id=admin.id if admin else None,
            company_name=company_name,
        )
    return _make


@pytest_asyncio.fixture
async def seeded(session):
    await seed_services(session)
    await seed_form_parts(session)
    await link_parts_to_services(session)
    await seed_profile_sections(session)
    await session.commit()


@pytest_asyncio.fixture
async def tenant(session, seeded, make_user):
    """
    One admin with a counselor and two OPS users, and one student
    registered for Study Abroad with the first OPS active.
    """
    admin = await make_user(UserRole.ADMIN, company_name="Acme Study Abroad")
    counselor = await make_user(UserRole.COUNSELOR, admin=admin)
    ops = await make_user(UserRole.OPS, admin=admin)
    other_ops = await make_user(UserRole.OPS, admin=admin)

    student = await create_student_account(
        session,
        name="Asha Rao",
        email="asha@example.com",
        password="password123",
        mobile_number="9000000001",
        admin_id=admin.id,
        counselor_id=counselor.id,
    )
    service = (await session.execute(select(Service).where(Service.slug == "study-abroad"))).scalar_one()
    registration, _ = await register_for_service(session, student, service.id)

    registration.primary_ops_id = ops.id
    registration.secondary_ops_id = other_ops.id
    registration.active_ops_id = ops.id
    session.add(registration)
    await session.commit()

    student_user = await session.get(User, student.user_id)

    return SimpleNamespace(
        admin=admin,
        counselor=counselor,
        ops=ops,
        other_ops=other_ops,
        student=student,
        student_user=student_user,
        service=service,
        registration=registration,
    )
