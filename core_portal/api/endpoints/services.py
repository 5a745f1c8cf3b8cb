# core_portal/api/endpoints/services.py

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.exceptions import NotFoundError, ServiceError, http_error
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import UserRole
from core_portal.models.user import User
from core_portal.schemas.registration import RegisterServiceRequest, RegistrationRead, ServiceRead
from core_portal.services import form_service, registration_service
from core_portal.services.email_service import send_registration_pending_email

router = APIRouter(prefix="/api/services", tags=["Services"])


# ===================================================================
# LIST ACTIVE SERVICES (public)
# ===================================================================
@router.get("")
async def list_services(session: AsyncSession = Depends(get_db_session)):
    services = await form_service.list_services(session)
    return {"success": True, "data": [ServiceRead.model_validate(s) for s in services]}


# ===================================================================
# MY REGISTRATIONS (student)
# ===================================================================
@router.get("/my-registrations")
async def my_registrations(
    current_user: User = Depends(AllowRoles(UserRole.STUDENT)),
    session: AsyncSession = Depends(get_db_session),
):
    rows = await registration_service.list_registrations_for_user(session, current_user)
    return {
        "success": True,
        "data": [
            {**row, "registration": RegistrationRead.model_validate(row["registration"])}
            for row in rows
        ],
    }


# ===================================================================
# REGISTER FOR A SERVICE (student)
# ===================================================================
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterServiceRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(AllowRoles(UserRole.STUDENT)),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        student = await registration_service.get_student_by_user(session, current_user.id)
        if not student:
            raise NotFoundError("Student profile not found")
        registration, service = await registration_service.register_for_service(
            session, student, payload.service_id
        )
    except ServiceError as e:
        raise http_error(e)

    super_admins = await session.execute(
        select(User).where(User.role == UserRole.SUPER_ADMIN, User.is_active == True)  # noqa: E712
    )
    for admin in super_admins.scalars().all():
        background_tasks.add_task(send_registration_pending_email, {
            "admin_email": admin.email,
            "student_name": student.name,
            "student_email": student.email,
            "service_name": service.name,
        })

    return {
        "success": True,
        "message": f"Registered for {service.name}",
        "data": RegistrationRead.model_validate(registration),
    }


# ===================================================================
# SERVICE DETAIL + FORM STRUCTURE
# ===================================================================
@router.get("/{service_id}")
async def get_service(service_id: UUID, session: AsyncSession = Depends(get_db_session)):
    try:
        service = await form_service.get_service(session, service_id)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": ServiceRead.model_validate(service)}


@router.get("/{service_id}/form")
async def get_form_structure(service_id: UUID, session: AsyncSession = Depends(get_db_session)):
    try:
        structure = await form_service.get_form_structure(session, service_id)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": structure}
