# core_portal/api/endpoints/admin.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.config import settings
from core_portal.core.constants import TENANT_STAFF_ROLES
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import ConversionStatus, LeadStage, ServiceType, UserRole
from core_portal.models.user import User
from core_portal.schemas.lead import ConversionRead, ConversionReject, LeadAssign, LeadRead
from core_portal.schemas.student import StudentCounselorAssign, StudentRead
from core_portal.schemas.user import UserCreate, UserRead, UserStatusUpdate
from core_portal.services import auth_service, conversion_service, lead_service, student_service
from core_portal.services.email_service import send_conversion_approved_email, send_student_welcome_email

router = APIRouter(prefix="/api/admin", tags=["Admin"])

admin_only = AllowRoles(UserRole.ADMIN)


def _tenant_id(user: User, requested: Optional[UUID] = None) -> Optional[UUID]:
    # super admin acts on behalf of whichever admin it names
    if user.role == UserRole.SUPER_ADMIN:
        return requested
    return user.id


# ===================================================================
# STUDENTS
# ===================================================================
@router.get("/students")
async def list_students(
    search: Optional[str] = Query(None),
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    students = await student_service.list_students(session, current_user, search)
    return {"success": True, "data": [StudentRead.model_validate(s) for s in students]}


@router.patch("/students/{student_id}/counselor")
async def assign_student_counselor(
    student_id: UUID,
    payload: StudentCounselorAssign,
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        student = await student_service.assign_counselor(
            session, student_id, current_user, payload.counselor_id
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Counselor updated",
        "data": StudentRead.model_validate(student),
    }


# ===================================================================
# STAFF (counselors / OPS of this admin)
# ===================================================================
@router.post("/staff", status_code=status.HTTP_201_CREATED)
async def create_staff(
    payload: UserCreate,
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    if payload.role not in TENANT_STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins can only create COUNSELOR or OPS accounts",
        )

    try:
        user = await auth_service.create_user(
            session,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            admin_id=_tenant_id(current_user, payload.admin_id),
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": f"{payload.role.value.title()} account created",
        "data": UserRead.model_validate(user),
    }


@router.get("/staff")
async def list_staff(
    role: Optional[UserRole] = Query(None),
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    if role and role not in TENANT_STAFF_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Role must be COUNSELOR or OPS")

    users = await auth_service.list_users(session, role=role, admin_id=_tenant_id(current_user))
    users = [u for u in users if u.role in TENANT_STAFF_ROLES]
    return {"success": True, "data": [UserRead.model_validate(u) for u in users]}


@router.patch("/staff/{user_id}/status")
async def set_staff_status(
    user_id: UUID,
    payload: UserStatusUpdate,
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    staff = await session.get(User, user_id)
    if (
        not staff
        or staff.role not in TENANT_STAFF_ROLES
        or (current_user.role == UserRole.ADMIN and staff.admin_id != current_user.id)
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found")

    try:
        staff = await auth_service.set_user_active(session, user_id, payload.is_active)
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Account activated" if staff.is_active else "Account deactivated",
        "data": UserRead.model_validate(staff),
    }


# ===================================================================
# LEADS
# ===================================================================
@router.get("/leads")
async def list_leads(
    stage: Optional[LeadStage] = Query(None),
    service_type: Optional[ServiceType] = Query(None),
    assigned: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    result = await lead_service.list_leads(
        session, current_user,
        stage=stage, service_type=service_type, assigned=assigned, search=search,
    )
    return {
        "success": True,
        "data": [LeadRead.model_validate(lead) for lead in result["leads"]],
        "stats": result["stats"],
    }


@router.patch("/leads/{lead_id}/assign")
async def assign_lead(
    lead_id: UUID,
    payload: LeadAssign,
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        lead = await lead_service.assign_counselor(session, lead_id, current_user, payload.counselor_id)
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Lead assigned" if lead.assigned_counselor_id else "Lead unassigned",
        "data": LeadRead.model_validate(lead),
    }


@router.get("/enquiry-url")
async def enquiry_url(current_user: User = Depends(admin_only)):
    if not current_user.enquiry_slug:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No enquiry link for this account")

    return {
        "success": True,
        "data": {
            "slug": current_user.enquiry_slug,
            "url": f"{settings.FRONTEND_URL.rstrip('/')}/enquiry/{current_user.enquiry_slug}",
        },
    }


# ===================================================================
# CONVERSIONS
# ===================================================================
@router.get("/conversions")
async def list_conversions(
    status_filter: Optional[ConversionStatus] = Query(None, alias="status"),
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    rows = await conversion_service.list_conversions(session, current_user, status=status_filter)
    return {
        "success": True,
        "data": [
            {
                "conversion": ConversionRead.model_validate(row["conversion"]),
                "lead": LeadRead.model_validate(row["lead"]),
            }
            for row in rows
        ],
    }


@router.post("/conversions/{conversion_id}/approve")
async def approve_conversion(
    conversion_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        result = await conversion_service.approve_conversion(session, conversion_id, current_user)
    except ServiceError as e:
        raise http_error(e)

    student = result["student"]
    background_tasks.add_task(send_student_welcome_email, {
        "email": student.email,
        "name": student.name,
        "temporary_password": result["temporary_password"],
    })
    if result["super_admin"]:
        background_tasks.add_task(send_conversion_approved_email, {
            "admin_email": result["super_admin"].email,
            "student_name": student.name,
            "student_email": student.email,
            "approved_by": current_user.name,
            "company_name": current_user.company_name,
        })

    return {
        "success": True,
        "message": f"{student.name} is now a student",
        "data": {
            "student": StudentRead.model_validate(student),
            "lead": LeadRead.model_validate(result["lead"]),
            "conversion": ConversionRead.model_validate(result["conversion"]),
        },
    }


@router.post("/conversions/{conversion_id}/reject")
async def reject_conversion(
    conversion_id: UUID,
    payload: ConversionReject,
    current_user: User = Depends(admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        conversion = await conversion_service.reject_conversion(
            session, conversion_id, current_user, payload.reason
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Conversion request rejected",
        "data": ConversionRead.model_validate(conversion),
    }
