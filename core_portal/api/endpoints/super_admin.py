# core_portal/api/endpoints/super_admin.py

from collections import Counter
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.policy import Action
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import ConversionStatus, RegistrationStatus, UserRole
from core_portal.models.user import User
from core_portal.schemas.lead import ConversionRead, LeadRead
from core_portal.schemas.registration import AssignOpsRequest, RegistrationRead, SwitchActiveOpsRequest
from core_portal.schemas.user import UserCreate, UserRead, UserStatusUpdate
from core_portal.services import auth_service, conversion_service, registration_service

router = APIRouter(prefix="/api/super-admin", tags=["Super Admin"])

# AllowRoles always lets SUPER_ADMIN through; no other role is listed
super_admin_only = AllowRoles()

CREATABLE_ROLES = (UserRole.ADMIN, UserRole.COUNSELOR, UserRole.OPS)


# ===================================================================
# STAFF USERS
# ===================================================================
@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_staff_user(
    payload: UserCreate,
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    if payload.role not in CREATABLE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Role must be one of {[r.value for r in CREATABLE_ROLES]}",
        )

    try:
        user = await auth_service.create_user(
            session,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            admin_id=payload.admin_id,
            company_name=payload.company_name,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": f"{payload.role.value.title()} account created",
        "data": UserRead.model_validate(user),
    }


@router.get("/users")
async def list_users(
    role: Optional[UserRole] = Query(None),
    admin_id: Optional[UUID] = Query(None),
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    users = await auth_service.list_users(session, role=role, admin_id=admin_id)
    return {"success": True, "data": [UserRead.model_validate(u) for u in users]}


@router.patch("/users/{user_id}/status")
async def set_user_status(
    user_id: UUID,
    payload: UserStatusUpdate,
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        user = await auth_service.set_user_active(session, user_id, payload.is_active)
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Account activated" if user.is_active else "Account deactivated",
        "data": UserRead.model_validate(user),
    }


# ===================================================================
# REGISTRATIONS + OPS ASSIGNMENT
# ===================================================================
@router.get("/registrations")
async def list_registrations(
    status_filter: Optional[RegistrationStatus] = Query(None, alias="status"),
    service_id: Optional[UUID] = Query(None),
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    rows = await registration_service.list_registrations_for_user(
        session, current_user, status=status_filter, service_id=service_id
    )
    return {
        "success": True,
        "data": [
            {**row, "registration": RegistrationRead.model_validate(row["registration"])}
            for row in rows
        ],
    }


@router.put("/registrations/{registration_id}/ops")
async def assign_ops(
    registration_id: UUID,
    payload: AssignOpsRequest,
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.ASSIGN
        )
        registration = await registration_service.assign_ops(
            session,
            registration,
            primary_ops_id=payload.primary_ops_id,
            secondary_ops_id=payload.secondary_ops_id,
            active_ops_id=payload.active_ops_id,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "OPS assignment updated",
        "data": RegistrationRead.model_validate(registration),
    }


@router.patch("/registrations/{registration_id}/active-ops")
async def switch_active_ops(
    registration_id: UUID,
    payload: SwitchActiveOpsRequest,
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.ASSIGN
        )
        registration = await registration_service.switch_active_ops(
            session, registration, payload.active_ops_id
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Active OPS switched",
        "data": RegistrationRead.model_validate(registration),
    }


# ===================================================================
# CONVERSIONS OVERVIEW
# ===================================================================
@router.get("/conversions")
async def conversions_overview(
    status_filter: Optional[ConversionStatus] = Query(None, alias="status"),
    current_user: User = Depends(super_admin_only),
    session: AsyncSession = Depends(get_db_session),
):
    rows = await conversion_service.list_conversions(session, current_user, status=status_filter)
    counts = Counter(row["conversion"].status.value for row in rows)

    return {
        "success": True,
        "data": [
            {
                "conversion": ConversionRead.model_validate(row["conversion"]),
                "lead": LeadRead.model_validate(row["lead"]),
            }
            for row in rows
        ],
        "stats": {s.value: counts.get(s.value, 0) for s in ConversionStatus},
    }
