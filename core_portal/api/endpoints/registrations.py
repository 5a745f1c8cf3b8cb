# core_portal/api/endpoints/registrations.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session, get_current_user
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.policy import Action
from core_portal.models.enums import RegistrationStatus
from core_portal.models.service import Service
from core_portal.models.user import User
from core_portal.schemas.registration import RegistrationRead, RegistrationStatusUpdate, ServiceRead
from core_portal.schemas.student import StudentRead
from core_portal.services import answer_service, registration_service

router = APIRouter(prefix="/api/registrations", tags=["Registrations"])


# ===================================================================
# LIST (scoped to the caller's role)
# ===================================================================
@router.get("")
async def list_registrations(
    status: Optional[RegistrationStatus] = Query(None),
    service_id: Optional[UUID] = Query(None),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    rows = await registration_service.list_registrations_for_user(
        session, current_user, status=status, service_id=service_id
    )
    return {
        "success": True,
        "data": [
            {**row, "registration": RegistrationRead.model_validate(row["registration"])}
            for row in rows
        ],
    }


# ===================================================================
# DETAIL
# ===================================================================
@router.get("/{registration_id}")
async def get_registration(
    registration_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, student = await registration_service.load_registration(
            session, registration_id, current_user, Action.READ
        )
    except ServiceError as e:
        raise http_error(e)

    service = await session.get(Service, registration.service_id)
    progress = await answer_service.get_progress(session, registration)

    return {
        "success": True,
        "data": {
            "registration": RegistrationRead.model_validate(registration),
            "student": StudentRead.model_validate(student),
            "service": ServiceRead.model_validate(service) if service else None,
            "progress": progress,
        },
    }


# ===================================================================
# STATUS CHANGE (admin / OPS)
# ===================================================================
@router.patch("/{registration_id}/status")
async def update_registration_status(
    registration_id: UUID,
    payload: RegistrationStatusUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.REVIEW
        )
        registration = await registration_service.update_status(
            session, registration, payload.status, payload.notes
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": f"Registration marked {registration.status.value}",
        "data": RegistrationRead.model_validate(registration),
    }
