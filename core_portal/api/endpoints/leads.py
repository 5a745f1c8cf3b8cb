# core_portal/api/endpoints/leads.py

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import UserRole
from core_portal.models.user import User
from core_portal.schemas.lead import LeadRead, LeadStageUpdate
from core_portal.schemas.scheduling import FollowUpRead
from core_portal.services import follow_up_service, lead_service

router = APIRouter(prefix="/api/leads", tags=["Leads"])

lead_roles = AllowRoles(UserRole.ADMIN, UserRole.COUNSELOR)


@router.get("/{lead_id}")
async def get_lead(
    lead_id: UUID,
    current_user: User = Depends(lead_roles),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        lead = await lead_service.get_lead(session, lead_id, current_user)
    except ServiceError as e:
        raise http_error(e)

    history = await follow_up_service.lead_history(session, lead)
    return {
        "success": True,
        "data": {
            "lead": LeadRead.model_validate(lead),
            "follow_ups": [FollowUpRead.model_validate(f) for f in history],
        },
    }


@router.patch("/{lead_id}/stage")
async def update_lead_stage(
    lead_id: UUID,
    payload: LeadStageUpdate,
    current_user: User = Depends(lead_roles),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        lead = await lead_service.update_stage(session, lead_id, current_user, payload.stage)
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": f"Lead moved to {lead.stage.value}",
        "data": LeadRead.model_validate(lead),
    }
