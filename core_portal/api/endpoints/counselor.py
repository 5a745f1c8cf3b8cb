# core_portal/api/endpoints/counselor.py

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import FollowUpStatus, LeadStage, ServiceType, UserRole
from core_portal.models.user import User
from core_portal.schemas.lead import ConversionRead, ConversionRequest, LeadRead
from core_portal.schemas.scheduling import (
    AvailabilityQuery,
    FollowUpCreate,
    FollowUpRead,
    FollowUpUpdate,
)
from core_portal.schemas.student import StudentRead
from core_portal.services import (
    availability_service,
    conversion_service,
    follow_up_service,
    lead_service,
    student_service,
)
from core_portal.services.availability_service import FOLLOW_UP
from core_portal.services.meeting_service import ZohoMeetingClient, get_meeting_client

router = APIRouter(prefix="/api/counselor", tags=["Counselor"])

counselor_only = AllowRoles(UserRole.COUNSELOR)


def _read_all(items):
    return [FollowUpRead.model_validate(f) for f in items]


# ===================================================================
# LEADS / STUDENTS ASSIGNED TO ME
# ===================================================================
@router.get("/leads")
async def my_leads(
    stage: Optional[LeadStage] = Query(None),
    service_type: Optional[ServiceType] = Query(None),
    search: Optional[str] = Query(None),
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    result = await lead_service.list_leads(
        session, current_user, stage=stage, service_type=service_type, search=search
    )
    return {
        "success": True,
        "data": [LeadRead.model_validate(lead) for lead in result["leads"]],
        "stats": result["stats"],
    }


@router.get("/students")
async def my_students(
    search: Optional[str] = Query(None),
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    students = await student_service.list_students(session, current_user, search)
    return {"success": True, "data": [StudentRead.model_validate(s) for s in students]}


# ===================================================================
# CONVERSION REQUESTS
# ===================================================================
@router.post("/conversions", status_code=status.HTTP_201_CREATED)
async def request_conversion(
    payload: ConversionRequest,
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        conversion = await conversion_service.request_conversion(session, payload.lead_id, current_user)
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Conversion request sent to admin",
        "data": ConversionRead.model_validate(conversion),
    }


@router.get("/conversions")
async def my_conversions(
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    rows = await conversion_service.list_conversions(session, current_user)
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


# ===================================================================
# FOLLOW-UPS
# ===================================================================
@router.get("/follow-ups/summary")
async def follow_up_summary(
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    summary = await follow_up_service.get_summary(session, current_user)
    return {
        "success": True,
        "data": {
            "today": _read_all(summary["today"]),
            "missed": _read_all(summary["missed"]),
            "upcoming": _read_all(summary["upcoming"]),
            "counts": summary["counts"],
        },
    }


@router.post("/follow-ups/check-availability")
async def check_availability(
    payload: AvailabilityQuery,
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        result = await availability_service.check_availability(
            session,
            {current_user.id: "You"},
            payload.scheduled_date,
            payload.scheduled_time,
            payload.duration,
            exclude=(FOLLOW_UP, payload.exclude_id) if payload.exclude_id else None,
        )
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": result}


@router.post("/follow-ups", status_code=status.HTTP_201_CREATED)
async def create_follow_up(
    payload: FollowUpCreate,
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
    meeting_client: ZohoMeetingClient = Depends(get_meeting_client),
):
    try:
        follow_up, lead = await follow_up_service.create_follow_up(
            session,
            current_user,
            lead_id=payload.lead_id,
            scheduled_date=payload.scheduled_date,
            scheduled_time=payload.scheduled_time,
            duration=payload.duration,
            meeting_type=payload.meeting_type,
            notes=payload.notes,
            meeting_client=meeting_client,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": f"Follow-up #{follow_up.follow_up_number} scheduled with {lead.name}",
        "data": FollowUpRead.model_validate(follow_up),
    }


@router.get("/follow-ups")
async def list_follow_ups(
    status_filter: Optional[FollowUpStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    lead_id: Optional[UUID] = Query(None),
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    follow_ups = await follow_up_service.list_follow_ups(
        session, current_user,
        status=status_filter, start_date=start_date, end_date=end_date, lead_id=lead_id,
    )
    return {"success": True, "data": _read_all(follow_ups)}


@router.get("/follow-ups/lead/{lead_id}")
async def lead_follow_up_history(
    lead_id: UUID,
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        lead = await lead_service.get_lead(session, lead_id, current_user)
    except ServiceError as e:
        raise http_error(e)

    history = await follow_up_service.lead_history(session, lead)
    return {
        "success": True,
        "data": {"lead": LeadRead.model_validate(lead), "follow_ups": _read_all(history)},
    }


@router.get("/follow-ups/{follow_up_id}")
async def get_follow_up(
    follow_up_id: UUID,
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        follow_up = await follow_up_service.get_follow_up(session, follow_up_id, current_user)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": FollowUpRead.model_validate(follow_up)}


@router.patch("/follow-ups/{follow_up_id}")
async def update_follow_up(
    follow_up_id: UUID,
    payload: FollowUpUpdate,
    current_user: User = Depends(counselor_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        follow_up = await follow_up_service.update_follow_up(
            session,
            follow_up_id,
            current_user,
            status=payload.status,
            notes=payload.notes,
            stage_changed_to=payload.stage_changed_to,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Follow-up updated",
        "data": FollowUpRead.model_validate(follow_up),
    }
