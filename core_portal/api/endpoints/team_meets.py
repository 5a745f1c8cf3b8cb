# core_portal/api/endpoints/team_meets.py

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.exceptions import NotFoundError, ServiceError, http_error
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import TeamMeetStatus, UserRole
from core_portal.models.scheduling import TeamMeet
from core_portal.models.user import User
from core_portal.schemas.scheduling import (
    AvailabilityQuery,
    RejectRequest,
    RescheduleRequest,
    TeamMeetCreate,
    TeamMeetRead,
)
from core_portal.schemas.user import UserRead
from core_portal.services import availability_service, team_meet_service
from core_portal.services.availability_service import TEAM_MEET
from core_portal.services.email_service import send_meeting_scheduled_email
from core_portal.services.meeting_service import ZohoMeetingClient, get_meeting_client

router = APIRouter(prefix="/api/team-meets", tags=["Team Meets"])

staff_only = AllowRoles(UserRole.ADMIN, UserRole.COUNSELOR, UserRole.OPS)


def _queue_meeting_emails(background_tasks: BackgroundTasks, meet: TeamMeet, sender: User, recipient: User):
    for person, other in ((sender, recipient), (recipient, sender)):
        background_tasks.add_task(send_meeting_scheduled_email, {
            "email": person.email,
            "name": person.name,
            "subject": meet.subject,
            "date": meet.scheduled_date.strftime("%d %b %Y"),
            "time": meet.scheduled_time,
            "duration": meet.duration,
            "meeting_type": meet.meeting_type.value.replace("_", " ").title(),
            "meeting_url": meet.zoho_meeting_url,
            "other_party": other.name,
        })


# ===================================================================
# PARTICIPANTS / AVAILABILITY
# ===================================================================
@router.get("/participants")
async def list_participants(
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    users = await team_meet_service.list_participants(session, current_user)
    return {"success": True, "data": [UserRead.model_validate(u) for u in users]}


@router.post("/check-availability")
async def check_availability(
    payload: AvailabilityQuery,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    participants = {current_user.id: "You"}
    try:
        if payload.participant_id:
            other = await session.get(User, payload.participant_id)
            if not other:
                raise NotFoundError("Participant not found")
            participants[other.id] = other.name

        result = await availability_service.check_availability(
            session,
            participants,
            payload.scheduled_date,
            payload.scheduled_time,
            payload.duration,
            exclude=(TEAM_MEET, payload.exclude_id) if payload.exclude_id else None,
        )
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": result}


# ===================================================================
# CREATE
# ===================================================================
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team_meet(
    payload: TeamMeetCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
    meeting_client: ZohoMeetingClient = Depends(get_meeting_client),
):
    try:
        meet, recipient = await team_meet_service.create_team_meet(
            session,
            sender=current_user,
            requested_to=payload.requested_to,
            subject=payload.subject,
            scheduled_date=payload.scheduled_date,
            scheduled_time=payload.scheduled_time,
            duration=payload.duration,
            meeting_type=payload.meeting_type,
            description=payload.description,
            meeting_client=meeting_client,
        )
    except ServiceError as e:
        raise http_error(e)

    _queue_meeting_emails(background_tasks, meet, current_user, recipient)
    return {
        "success": True,
        "message": "Meeting request sent",
        "data": TeamMeetRead.model_validate(meet),
    }


# ===================================================================
# LIST / CALENDAR / DETAIL
# ===================================================================
@router.get("")
async def list_team_meets(
    status_filter: Optional[TeamMeetStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    meets = await team_meet_service.list_team_meets(
        session, current_user, status=status_filter, start_date=start_date, end_date=end_date
    )
    return {"success": True, "data": [TeamMeetRead.model_validate(m) for m in meets]}


@router.get("/calendar")
async def calendar_view(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000),
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        meets = await team_meet_service.calendar_view(session, current_user, month, year)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": [TeamMeetRead.model_validate(m) for m in meets]}


@router.get("/{meet_id}")
async def get_team_meet(
    meet_id: UUID,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        meet = await team_meet_service.get_team_meet(session, meet_id, current_user)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": TeamMeetRead.model_validate(meet)}


# ===================================================================
# TRANSITIONS
# ===================================================================
@router.patch("/{meet_id}/accept")
async def accept_team_meet(
    meet_id: UUID,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        meet = await team_meet_service.accept_team_meet(session, meet_id, current_user)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Meeting accepted", "data": TeamMeetRead.model_validate(meet)}


@router.patch("/{meet_id}/reject")
async def reject_team_meet(
    meet_id: UUID,
    payload: RejectRequest,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        meet = await team_meet_service.reject_team_meet(session, meet_id, current_user, payload.message)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Meeting rejected", "data": TeamMeetRead.model_validate(meet)}


@router.patch("/{meet_id}/cancel")
async def cancel_team_meet(
    meet_id: UUID,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
    meeting_client: ZohoMeetingClient = Depends(get_meeting_client),
):
    try:
        meet = await team_meet_service.cancel_team_meet(session, meet_id, current_user, meeting_client)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Meeting cancelled", "data": TeamMeetRead.model_validate(meet)}


@router.patch("/{meet_id}/reschedule")
async def reschedule_team_meet(
    meet_id: UUID,
    payload: RescheduleRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        meet = await team_meet_service.reschedule_team_meet(
            session, meet_id, current_user,
            payload.scheduled_date, payload.scheduled_time, payload.duration,
        )
    except ServiceError as e:
        raise http_error(e)

    recipient = await session.get(User, meet.requested_to)
    if recipient:
        _queue_meeting_emails(background_tasks, meet, current_user, recipient)
    return {"success": True, "message": "Meeting rescheduled", "data": TeamMeetRead.model_validate(meet)}


@router.patch("/{meet_id}/complete")
async def complete_team_meet(
    meet_id: UUID,
    current_user: User = Depends(staff_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        meet = await team_meet_service.complete_team_meet(session, meet_id, current_user)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Meeting completed", "data": TeamMeetRead.model_validate(meet)}
