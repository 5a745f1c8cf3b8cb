# core_portal/services/team_meet_service.py

import calendar
from datetime import date, datetime, timedelta
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import ALLOWED_MEETING_DURATIONS
from core_portal.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from core_portal.models.enums import MeetingType, TeamMeetStatus, UserRole
from core_portal.models.scheduling import TeamMeet
from core_portal.models.user import User
from core_portal.services import availability_service
from core_portal.services.availability_service import TEAM_MEET
from core_portal.services.meeting_service import ZohoMeetingClient


def tenant_admin_id(user: User) -> UUID | None:
    if user.role == UserRole.ADMIN:
        return user.id
    return user.admin_id


# ============================================================================
# PARTICIPANTS
# ============================================================================
async def list_participants(session: AsyncSession, user: User) -> list[User]:
    """Staff the user can invite: their admin plus the admin's counselors and OPS."""
    admin_id = tenant_admin_id(user)
    if not admin_id:
        return []

    result = await session.execute(
        select(User)
        .where(
            or_(User.id == admin_id, User.admin_id == admin_id),
            User.is_active == True,  # noqa: E712
            User.id != user.id,
        )
        .order_by(User.name)
    )
    return list(result.scalars().all())


async def _get_for_participant(session: AsyncSession, meet_id: UUID, user: User) -> TeamMeet:
    meet = await session.get(TeamMeet, meet_id)
    if not meet:
        raise NotFoundError("Meeting not found")
    if user.role != UserRole.SUPER_ADMIN and user.id not in (meet.requested_by, meet.requested_to):
        raise PermissionDeniedError("You are not a participant of this meeting")
    return meet


async def get_team_meet(session: AsyncSession, meet_id: UUID, user: User) -> TeamMeet:
    return await _get_for_participant(session, meet_id, user)


# ============================================================================
# CREATE
# ============================================================================
async def create_team_meet(
    session: AsyncSession,
    sender: User,
    requested_to: UUID,
    subject: str,
    scheduled_date: date,
    scheduled_time: str,
    duration: int,
    meeting_type: MeetingType,
    description: str | None,
    meeting_client: ZohoMeetingClient,
) -> tuple[TeamMeet, User]:
    if not subject or not subject.strip():
        raise ValidationFailedError("Subject is required")
    if requested_to == sender.id:
        raise ValidationFailedError("You cannot schedule a meeting with yourself")
    availability_service.validate_slot(scheduled_time, duration, ALLOWED_MEETING_DURATIONS)
    if scheduled_date < date.today():
        raise ValidationFailedError("Cannot schedule a meeting in the past")

    recipient = await session.get(User, requested_to)
    if not recipient or not recipient.is_active:
        raise NotFoundError("Recipient not found")
    if tenant_admin_id(recipient) != tenant_admin_id(sender):
        raise PermissionDeniedError("You can only meet staff from your own organisation")

    meet = TeamMeet(
        subject=subject.strip(),
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration=duration,
        meeting_type=meeting_type,
        description=description,
        requested_by=sender.id,
        requested_to=recipient.id,
        admin_id=tenant_admin_id(sender),
    )
    session.add(meet)

    await availability_service.reserve(
        session, TEAM_MEET, meet.id,
        {sender.id: "You", recipient.id: recipient.name},
        scheduled_date, scheduled_time, duration,
    )

    if meeting_type == MeetingType.ONLINE:
        try:
            details = await meeting_client.create_meeting(
                topic=meet.subject,
                meeting_date=scheduled_date,
                meeting_time=scheduled_time,
                duration_minutes=duration,
                participant_emails=[sender.email, recipient.email],
                agenda=description or "",
            )
            if not details.is_placeholder:
                meet.zoho_meeting_key = details.meeting_key
                meet.zoho_meeting_url = details.meeting_url
        except Exception as e:
            logger.error(f"Zoho meeting creation failed for team meet {meet.id}: {e}")

    await session.commit()
    await session.refresh(meet)

    logger.info(f"TeamMeet {meet.id} requested by {sender.email} for {recipient.email}")
    return meet, recipient


# ============================================================================
# LISTING
# ============================================================================
async def list_team_meets(
    session: AsyncSession,
    user: User,
    status: TeamMeetStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[TeamMeet]:
    query = (
        select(TeamMeet)
        .where(or_(TeamMeet.requested_by == user.id, TeamMeet.requested_to == user.id))
        .order_by(TeamMeet.scheduled_date, TeamMeet.scheduled_time)
    )
    if status:
        query = query.where(TeamMeet.status == status)
    if start_date:
        query = query.where(TeamMeet.scheduled_date >= start_date)
    if end_date:
        query = query.where(TeamMeet.scheduled_date <= end_date)
    result = await session.execute(query)
    return list(result.scalars().all())


async def calendar_view(session: AsyncSession, user: User, month: int, year: int) -> list[TeamMeet]:
    """The month plus one week either side, so calendar edges render fully."""
    if not 1 <= month <= 12:
        raise ValidationFailedError("Month must be between 1 and 12")
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    return await list_team_meets(
        session, user,
        start_date=first - timedelta(days=7),
        end_date=last + timedelta(days=7),
    )


# ============================================================================
# TRANSITIONS
# ============================================================================
async def accept_team_meet(session: AsyncSession, meet_id: UUID, user: User) -> TeamMeet:
    meet = await _get_for_participant(session, meet_id, user)
    if meet.requested_to != user.id:
        raise PermissionDeniedError("Only the invited participant can accept")
    if meet.status != TeamMeetStatus.PENDING_CONFIRMATION:
        raise ValidationFailedError(f"Cannot accept a meeting that is {meet.status.value}")

    meet.status = TeamMeetStatus.CONFIRMED
    meet.updated_at = datetime.utcnow()
    session.add(meet)
    await session.commit()
    await session.refresh(meet)
    return meet


async def reject_team_meet(session: AsyncSession, meet_id: UUID, user: User, message: str) -> TeamMeet:
    meet = await _get_for_participant(session, meet_id, user)
    if meet.requested_to != user.id:
        raise PermissionDeniedError("Only the invited participant can reject")
    if not message or not message.strip():
        raise ValidationFailedError("Rejection message is required")
    if meet.status != TeamMeetStatus.PENDING_CONFIRMATION:
        raise ValidationFailedError(f"Cannot reject a meeting that is {meet.status.value}")

    meet.status = TeamMeetStatus.REJECTED
    meet.rejection_message = message.strip()
    meet.updated_at = datetime.utcnow()
    await availability_service.release(session, TEAM_MEET, meet.id)
    session.add(meet)
    await session.commit()
    await session.refresh(meet)
    return meet


async def cancel_team_meet(
    session: AsyncSession, meet_id: UUID, user: User, meeting_client: ZohoMeetingClient
) -> TeamMeet:
    meet = await _get_for_participant(session, meet_id, user)
    if meet.requested_by != user.id:
        raise PermissionDeniedError("Only the organiser can cancel")
    if meet.status not in (TeamMeetStatus.PENDING_CONFIRMATION, TeamMeetStatus.CONFIRMED):
        raise ValidationFailedError(f"Cannot cancel a meeting that is {meet.status.value}")

    await meeting_client.delete_meeting(meet.zoho_meeting_key)

    meet.status = TeamMeetStatus.CANCELLED
    meet.updated_at = datetime.utcnow()
    await availability_service.release(session, TEAM_MEET, meet.id)
    session.add(meet)
    await session.commit()
    await session.refresh(meet)
    return meet


async def reschedule_team_meet(
    session: AsyncSession,
    meet_id: UUID,
    user: User,
    scheduled_date: date,
    scheduled_time: str,
    duration: int | None = None,
) -> TeamMeet:
    meet = await _get_for_participant(session, meet_id, user)
    if meet.requested_by != user.id:
        raise PermissionDeniedError("Only the organiser can reschedule")
    if meet.status not in (TeamMeetStatus.PENDING_CONFIRMATION, TeamMeetStatus.REJECTED):
        raise ValidationFailedError(f"Cannot reschedule a meeting that is {meet.status.value}")

    new_duration = duration or meet.duration
    availability_service.validate_slot(scheduled_time, new_duration, ALLOWED_MEETING_DURATIONS)
    if scheduled_date < date.today():
        raise ValidationFailedError("Cannot schedule a meeting in the past")

    recipient = await session.get(User, meet.requested_to)

    await availability_service.release(session, TEAM_MEET, meet.id)
    meet.scheduled_date = scheduled_date
    meet.scheduled_time = scheduled_time
    meet.duration = new_duration
    meet.status = TeamMeetStatus.PENDING_CONFIRMATION
    meet.rejection_message = None
    meet.updated_at = datetime.utcnow()
    session.add(meet)

    await availability_service.reserve(
        session, TEAM_MEET, meet.id,
        {user.id: "You", meet.requested_to: recipient.name if recipient else "Participant"},
        scheduled_date, scheduled_time, new_duration,
    )
    await session.commit()
    await session.refresh(meet)
    return meet


async def complete_team_meet(session: AsyncSession, meet_id: UUID, user: User) -> TeamMeet:
    meet = await _get_for_participant(session, meet_id, user)
    if meet.status != TeamMeetStatus.CONFIRMED:
        raise ValidationFailedError("Only confirmed meetings can be completed")

    meet.status = TeamMeetStatus.COMPLETED
    meet.completed_at = datetime.utcnow()
    meet.updated_at = meet.completed_at
    session.add(meet)
    await session.commit()
    await session.refresh(meet)
    return meet
