# core_portal/services/follow_up_service.py

from datetime import date, datetime, timedelta
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import ALLOWED_MEETING_DURATIONS, FOLLOW_UP_OUTCOMES
from core_portal.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from core_portal.models.enums import FollowUpStatus, LeadStage, MeetingType
from core_portal.models.lead import Lead
from core_portal.models.scheduling import FollowUp
from core_portal.models.user import User
from core_portal.services import availability_service
from core_portal.services.availability_service import FOLLOW_UP, to_minutes
from core_portal.services.meeting_service import ZohoMeetingClient


async def _get_assigned_lead(session: AsyncSession, lead_id: UUID, counselor: User) -> Lead:
    lead = await session.get(Lead, lead_id)
    if not lead:
        raise NotFoundError("Lead not found")
    if lead.assigned_counselor_id != counselor.id:
        raise PermissionDeniedError("This lead is not assigned to you")
    return lead


async def _get_owned(session: AsyncSession, follow_up_id: UUID, counselor: User) -> FollowUp:
    follow_up = await session.get(FollowUp, follow_up_id)
    if not follow_up:
        raise NotFoundError("Follow-up not found")
    if follow_up.counselor_id != counselor.id:
        raise PermissionDeniedError("You can only manage your own follow-ups")
    return follow_up


# ============================================================================
# CREATE
# ============================================================================
async def create_follow_up(
    session: AsyncSession,
    counselor: User,
    lead_id: UUID,
    scheduled_date: date,
    scheduled_time: str,
    duration: int,
    meeting_type: MeetingType,
    notes: str | None,
    meeting_client: ZohoMeetingClient,
) -> tuple[FollowUp, Lead]:
    lead = await _get_assigned_lead(session, lead_id, counselor)
    if lead.stage in (LeadStage.CONVERTED, LeadStage.CLOSED):
        raise ValidationFailedError(f"Cannot schedule a follow-up for a {lead.stage.value} lead")

    availability_service.validate_slot(scheduled_time, duration, ALLOWED_MEETING_DURATIONS)
    if scheduled_date < date.today():
        raise ValidationFailedError("Cannot schedule a follow-up in the past")

    previous = await session.execute(
        select(func.count()).select_from(FollowUp).where(FollowUp.lead_id == lead.id)
    )

    follow_up = FollowUp(
        lead_id=lead.id,
        counselor_id=counselor.id,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration=duration,
        meeting_type=meeting_type,
        stage_at_follow_up=lead.stage,
        follow_up_number=(previous.scalar() or 0) + 1,
        notes=notes,
    )
    session.add(follow_up)

    await availability_service.reserve(
        session, FOLLOW_UP, follow_up.id, {counselor.id: "You"},
        scheduled_date, scheduled_time, duration,
    )

    if meeting_type == MeetingType.ONLINE:
        try:
            details = await meeting_client.create_meeting(
                topic=f"Follow-up with {lead.name}",
                meeting_date=scheduled_date,
                meeting_time=scheduled_time,
                duration_minutes=duration,
                participant_emails=[counselor.email, lead.email],
                agenda=notes or "",
            )
            if not details.is_placeholder:
                follow_up.zoho_meeting_key = details.meeting_key
                follow_up.zoho_meeting_url = details.meeting_url
        except Exception as e:
            logger.error(f"Zoho meeting creation failed for follow-up {follow_up.id}: {e}")

    await session.commit()
    await session.refresh(follow_up)

    logger.info(f"Follow-up #{follow_up.follow_up_number} scheduled for lead {lead.id}")
    return follow_up, lead


# ============================================================================
# UPDATE
# ============================================================================
async def update_follow_up(
    session: AsyncSession,
    follow_up_id: UUID,
    counselor: User,
    status: FollowUpStatus | None = None,
    notes: str | None = None,
    stage_changed_to: LeadStage | None = None,
) -> FollowUp:
    follow_up = await _get_owned(session, follow_up_id, counselor)
    if follow_up.status in (FollowUpStatus.CANCELLED, FollowUpStatus.CONVERTED_TO_STUDENT):
        raise ValidationFailedError(f"Cannot update a follow-up that is {follow_up.status.value}")
    if status == FollowUpStatus.CONVERTED_TO_STUDENT:
        raise ValidationFailedError("Follow-ups are marked converted when the conversion is approved")

    now = datetime.utcnow()

    if notes is not None:
        follow_up.notes = notes

    if status and status != follow_up.status:
        follow_up.status = status
        if status in FOLLOW_UP_OUTCOMES:
            follow_up.completed_at = now
        elif status == FollowUpStatus.CANCELLED:
            await availability_service.release(session, FOLLOW_UP, follow_up.id)

    if stage_changed_to:
        lead = await session.get(Lead, follow_up.lead_id)
        if lead.stage == LeadStage.CONVERTED:
            raise ValidationFailedError("Cannot change stage of a converted lead")
        if stage_changed_to == LeadStage.CONVERTED:
            raise ValidationFailedError("Leads become CONVERTED only through an approved conversion")
        follow_up.stage_changed_to = stage_changed_to
        lead.stage = stage_changed_to
        lead.updated_at = now
        session.add(lead)

    follow_up.updated_at = now
    session.add(follow_up)
    await session.commit()
    await session.refresh(follow_up)
    return follow_up


# ============================================================================
# QUERIES
# ============================================================================
async def list_follow_ups(
    session: AsyncSession,
    counselor: User,
    status: FollowUpStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    lead_id: UUID | None = None,
) -> list[FollowUp]:
    query = (
        select(FollowUp)
        .where(FollowUp.counselor_id == counselor.id)
        .order_by(FollowUp.scheduled_date, FollowUp.scheduled_time)
    )
    if status:
        query = query.where(FollowUp.status == status)
    if start_date:
        query = query.where(FollowUp.scheduled_date >= start_date)
    if end_date:
        query = query.where(FollowUp.scheduled_date <= end_date)
    if lead_id:
        query = query.where(FollowUp.lead_id == lead_id)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_follow_up(session: AsyncSession, follow_up_id: UUID, counselor: User) -> FollowUp:
    return await _get_owned(session, follow_up_id, counselor)


async def lead_history(session: AsyncSession, lead: Lead) -> list[FollowUp]:
    result = await session.execute(
        select(FollowUp)
        .where(FollowUp.lead_id == lead.id)
        .order_by(FollowUp.follow_up_number)
    )
    return list(result.scalars().all())


def _has_ended(follow_up: FollowUp, now: datetime) -> bool:
    end = datetime.combine(follow_up.scheduled_date, datetime.min.time()) + timedelta(
        minutes=to_minutes(follow_up.scheduled_time) + follow_up.duration
    )
    return end < now


async def get_summary(session: AsyncSession, counselor: User, now: datetime | None = None) -> dict:
    """Today's calls, SCHEDULED calls whose slot has passed, and the next upcoming ones."""
    now = now or datetime.now()
    today = now.date()

    result = await session.execute(
        select(FollowUp)
        .where(
            FollowUp.counselor_id == counselor.id,
            FollowUp.status == FollowUpStatus.SCHEDULED,
        )
        .order_by(FollowUp.scheduled_date, FollowUp.scheduled_time)
    )
    scheduled = list(result.scalars().all())

    today_items = [f for f in scheduled if f.scheduled_date == today and not _has_ended(f, now)]
    missed = [f for f in scheduled if _has_ended(f, now)]
    upcoming = [f for f in scheduled if f.scheduled_date > today]

    return {
        "today": today_items,
        "missed": missed,
        "upcoming": upcoming,
        "counts": {"today": len(today_items), "missed": len(missed), "upcoming": len(upcoming)},
    }
