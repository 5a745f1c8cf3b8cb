# core_portal/services/availability_service.py

import re
from datetime import date
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy import delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import (
    BUSY_FOLLOW_UP_EXCLUDED,
    BUSY_OPS_SCHEDULE_STATUSES,
    BUSY_TEAM_MEET_STATUSES,
    SLOT_MINUTES,
    TIME_PATTERN,
)
from core_portal.core.exceptions import ConflictError, ValidationFailedError
from core_portal.models.scheduling import CalendarSlot, FollowUp, OpsSchedule, TeamMeet

TEAM_MEET = "team_meet"
OPS_SCHEDULE = "ops_schedule"
FOLLOW_UP = "follow_up"

MINUTES_PER_DAY = 24 * 60


# ============================================================================
# TIME HELPERS
# ============================================================================
def to_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def validate_slot(scheduled_time: str, duration: int, allowed_durations=None) -> None:
    if not scheduled_time or not re.match(TIME_PATTERN, scheduled_time):
        raise ValidationFailedError("Time must be in HH:MM format")
    start = to_minutes(scheduled_time)
    if start % SLOT_MINUTES:
        raise ValidationFailedError(f"Time must be on a {SLOT_MINUTES}-minute boundary")
    if allowed_durations and duration not in allowed_durations:
        raise ValidationFailedError(
            f"Duration must be one of {', '.join(str(d) for d in allowed_durations)} minutes"
        )
    if duration <= 0 or duration % SLOT_MINUTES:
        raise ValidationFailedError(f"Duration must be a positive multiple of {SLOT_MINUTES} minutes")
    if start + duration > MINUTES_PER_DAY:
        raise ValidationFailedError("The event must end on the same day")


def overlaps(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    return start_a < start_b + duration_b and start_b < start_a + duration_a


# ============================================================================
# BUSY EVENTS
# ============================================================================
async def busy_events(
    session: AsyncSession,
    participant_id: UUID,
    day: date,
    exclude: tuple[str, UUID] | None = None,
) -> list[dict]:
    """Everything that occupies `participant_id` on `day`, across all three calendars."""
    events: list[dict] = []

    meets = await session.execute(
        select(TeamMeet).where(
            or_(TeamMeet.requested_by == participant_id, TeamMeet.requested_to == participant_id),
            TeamMeet.scheduled_date == day,
            TeamMeet.status.in_(BUSY_TEAM_MEET_STATUSES),
        )
    )
    for m in meets.scalars().all():
        events.append({"type": TEAM_MEET, "id": m.id, "title": m.subject,
                       "time": m.scheduled_time, "duration": m.duration})

    schedules = await session.execute(
        select(OpsSchedule).where(
            OpsSchedule.ops_id == participant_id,
            OpsSchedule.scheduled_date == day,
            OpsSchedule.status.in_(BUSY_OPS_SCHEDULE_STATUSES),
        )
    )
    for s in schedules.scalars().all():
        events.append({"type": OPS_SCHEDULE, "id": s.id, "title": s.description,
                       "time": s.scheduled_time, "duration": s.duration})

    follow_ups = await session.execute(
        select(FollowUp).where(
            FollowUp.counselor_id == participant_id,
            FollowUp.scheduled_date == day,
            FollowUp.status.notin_(BUSY_FOLLOW_UP_EXCLUDED),
        )
    )
    for f in follow_ups.scalars().all():
        events.append({"type": FOLLOW_UP, "id": f.id, "title": f"Follow-up #{f.follow_up_number}",
                       "time": f.scheduled_time, "duration": f.duration})

    if exclude:
        events = [e for e in events if (e["type"], e["id"]) != exclude]
    return sorted(events, key=lambda e: e["time"])


async def find_conflicts(
    session: AsyncSession,
    participant_id: UUID,
    day: date,
    scheduled_time: str,
    duration: int,
    exclude: tuple[str, UUID] | None = None,
) -> list[dict]:
    start = to_minutes(scheduled_time)
    return [
        e for e in await busy_events(session, participant_id, day, exclude)
        if overlaps(start, duration, to_minutes(e["time"]), e["duration"])
    ]


def describe_conflict(event: dict) -> str:
    end = to_hhmm(to_minutes(event["time"]) + event["duration"])
    label = {TEAM_MEET: "meeting", OPS_SCHEDULE: "schedule", FOLLOW_UP: "follow-up"}[event["type"]]
    return f"{label} '{event['title']}' from {event['time']} to {end}"


async def check_availability(
    session: AsyncSession,
    participants: dict[UUID, str],
    day: date,
    scheduled_time: str,
    duration: int,
    exclude: tuple[str, UUID] | None = None,
) -> dict:
    """participants maps user id -> display label used in messages."""
    validate_slot(scheduled_time, duration)
    conflicts = []
    for participant_id, label in participants.items():
        for event in await find_conflicts(session, participant_id, day, scheduled_time, duration, exclude):
            conflicts.append({
                "participant_id": participant_id,
                "participant": label,
                "type": event["type"],
                "event_id": event["id"],
                "title": event["title"],
                "time": event["time"],
                "duration": event["duration"],
                "message": f"{label} already has a {describe_conflict(event)}",
            })
    return {"available": not conflicts, "conflicts": conflicts}


# ============================================================================
# SLOT CLAIMS (transactional double-booking guard)
# ============================================================================
def _slot_minutes(scheduled_time: str, duration: int) -> range:
    start = to_minutes(scheduled_time)
    return range(start, start + duration, SLOT_MINUTES)


async def reserve(
    session: AsyncSession,
    event_type: str,
    event_id: UUID,
    participants: dict[UUID, str],
    day: date,
    scheduled_time: str,
    duration: int,
) -> None:
    """
    Checks every participant for overlaps and claims their calendar slots
    in the caller's transaction. The caller must have added the event
    itself to the session and commits afterwards.

    Raises ConflictError on overlap, including when a concurrent request
    claimed the same slot between the check and the flush.
    """
    result = await check_availability(
        session, participants, day, scheduled_time, duration, exclude=(event_type, event_id)
    )
    if not result["available"]:
        raise ConflictError(f"Time conflict: {result['conflicts'][0]['message']}")

    for participant_id in participants:
        for minute in _slot_minutes(scheduled_time, duration):
            session.add(CalendarSlot(
                participant_id=participant_id,
                slot_date=day,
                slot_minute=minute,
                event_type=event_type,
                event_id=event_id,
            ))

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning(f"Slot claim lost for {event_type} {event_id} on {day} {scheduled_time}")
        raise ConflictError("Time conflict: this slot was just booked by another request")


async def release(session: AsyncSession, event_type: str, event_id: UUID) -> None:
    """Frees the event's slots. Does not commit."""
    await session.execute(
        delete(CalendarSlot).where(
            CalendarSlot.event_type == event_type,
            CalendarSlot.event_id == event_id,
        )
    )
