# core_portal/services/ops_schedule_service.py

from datetime import date, datetime, timedelta
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import ALLOWED_MEETING_DURATIONS, DEFAULT_OPS_DURATION
from core_portal.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from core_portal.models.enums import OpsScheduleStatus
from core_portal.models.registration import StudentServiceRegistration
from core_portal.models.scheduling import OpsSchedule
from core_portal.models.service import Service
from core_portal.models.student import Student
from core_portal.models.user import User
from core_portal.services import availability_service
from core_portal.services.availability_service import OPS_SCHEDULE, to_minutes


# ============================================================================
# STUDENTS HANDLED BY THIS OPS
# ============================================================================
async def list_my_students(session: AsyncSession, ops: User) -> list[dict]:
    result = await session.execute(
        select(Student, StudentServiceRegistration, Service)
        .join(StudentServiceRegistration, StudentServiceRegistration.student_id == Student.id)
        .join(Service, Service.id == StudentServiceRegistration.service_id)
        .where(StudentServiceRegistration.active_ops_id == ops.id)
        .order_by(Student.name)
    )

    students: dict[UUID, dict] = {}
    for student, registration, service in result.all():
        entry = students.setdefault(student.id, {
            "id": student.id,
            "name": student.name,
            "email": student.email,
            "mobile_number": student.mobile_number,
            "registrations": [],
        })
        entry["registrations"].append({
            "registration_id": registration.id,
            "service_id": service.id,
            "service_name": service.name,
            "status": registration.status.value,
        })
    return list(students.values())


async def _ensure_student_assigned(session: AsyncSession, ops: User, student_id: UUID) -> None:
    result = await session.execute(
        select(StudentServiceRegistration.id).where(
            StudentServiceRegistration.student_id == student_id,
            StudentServiceRegistration.active_ops_id == ops.id,
        )
    )
    if result.first() is None:
        raise PermissionDeniedError("This student is not assigned to you")


async def _get_owned(session: AsyncSession, schedule_id: UUID, ops: User) -> OpsSchedule:
    schedule = await session.get(OpsSchedule, schedule_id)
    if not schedule:
        raise NotFoundError("Schedule not found")
    if schedule.ops_id != ops.id:
        raise PermissionDeniedError("You can only manage your own schedules")
    return schedule


# ============================================================================
# MISSED
# ============================================================================
def _is_past(schedule: OpsSchedule, now: datetime) -> bool:
    end_minutes = to_minutes(schedule.scheduled_time) + schedule.duration
    end = datetime.combine(schedule.scheduled_date, datetime.min.time()) + timedelta(minutes=end_minutes)
    return end < now


async def mark_missed(session: AsyncSession, ops_id: UUID, now: datetime | None = None) -> int:
    """Moves SCHEDULED entries whose end time has passed to MISSED and frees their slots."""
    now = now or datetime.now()
    result = await session.execute(
        select(OpsSchedule).where(
            OpsSchedule.ops_id == ops_id,
            OpsSchedule.status == OpsScheduleStatus.SCHEDULED,
            OpsSchedule.scheduled_date <= now.date(),
        )
    )
    missed = [s for s in result.scalars().all() if _is_past(s, now)]
    for schedule in missed:
        schedule.status = OpsScheduleStatus.MISSED
        schedule.updated_at = datetime.utcnow()
        await availability_service.release(session, OPS_SCHEDULE, schedule.id)
        session.add(schedule)

    if missed:
        await session.commit()
        logger.info(f"Marked {len(missed)} OPS schedule(s) as missed for {ops_id}")
    return len(missed)


# ============================================================================
# CRUD
# ============================================================================
async def create_schedule(
    session: AsyncSession,
    ops: User,
    scheduled_date: date,
    scheduled_time: str,
    description: str,
    student_id: UUID | None = None,
    duration: int | None = None,
) -> OpsSchedule:
    if not description or not description.strip():
        raise ValidationFailedError("Description is required")

    duration = duration or DEFAULT_OPS_DURATION
    availability_service.validate_slot(scheduled_time, duration, ALLOWED_MEETING_DURATIONS)

    if student_id:
        await _ensure_student_assigned(session, ops, student_id)

    schedule = OpsSchedule(
        ops_id=ops.id,
        student_id=student_id,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration=duration,
        description=description.strip(),
    )
    session.add(schedule)

    await availability_service.reserve(
        session, OPS_SCHEDULE, schedule.id, {ops.id: "You"},
        scheduled_date, scheduled_time, duration,
    )
    await session.commit()
    await session.refresh(schedule)
    return schedule


async def list_schedules(
    session: AsyncSession,
    ops: User,
    start_date: date | None = None,
    end_date: date | None = None,
    status: OpsScheduleStatus | None = None,
    student_id: UUID | None = None,
) -> list[OpsSchedule]:
    await mark_missed(session, ops.id)

    query = (
        select(OpsSchedule)
        .where(OpsSchedule.ops_id == ops.id)
        .order_by(OpsSchedule.scheduled_date, OpsSchedule.scheduled_time)
    )
    if start_date:
        query = query.where(OpsSchedule.scheduled_date >= start_date)
    if end_date:
        query = query.where(OpsSchedule.scheduled_date <= end_date)
    if status:
        query = query.where(OpsSchedule.status == status)
    if student_id:
        query = query.where(OpsSchedule.student_id == student_id)

    result = await session.execute(query)
    return list(result.scalars().all())


async def get_schedule(session: AsyncSession, schedule_id: UUID, ops: User) -> OpsSchedule:
    return await _get_owned(session, schedule_id, ops)


async def update_schedule(
    session: AsyncSession,
    schedule_id: UUID,
    ops: User,
    updates: dict,
) -> OpsSchedule:
    schedule = await _get_owned(session, schedule_id, ops)

    if "description" in updates and not (updates["description"] or "").strip():
        raise ValidationFailedError("Description cannot be empty")
    if updates.get("student_id"):
        await _ensure_student_assigned(session, ops, updates["student_id"])

    timing_changed = any(
        k in updates and updates[k] is not None and updates[k] != getattr(schedule, k)
        for k in ("scheduled_date", "scheduled_time", "duration")
    )
    new_status = updates.get("status")

    for key in ("scheduled_date", "scheduled_time", "duration", "description", "student_id"):
        if key in updates and (updates[key] is not None or key == "student_id"):
            setattr(schedule, key, updates[key])

    if new_status and new_status != schedule.status:
        schedule.status = new_status
        schedule.completed_at = datetime.utcnow() if new_status == OpsScheduleStatus.COMPLETED else None

    schedule.updated_at = datetime.utcnow()
    session.add(schedule)

    await availability_service.release(session, OPS_SCHEDULE, schedule.id)
    if schedule.status in (OpsScheduleStatus.SCHEDULED, OpsScheduleStatus.COMPLETED):
        if timing_changed:
            availability_service.validate_slot(schedule.scheduled_time, schedule.duration, ALLOWED_MEETING_DURATIONS)
        await availability_service.reserve(
            session, OPS_SCHEDULE, schedule.id, {ops.id: "You"},
            schedule.scheduled_date, schedule.scheduled_time, schedule.duration,
        )

    await session.commit()
    await session.refresh(schedule)
    return schedule


async def delete_schedule(session: AsyncSession, schedule_id: UUID, ops: User) -> None:
    schedule = await _get_owned(session, schedule_id, ops)
    await availability_service.release(session, OPS_SCHEDULE, schedule.id)
    await session.delete(schedule)
    await session.commit()


# ============================================================================
# SUMMARY
# ============================================================================
async def get_summary(session: AsyncSession, ops: User) -> dict:
    await mark_missed(session, ops.id)
    today = date.today()
    tomorrow = today + timedelta(days=1)

    async def _for(day: date) -> list[OpsSchedule]:
        res = await session.execute(
            select(OpsSchedule)
            .where(OpsSchedule.ops_id == ops.id, OpsSchedule.scheduled_date == day)
            .order_by(OpsSchedule.scheduled_time)
        )
        return list(res.scalars().all())

    missed_res = await session.execute(
        select(OpsSchedule)
        .where(OpsSchedule.ops_id == ops.id, OpsSchedule.status == OpsScheduleStatus.MISSED)
        .order_by(OpsSchedule.scheduled_date.desc(), OpsSchedule.scheduled_time.desc())
    )

    counts_res = await session.execute(
        select(OpsSchedule.status, func.count())
        .where(OpsSchedule.ops_id == ops.id)
        .group_by(OpsSchedule.status)
    )
    counts = {status.value: 0 for status in OpsScheduleStatus}
    for status, total in counts_res.all():
        counts[status.value] = total

    return {
        "today": await _for(today),
        "tomorrow": await _for(tomorrow),
        "missed": list(missed_res.scalars().all()),
        "counts": counts,
    }
