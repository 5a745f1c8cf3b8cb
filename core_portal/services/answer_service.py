# core_portal/services/answer_service.py

from datetime import datetime

from loguru import logger
from sqlmodel import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.exceptions import ConflictError
from core_portal.models.answer import StudentFormAnswer
from core_portal.models.enums import FormPartKey, RegistrationStatus
from core_portal.models.registration import StudentServiceRegistration
from core_portal.models.student import Student
from core_portal.services import form_aggregator
from core_portal.services.form_service import get_form_structure


async def get_answers(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    part_key: FormPartKey | None = None,
) -> list[StudentFormAnswer]:
    query = select(StudentFormAnswer).where(StudentFormAnswer.registration_id == registration.id)
    if part_key:
        query = query.where(StudentFormAnswer.part_key == part_key)
    result = await session.execute(query)
    return list(result.scalars().all())


async def _get_part_row(session: AsyncSession, registration_id, part_key) -> StudentFormAnswer | None:
    result = await session.execute(
        select(StudentFormAnswer).where(
            StudentFormAnswer.registration_id == registration_id,
            StudentFormAnswer.part_key == part_key,
        )
    )
    return result.scalar_one_or_none()


# ============================================================================
# SAVE ONE PART (full replace)
# ============================================================================
async def save_part_answers(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    student: Student,
    part_key: FormPartKey,
    answers: dict,
    completed: bool = False,
) -> StudentFormAnswer:
    """
    Replaces the stored answers of exactly one part. Rows for other parts
    are never read or written here.
    """
    structure = await get_form_structure(session, registration.service_id)
    part = form_aggregator.find_part(structure, part_key)
    form_aggregator.validate_part_answers(part, answers, require_complete=completed)

    now = datetime.utcnow()
    row = await _get_part_row(session, registration.id, part_key)

    if row is None:
        row = StudentFormAnswer(
            registration_id=registration.id,
            student_id=student.id,
            part_key=part_key,
            answers=answers,
            completed=completed,
            last_saved_at=now,
        )
        session.add(row)
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            raise ConflictError("This part was saved by another request. Reload and try again.")

    row.answers = answers
    row.completed = completed
    row.last_saved_at = now
    session.add(row)

    if registration.status == RegistrationStatus.REGISTERED:
        registration.status = RegistrationStatus.IN_PROGRESS
        session.add(registration)

    if part_key == FormPartKey.PROFILE:
        phone = form_aggregator.extract_phone(answers)
        if phone and phone != student.mobile_number:
            student.mobile_number = phone
            session.add(student)

    await session.commit()
    await session.refresh(row)

    logger.info(f"Saved {part_key.value} answers for registration {registration.id}")
    return row


# ============================================================================
# PREFILLED VIEW
# ============================================================================
async def get_prefilled_form(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    student: Student,
) -> dict:
    structure = await get_form_structure(session, registration.service_id)
    rows = await get_answers(session, registration)
    saved = {row.part_key: row.answers for row in rows}

    return {
        "structure": structure,
        "answers": form_aggregator.build_prefilled_answers(structure, saved, student.mobile_number),
        "completed": {row.part_key.value: row.completed for row in rows},
    }


# ============================================================================
# PROGRESS
# ============================================================================
async def get_progress(session: AsyncSession, registration: StudentServiceRegistration) -> dict:
    structure = await get_form_structure(session, registration.service_id)
    rows = {row.part_key: row for row in await get_answers(session, registration)}

    parts = []
    for part in structure:
        row = rows.get(part.key)
        parts.append({
            "part_key": part.key.value,
            "title": part.title,
            "is_required": part.is_required,
            "has_data": bool(row and row.answers),
            "completed": bool(row and row.completed),
            "last_saved_at": row.last_saved_at if row else None,
        })

    required = [p for p in parts if p["is_required"]] or parts
    done = sum(1 for p in required if p["completed"])
    return {
        "registration_id": registration.id,
        "status": registration.status.value,
        "parts": parts,
        "percent_complete": round(done * 100 / len(required)) if required else 0,
    }
