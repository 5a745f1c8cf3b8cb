# core_portal/services/conversion_service.py

import secrets
from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import DEFAULT_REJECTION_REASON
from core_portal.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from core_portal.models.enums import ConversionStatus, FollowUpStatus, LeadStage, UserRole
from core_portal.models.lead import Lead, LeadStudentConversion
from core_portal.models.scheduling import FollowUp
from core_portal.models.student import Student
from core_portal.models.user import User
from core_portal.services.student_service import create_student_account


# ============================================================================
# REQUEST (counselor)
# ============================================================================
async def request_conversion(session: AsyncSession, lead_id: UUID, counselor: User) -> LeadStudentConversion:
    lead = await session.get(Lead, lead_id)
    if not lead:
        raise NotFoundError("Lead not found")
    if lead.assigned_counselor_id != counselor.id:
        raise PermissionDeniedError("This lead is not assigned to you")
    if lead.stage == LeadStage.CONVERTED:
        raise ValidationFailedError("Lead is already converted")
    if lead.conversion_status == ConversionStatus.PENDING:
        raise ValidationFailedError("A conversion request is already pending for this lead")

    conversion = LeadStudentConversion(
        lead_id=lead.id,
        requested_by=counselor.id,
        admin_id=lead.admin_id,
    )
    session.add(conversion)

    lead.conversion_request_id = conversion.id
    lead.conversion_status = ConversionStatus.PENDING
    lead.updated_at = datetime.utcnow()
    session.add(lead)

    await session.commit()
    await session.refresh(conversion)

    logger.info(f"Conversion requested for lead {lead.id} by {counselor.email}")
    return conversion


# ============================================================================
# LISTING
# ============================================================================
async def list_conversions(
    session: AsyncSession,
    user: User,
    status: ConversionStatus | None = None,
) -> list[dict]:
    query = (
        select(LeadStudentConversion, Lead)
        .join(Lead, Lead.id == LeadStudentConversion.lead_id)
        .order_by(LeadStudentConversion.created_at.desc())
    )
    if user.role == UserRole.ADMIN:
        query = query.where(LeadStudentConversion.admin_id == user.id)
    elif user.role == UserRole.COUNSELOR:
        query = query.where(LeadStudentConversion.requested_by == user.id)
    elif user.role != UserRole.SUPER_ADMIN:
        raise PermissionDeniedError("You do not have access to conversions")
    if status:
        query = query.where(LeadStudentConversion.status == status)

    result = await session.execute(query)
    return [{"conversion": conversion, "lead": lead} for conversion, lead in result.all()]


async def _get_pending_for_admin(
    session: AsyncSession, conversion_id: UUID, admin: User
) -> tuple[LeadStudentConversion, Lead]:
    conversion = await session.get(LeadStudentConversion, conversion_id)
    if not conversion:
        raise NotFoundError("Conversion request not found")
    if admin.role != UserRole.SUPER_ADMIN and conversion.admin_id != admin.id:
        raise PermissionDeniedError("You do not have access to this conversion request")
    if conversion.status != ConversionStatus.PENDING:
        raise ValidationFailedError(f"Conversion request is already {conversion.status.value}")

    lead = await session.get(Lead, conversion.lead_id)
    if not lead:
        raise NotFoundError("Lead not found")
    return conversion, lead


# ============================================================================
# APPROVE (admin)
# ============================================================================
async def approve_conversion(session: AsyncSession, conversion_id: UUID, admin: User) -> dict:
    """
    Creates the student account for the lead and closes the request.

    Returns what the caller needs to queue the welcome email to the
    student and the notification to the super admin.
    """
    conversion, lead = await _get_pending_for_admin(session, conversion_id, admin)

    existing = await session.execute(select(Student.id).where(Student.email == lead.email.lower()))
    if existing.first() is not None:
        raise ValidationFailedError("A student with this email already exists")

    temporary_password = secrets.token_urlsafe(9)
    now = datetime.utcnow()

    student = await create_student_account(
        session,
        name=lead.name,
        email=lead.email,
        password=temporary_password,
        mobile_number=lead.mobile_number,
        admin_id=lead.admin_id,
        counselor_id=lead.assigned_counselor_id,
        converted_from_lead_id=lead.id,
        commit=False,
    )
    student.conversion_date = now
    session.add(student)

    conversion.status = ConversionStatus.APPROVED
    conversion.approved_by = admin.id
    conversion.approved_at = now
    conversion.created_student_id = student.id
    session.add(conversion)

    lead.stage = LeadStage.CONVERTED
    lead.conversion_status = ConversionStatus.APPROVED
    lead.updated_at = now
    session.add(lead)

    latest = await session.execute(
        select(FollowUp)
        .where(FollowUp.lead_id == lead.id, FollowUp.status == FollowUpStatus.SCHEDULED)
        .order_by(FollowUp.scheduled_date.desc(), FollowUp.scheduled_time.desc())
    )
    follow_up = latest.scalars().first()
    if follow_up:
        follow_up.status = FollowUpStatus.CONVERTED_TO_STUDENT
        follow_up.stage_changed_to = LeadStage.CONVERTED
        follow_up.completed_at = now
        follow_up.updated_at = now
        session.add(follow_up)

    await session.commit()
    await session.refresh(student)

    counselor = await session.get(User, lead.assigned_counselor_id) if lead.assigned_counselor_id else None
    super_admin = (await session.execute(
        select(User).where(User.role == UserRole.SUPER_ADMIN).order_by(User.created_at)
    )).scalars().first()

    logger.success(f"Lead {lead.id} converted to student {student.id}")
    return {
        "student": student,
        "lead": lead,
        "conversion": conversion,
        "temporary_password": temporary_password,
        "counselor": counselor,
        "super_admin": super_admin,
    }


# ============================================================================
# REJECT (admin)
# ============================================================================
async def reject_conversion(
    session: AsyncSession,
    conversion_id: UUID,
    admin: User,
    reason: str | None = None,
) -> LeadStudentConversion:
    conversion, lead = await _get_pending_for_admin(session, conversion_id, admin)
    now = datetime.utcnow()

    conversion.status = ConversionStatus.REJECTED
    conversion.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    conversion.rejected_by = admin.id
    conversion.rejected_at = now
    session.add(conversion)

    lead.conversion_status = ConversionStatus.REJECTED
    lead.conversion_request_id = None
    lead.updated_at = now
    session.add(lead)

    await session.commit()
    await session.refresh(conversion)
    return conversion
