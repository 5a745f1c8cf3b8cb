# core_portal/services/registration_service.py

from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from core_portal.core.policy import Action, authorize_registration
from core_portal.models.enums import RegistrationStatus, UserRole
from core_portal.models.registration import StudentServiceRegistration
from core_portal.models.service import Service
from core_portal.models.student import Student
from core_portal.models.user import User


# ============================================================================
# LOOKUPS
# ============================================================================
async def get_student_by_user(session: AsyncSession, user_id: UUID) -> Student | None:
    result = await session.execute(select(Student).where(Student.user_id == user_id))
    return result.scalar_one_or_none()


async def load_registration(
    session: AsyncSession,
    registration_id: UUID,
    user: User,
    action: Action = Action.READ,
) -> tuple[StudentServiceRegistration, Student]:
    """
    Fetches a registration and its student, then runs the access policy.
    Every registration-scoped endpoint goes through here.
    """
    registration = await session.get(StudentServiceRegistration, registration_id)
    if not registration:
        raise NotFoundError("Registration not found")

    student = await session.get(Student, registration.student_id)
    if not student:
        raise NotFoundError("Student not found for this registration")

    authorize_registration(user, registration, student, action)
    return registration, student


# ============================================================================
# REGISTER FOR A SERVICE
# ============================================================================
async def register_for_service(
    session: AsyncSession,
    student: Student,
    service_id: UUID,
) -> tuple[StudentServiceRegistration, Service]:
    service = await session.get(Service, service_id)
    if not service or not service.is_active:
        raise NotFoundError("Service not found")

    existing = await session.execute(
        select(StudentServiceRegistration).where(
            StudentServiceRegistration.student_id == student.id,
            StudentServiceRegistration.service_id == service_id,
        )
    )
    if existing.scalar_one_or_none():
        raise ConflictError("Already registered for this service")

    registration = StudentServiceRegistration(student_id=student.id, service_id=service_id)
    session.add(registration)

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Already registered for this service")

    await session.refresh(registration)
    logger.info(f"Student {student.email} registered for {service.name}")
    return registration, service


# ============================================================================
# LISTING (scoped by role)
# ============================================================================
async def list_registrations_for_user(
    session: AsyncSession,
    user: User,
    status: RegistrationStatus | None = None,
    service_id: UUID | None = None,
) -> list[dict]:
    query = (
        select(StudentServiceRegistration, Student, Service)
        .join(Student, Student.id == StudentServiceRegistration.student_id)
        .join(Service, Service.id == StudentServiceRegistration.service_id)
        .order_by(StudentServiceRegistration.registered_at.desc())
    )

    if user.role == UserRole.ADMIN:
        query = query.where(Student.admin_id == user.id)
    elif user.role == UserRole.OPS:
        query = query.where(StudentServiceRegistration.active_ops_id == user.id)
    elif user.role == UserRole.COUNSELOR:
        query = query.where(Student.counselor_id == user.id)
    elif user.role == UserRole.STUDENT:
        query = query.where(Student.user_id == user.id)

    if status:
        query = query.where(StudentServiceRegistration.status == status)
    if service_id:
        query = query.where(StudentServiceRegistration.service_id == service_id)

    result = await session.execute(query)
    return [
        {
            "registration": reg,
            "student": {"id": st.id, "name": st.name, "email": st.email, "mobile_number": st.mobile_number},
            "service": {"id": sv.id, "name": sv.name, "slug": sv.slug},
        }
        for reg, st, sv in result.all()
    ]


# ============================================================================
# OPS ASSIGNMENT
# ============================================================================
async def _require_ops(session: AsyncSession, user_id: UUID | None, label: str) -> None:
    if user_id is None:
        return
    user = await session.get(User, user_id)
    if not user or user.role != UserRole.OPS or not user.is_active:
        raise ValidationFailedError(f"{label} must be an active OPS user")


async def assign_ops(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    primary_ops_id: UUID | None,
    secondary_ops_id: UUID | None,
    active_ops_id: UUID | None,
) -> StudentServiceRegistration:
    """
    Sets the OPS team of a registration. The active OPS must be one of
    the primary/secondary pair and defaults to the primary.
    """
    if primary_ops_id and secondary_ops_id and primary_ops_id == secondary_ops_id:
        raise ValidationFailedError("Primary and secondary OPS must be different users")

    await _require_ops(session, primary_ops_id, "Primary OPS")
    await _require_ops(session, secondary_ops_id, "Secondary OPS")

    active = active_ops_id or primary_ops_id
    if active and active not in (primary_ops_id, secondary_ops_id):
        raise ValidationFailedError("Active OPS must be the primary or secondary OPS")

    registration.primary_ops_id = primary_ops_id
    registration.secondary_ops_id = secondary_ops_id
    registration.active_ops_id = active
    session.add(registration)
    await session.commit()
    await session.refresh(registration)

    logger.info(f"Registration {registration.id}: active OPS is now {active}")
    return registration


async def switch_active_ops(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    active_ops_id: UUID,
) -> StudentServiceRegistration:
    if active_ops_id not in (registration.primary_ops_id, registration.secondary_ops_id):
        raise ValidationFailedError("Active OPS must be the primary or secondary OPS")

    registration.active_ops_id = active_ops_id
    session.add(registration)
    await session.commit()
    await session.refresh(registration)
    return registration


# ============================================================================
# STATUS
# ============================================================================
_ALLOWED_TRANSITIONS = {
    RegistrationStatus.REGISTERED: {RegistrationStatus.IN_PROGRESS, RegistrationStatus.CANCELLED},
    RegistrationStatus.IN_PROGRESS: {RegistrationStatus.COMPLETED, RegistrationStatus.CANCELLED},
    RegistrationStatus.COMPLETED: set(),
    RegistrationStatus.CANCELLED: set(),
}


async def update_status(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    new_status: RegistrationStatus,
    notes: str | None = None,
) -> StudentServiceRegistration:
    if new_status == registration.status:
        return registration
    if new_status not in _ALLOWED_TRANSITIONS[registration.status]:
        raise ValidationFailedError(
            f"Cannot move registration from {registration.status.value} to {new_status.value}"
        )

    registration.status = new_status
    if new_status == RegistrationStatus.COMPLETED:
        registration.completed_at = datetime.utcnow()
    elif new_status == RegistrationStatus.CANCELLED:
        registration.cancelled_at = datetime.utcnow()
    if notes:
        registration.notes = notes

    session.add(registration)
    await session.commit()
    await session.refresh(registration)
    return registration
