# core_portal/services/student_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from sqlalchemy.exc import IntegrityError
import uuid

from core_portal.models.student import Student
from core_portal.models.registration import StudentServiceRegistration
from core_portal.models.user import User
from core_portal.models.enums import UserRole
from core_portal.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from core_portal.core.policy import can_access_student
from core_portal.services.auth_service import create_user, get_user_by_email


# ------------------------------------------------------------
# SIGN UP STUDENT + LINKED USER ACCOUNT
# ------------------------------------------------------------
async def create_student_account(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    mobile_number: str | None = None,
    admin_id: uuid.UUID | None = None,
    counselor_id: uuid.UUID | None = None,
    converted_from_lead_id: uuid.UUID | None = None,
    commit: bool = True,
) -> Student:
    """
    Creates the STUDENT user and its Student profile in one transaction.
    With commit=False the caller owns the transaction (lead conversion).
    """
    email = email.strip().lower()
    if await get_user_by_email(session, email):
        raise ValidationFailedError("User with this email already exists")

    user = await create_user(
        session,
        name=name,
        email=email,
        password=password,
        role=UserRole.STUDENT,
        commit=False,
    )

    student = Student(
        user_id=user.id,
        name=user.name,
        email=email,
        mobile_number=mobile_number,
        admin_id=admin_id,
        counselor_id=counselor_id,
        converted_from_lead_id=converted_from_lead_id,
    )
    session.add(student)

    if not commit:
        await session.flush()
        return student

    try:
        await session.commit()
        await session.refresh(student)
        return student

    except IntegrityError:
        await session.rollback()
        raise ValidationFailedError("Student with this email already exists")


# ------------------------------------------------------------
# LIST STUDENTS VISIBLE TO STAFF
# ------------------------------------------------------------
async def list_students(session: AsyncSession, user: User, search: str | None = None) -> list[Student]:
    query = select(Student).order_by(Student.created_at.desc())

    if user.role == UserRole.ADMIN:
        query = query.where(Student.admin_id == user.id)
    elif user.role == UserRole.COUNSELOR:
        query = query.where(Student.counselor_id == user.id)
    elif user.role == UserRole.OPS:
        query = query.where(
            Student.id.in_(
                select(StudentServiceRegistration.student_id).where(
                    StudentServiceRegistration.active_ops_id == user.id
                )
            )
        )
    elif user.role != UserRole.SUPER_ADMIN:
        raise PermissionDeniedError("You do not have access to students")

    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(Student.name.ilike(pattern) | Student.email.ilike(pattern))

    result = await session.execute(query)
    return list(result.scalars().all())


# ------------------------------------------------------------
# GET STUDENT
# ------------------------------------------------------------
async def get_student(session: AsyncSession, student_id: uuid.UUID, user: User) -> Student:
    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    if not can_access_student(user, student):
        raise PermissionDeniedError("You do not have access to this student")
    return student


# ------------------------------------------------------------
# ASSIGN COUNSELOR
# ------------------------------------------------------------
async def assign_counselor(
    session: AsyncSession,
    student_id: uuid.UUID,
    admin: User,
    counselor_id: uuid.UUID | None,
) -> Student:
    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    if admin.role == UserRole.ADMIN and student.admin_id != admin.id:
        raise PermissionDeniedError("You do not have access to this student")

    if counselor_id is not None:
        counselor = await session.get(User, counselor_id)
        if not counselor or counselor.role != UserRole.COUNSELOR:
            raise NotFoundError("Counselor not found")
        if student.admin_id and counselor.admin_id != student.admin_id:
            raise ValidationFailedError("Counselor belongs to a different admin")

    student.counselor_id = counselor_id
    session.add(student)
    await session.commit()
    await session.refresh(student)
    return student
