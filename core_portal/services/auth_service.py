# core_portal/services/auth_service.py

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import uuid

from core_portal.models.user import User
from core_portal.models.enums import UserRole
from core_portal.core.exceptions import NotFoundError, ValidationFailedError
from core_portal.core.security import (
    hash_password,
    verify_password,
    create_access_token,
)
from core_portal.core.config import settings
from core_portal.schemas.auth import TokenWithUser
from core_portal.schemas.user import UserRead


def _as_uuid(value) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


# ============================================================================
# FETCH USER BY EMAIL
# ============================================================================
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


# ============================================================================
# FETCH USER BY ID
# ============================================================================
async def get_user_by_id(session: AsyncSession, user_id) -> User | None:
    try:
        user_uuid = _as_uuid(user_id)
    except ValueError:
        return None
    return await session.get(User, user_uuid)


# ============================================================================
# CREATE USER
# ============================================================================
async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    admin_id: uuid.UUID | None = None,
    company_name: str | None = None,
    commit: bool = True,
) -> User:
    """
    Creates any user account. Counselors and OPS must belong to an admin
    tenant; admins get an enquiry slug generated from their company name.
    """
    if role in (UserRole.COUNSELOR, UserRole.OPS) and admin_id is None:
        raise ValidationFailedError(f"{role.value} must belong to an admin")

    if role in (UserRole.SUPER_ADMIN, UserRole.ADMIN) and admin_id is not None:
        raise ValidationFailedError(f"{role.value} cannot belong to another admin")

    if admin_id is not None:
        admin = await session.get(User, admin_id)
        if not admin or admin.role != UserRole.ADMIN:
            raise NotFoundError("Admin not found")

    user = User(
        id=uuid.uuid4(),
        name=name.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
        admin_id=admin_id,
        company_name=company_name,
    )

    if role == UserRole.ADMIN:
        # imported here to keep lead_service free to import this module
        from core_portal.services.lead_service import generate_enquiry_slug
        user.enquiry_slug = await generate_enquiry_slug(session, company_name or name)

    session.add(user)

    if not commit:
        await session.flush()
        return user

    try:
        await session.commit()
        await session.refresh(user)
        return user

    except IntegrityError:
        await session.rollback()
        raise ValidationFailedError("User with this email already exists")


# ============================================================================
# AUTHENTICATE
# ============================================================================
async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(session, email)
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


# ============================================================================
# LIST / TOGGLE
# ============================================================================
async def list_users(
    session: AsyncSession,
    role: UserRole | None = None,
    admin_id: uuid.UUID | None = None,
) -> list[User]:
    query = select(User).order_by(User.created_at.desc())
    if role:
        query = query.where(User.role == role)
    if admin_id:
        query = query.where(User.admin_id == admin_id)
    result = await session.execute(query)
    return list(result.scalars().all())


async def set_user_active(session: AsyncSession, user_id: uuid.UUID, is_active: bool) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.role == UserRole.SUPER_ADMIN:
        raise ValidationFailedError("Super admin accounts cannot be deactivated")

    user.is_active = is_active
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


# ============================================================================
# CREATE LOGIN RESPONSE
# ============================================================================
def create_login_response(user: User) -> TokenWithUser:
    token = create_access_token(
        subject=str(user.id),
        data={"role": user.role.value},
    )
    return TokenWithUser(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserRead.model_validate(user),
    )
