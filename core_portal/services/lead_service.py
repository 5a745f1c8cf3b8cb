# core_portal/services/lead_service.py

import re
from datetime import datetime, timedelta
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, or_, true
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import DUPLICATE_LEAD_WINDOW_HOURS
from core_portal.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from core_portal.core.policy import Action, authorize_lead
from core_portal.models.enums import LeadStage, ServiceType, UserRole
from core_portal.models.lead import Lead
from core_portal.models.user import User

SLUG_MAX_LENGTH = 50


# ============================================================================
# ENQUIRY SLUG
# ============================================================================
def slugify(text: str) -> str:
    """'Acme Study Abroad!' -> 'acme-study-abroad'"""
    slug = re.sub(r"[^a-z0-9 -]", "", (text or "").lower()).strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-{2,}", "-", slug).strip("-")
    return slug[:SLUG_MAX_LENGTH].strip("-") or "enquiry"


async def generate_enquiry_slug(session: AsyncSession, text: str) -> str:
    base = slugify(text)
    candidate = base
    counter = 1
    while True:
        result = await session.execute(select(User.id).where(User.enquiry_slug == candidate))
        if result.first() is None:
            return candidate
        candidate = f"{base}-{counter}"
        counter += 1


async def get_admin_by_slug(session: AsyncSession, slug: str) -> User:
    result = await session.execute(
        select(User).where(
            User.enquiry_slug == slug,
            User.role == UserRole.ADMIN,
            User.is_active == True,  # noqa: E712
        )
    )
    admin = result.scalar_one_or_none()
    if not admin:
        raise NotFoundError("Invalid enquiry link")
    return admin


# ============================================================================
# PUBLIC ENQUIRY
# ============================================================================
async def submit_enquiry(
    session: AsyncSession,
    admin: User,
    name: str,
    email: str,
    mobile_number: str,
    service_types: list[ServiceType],
    city: str | None = None,
) -> Lead:
    if not service_types:
        raise ValidationFailedError("Select at least one service")
    email = email.strip().lower()

    window_start = datetime.utcnow() - timedelta(hours=DUPLICATE_LEAD_WINDOW_HOURS)
    duplicate = await session.execute(
        select(Lead.id).where(
            Lead.email == email,
            Lead.admin_id == admin.id,
            Lead.created_at >= window_start,
        )
    )
    if duplicate.first() is not None:
        raise ValidationFailedError("An enquiry with this email was already submitted recently")

    lead = Lead(
        name=name.strip(),
        email=email,
        mobile_number=mobile_number.strip(),
        city=(city or "").strip() or None,
        service_types=list(dict.fromkeys(ServiceType(s).value for s in service_types)),
        admin_id=admin.id,
    )
    session.add(lead)
    await session.commit()
    await session.refresh(lead)

    logger.info(f"New lead {lead.id} for admin {admin.id} via enquiry form")
    return lead


# ============================================================================
# LISTING
# ============================================================================
async def list_leads(
    session: AsyncSession,
    user: User,
    stage: LeadStage | None = None,
    service_type: ServiceType | None = None,
    assigned: bool | None = None,
    search: str | None = None,
) -> dict:
    """Admins see their tenant's leads, counselors only those assigned to them."""
    if user.role == UserRole.ADMIN:
        scope = Lead.admin_id == user.id
    elif user.role == UserRole.COUNSELOR:
        scope = Lead.assigned_counselor_id == user.id
    elif user.role == UserRole.SUPER_ADMIN:
        scope = true()
    else:
        raise PermissionDeniedError("You do not have access to leads")

    query = select(Lead).where(scope).order_by(Lead.created_at.desc())
    if stage:
        query = query.where(Lead.stage == stage)
    if assigned is True:
        query = query.where(Lead.assigned_counselor_id.is_not(None))
    elif assigned is False:
        query = query.where(Lead.assigned_counselor_id.is_(None))
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(or_(
            func.lower(Lead.name).like(pattern),
            func.lower(Lead.email).like(pattern),
            Lead.mobile_number.like(pattern),
        ))

    result = await session.execute(query)
    leads = list(result.scalars().all())
    # service_types is a JSON list, so filter it here rather than in SQL
    if service_type:
        leads = [lead for lead in leads if ServiceType(service_type).value in (lead.service_types or [])]

    stats_result = await session.execute(
        select(Lead.stage, func.count()).where(scope).group_by(Lead.stage)
    )
    stats = {s.value: 0 for s in LeadStage}
    for lead_stage, total in stats_result.all():
        stats[lead_stage.value] = total
    stats["total"] = sum(stats.values())

    return {"leads": leads, "stats": stats}


async def get_lead(session: AsyncSession, lead_id: UUID, user: User, action: Action = Action.READ) -> Lead:
    lead = await session.get(Lead, lead_id)
    if not lead:
        raise NotFoundError("Lead not found")
    authorize_lead(user, lead, action)
    return lead


# ============================================================================
# ASSIGNMENT / STAGE
# ============================================================================
async def assign_counselor(
    session: AsyncSession,
    lead_id: UUID,
    admin: User,
    counselor_id: UUID | None,
) -> Lead:
    lead = await get_lead(session, lead_id, admin, Action.ASSIGN)
    if lead.stage == LeadStage.CONVERTED:
        raise ValidationFailedError("Cannot reassign a converted lead")

    if counselor_id is not None:
        counselor = await session.get(User, counselor_id)
        if (
            not counselor
            or counselor.role != UserRole.COUNSELOR
            or counselor.admin_id != lead.admin_id
        ):
            raise NotFoundError("Counselor not found")
        if not counselor.is_active:
            raise ValidationFailedError("Counselor account is deactivated")

    lead.assigned_counselor_id = counselor_id
    lead.updated_at = datetime.utcnow()
    session.add(lead)
    await session.commit()
    await session.refresh(lead)
    return lead


async def update_stage(session: AsyncSession, lead_id: UUID, user: User, stage: LeadStage) -> Lead:
    lead = await get_lead(session, lead_id, user, Action.WRITE)
    if lead.stage == LeadStage.CONVERTED:
        raise ValidationFailedError("Cannot change stage of a converted lead")
    if stage == LeadStage.CONVERTED:
        raise ValidationFailedError("Leads become CONVERTED only through an approved conversion")

    lead.stage = stage
    lead.updated_at = datetime.utcnow()
    session.add(lead)
    await session.commit()
    await session.refresh(lead)
    return lead
