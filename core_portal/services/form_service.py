# core_portal/services/form_service.py

from collections import defaultdict
from uuid import UUID

from sqlmodel import select
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.exceptions import NotFoundError
from core_portal.models.form import FormField, FormPart, FormSection, FormSubSection
from core_portal.models.service import Service, ServiceFormPart
from core_portal.schemas.form import (
    FormFieldRead,
    FormPartRead,
    FormSectionRead,
    FormSubSectionRead,
)


# ============================================================================
# SERVICES
# ============================================================================
async def list_services(session: AsyncSession, include_inactive: bool = False) -> list[Service]:
    query = select(Service).order_by(Service.order, Service.name)
    if not include_inactive:
        query = query.where(Service.is_active == True)  # noqa: E712
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_service(session: AsyncSession, service_id: UUID) -> Service:
    service = await session.get(Service, service_id)
    if not service or not service.is_active:
        raise NotFoundError("Service not found")
    return service


# ============================================================================
# FORM STRUCTURE
# ============================================================================
async def get_form_structure(session: AsyncSession, service_id: UUID) -> list[FormPartRead]:
    """
    Loads the ordered Part -> Section -> SubSection -> Field tree for a
    service. Sections without a service_id are shared by every service
    using the part. Inactive nodes are skipped.
    """
    await get_service(session, service_id)

    part_rows = await session.execute(
        select(FormPart, ServiceFormPart)
        .join(ServiceFormPart, ServiceFormPart.part_id == FormPart.id)
        .where(
            ServiceFormPart.service_id == service_id,
            ServiceFormPart.is_active == True,  # noqa: E712
            FormPart.is_active == True,  # noqa: E712
        )
        .order_by(ServiceFormPart.order, FormPart.order)
    )
    parts = part_rows.all()
    if not parts:
        return []

    part_ids = [p.id for p, _ in parts]

    section_rows = await session.execute(
        select(FormSection)
        .where(
            FormSection.part_id.in_(part_ids),
            FormSection.is_active == True,  # noqa: E712
            or_(FormSection.service_id == None, FormSection.service_id == service_id),  # noqa: E711
        )
        .order_by(FormSection.order)
    )
    sections = list(section_rows.scalars().all())
    section_ids = [s.id for s in sections]

    sub_sections = []
    if section_ids:
        sub_rows = await session.execute(
            select(FormSubSection)
            .where(
                FormSubSection.section_id.in_(section_ids),
                FormSubSection.is_active == True,  # noqa: E712
            )
            .order_by(FormSubSection.order)
        )
        sub_sections = list(sub_rows.scalars().all())

    fields = []
    if sub_sections:
        field_rows = await session.execute(
            select(FormField)
            .where(
                FormField.sub_section_id.in_([s.id for s in sub_sections]),
                FormField.is_active == True,  # noqa: E712
            )
            .order_by(FormField.order)
        )
        fields = list(field_rows.scalars().all())

    # --- assemble bottom-up ---
    fields_by_sub = defaultdict(list)
    for f in fields:
        fields_by_sub[f.sub_section_id].append(FormFieldRead.model_validate(f))

    subs_by_section = defaultdict(list)
    for sub in sub_sections:
        sub_read = FormSubSectionRead.model_validate(sub)
        sub_read.fields = fields_by_sub[sub.id]
        subs_by_section[sub.section_id].append(sub_read)

    sections_by_part = defaultdict(list)
    for section in sections:
        section_read = FormSectionRead.model_validate(section)
        section_read.sub_sections = subs_by_section[section.id]
        sections_by_part[section.part_id].append(section_read)

    structure = []
    for part, link in parts:
        part_read = FormPartRead.model_validate(part)
        part_read.is_required = link.is_required
        part_read.sections = sections_by_part[part.id]
        structure.append(part_read)

    return structure
