# core_portal/api/endpoints/enquiry.py

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.config import settings
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.rate_limiter import limiter
from core_portal.models.enums import ServiceType
from core_portal.schemas.lead import EnquiryCreate
from core_portal.services import lead_service

router = APIRouter(prefix="/api/enquiry", tags=["Public Enquiry"])


# -------------------------------------------------------------------
# ADMIN INFO FOR THE FORM HEADER
# -------------------------------------------------------------------
@router.get("/{slug}")
@limiter.limit(settings.ENQUIRY_RATE_LIMIT)
async def get_enquiry_form(
    request: Request,
    slug: str,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        admin = await lead_service.get_admin_by_slug(session, slug)
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "data": {
            "admin_name": admin.name,
            "company_name": admin.company_name,
            "service_types": [s.value for s in ServiceType],
        },
    }


# -------------------------------------------------------------------
# SUBMIT ENQUIRY
# -------------------------------------------------------------------
@router.post("/{slug}", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ENQUIRY_RATE_LIMIT)
async def submit_enquiry(
    request: Request,
    slug: str,
    payload: EnquiryCreate,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        admin = await lead_service.get_admin_by_slug(session, slug)
        lead = await lead_service.submit_enquiry(
            session,
            admin,
            name=payload.name,
            email=payload.email,
            mobile_number=payload.mobile_number,
            service_types=payload.service_types,
            city=payload.city,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Thank you! Our team will get in touch with you soon.",
        "data": {"id": lead.id},
    }
