from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field

from core_portal.models.enums import ConversionStatus, LeadStage, ServiceType


# ---------------------------------------------------------
# PUBLIC ENQUIRY FORM
# ---------------------------------------------------------
class EnquiryCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    mobile_number: str = Field(min_length=5)
    city: Optional[str] = None
    service_types: List[ServiceType] = Field(min_length=1)


class LeadRead(BaseModel):
    id: UUID
    name: str
    email: str
    mobile_number: str
    city: Optional[str] = None
    service_types: List[str] = []
    stage: LeadStage
    source: str
    admin_id: UUID
    assigned_counselor_id: Optional[UUID] = None
    conversion_request_id: Optional[UUID] = None
    conversion_status: Optional[ConversionStatus] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LeadStageUpdate(BaseModel):
    stage: LeadStage


class LeadAssign(BaseModel):
    counselor_id: Optional[UUID] = None   # None unassigns


# ---------------------------------------------------------
# CONVERSION
# ---------------------------------------------------------
class ConversionRequest(BaseModel):
    lead_id: UUID


class ConversionReject(BaseModel):
    reason: Optional[str] = None


class ConversionRead(BaseModel):
    id: UUID
    lead_id: UUID
    requested_by: UUID
    admin_id: UUID
    status: ConversionStatus
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_student_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
