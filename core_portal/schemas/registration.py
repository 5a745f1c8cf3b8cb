from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from core_portal.models.enums import RegistrationStatus


class ServiceRead(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    learn_more_url: Optional[str] = None
    order: int = 0

    class Config:
        from_attributes = True


class RegistrationRead(BaseModel):
    id: UUID
    student_id: UUID
    service_id: UUID
    primary_ops_id: Optional[UUID] = None
    secondary_ops_id: Optional[UUID] = None
    active_ops_id: Optional[UUID] = None
    status: RegistrationStatus
    registered_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class RegisterServiceRequest(BaseModel):
    service_id: UUID


# ---------------------------------------------------------
# OPS ASSIGNMENT (super admin)
# ---------------------------------------------------------
class AssignOpsRequest(BaseModel):
    primary_ops_id: Optional[UUID] = None
    secondary_ops_id: Optional[UUID] = None
    active_ops_id: Optional[UUID] = None


class SwitchActiveOpsRequest(BaseModel):
    active_ops_id: UUID


class RegistrationStatusUpdate(BaseModel):
    status: RegistrationStatus
    notes: Optional[str] = None
