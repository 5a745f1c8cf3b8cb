from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field

from core_portal.models.enums import UserRole


# ---------------------------------------------------------
# CREATE USER (super admin / admin creates staff)
# ---------------------------------------------------------
class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole
    admin_id: Optional[UUID] = None        # required for COUNSELOR / OPS
    company_name: Optional[str] = None     # ADMIN only


class UserStatusUpdate(BaseModel):
    is_active: bool


# ---------------------------------------------------------
# READ USER (response)
# ---------------------------------------------------------
class UserRead(BaseModel):
    id: UUID
    name: str
    email: str
    role: UserRole
    is_active: bool = True
    admin_id: Optional[UUID] = None
    company_name: Optional[str] = None
    enquiry_slug: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
