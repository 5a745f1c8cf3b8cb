from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel


class StudentRead(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    email: str
    mobile_number: Optional[str] = None
    admin_id: Optional[UUID] = None
    counselor_id: Optional[UUID] = None
    converted_from_lead_id: Optional[UUID] = None
    conversion_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StudentCounselorAssign(BaseModel):
    counselor_id: Optional[UUID] = None
