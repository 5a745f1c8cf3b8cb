from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import List, Optional
import uuid

from core_portal.models.enums import ConversionStatus, LeadStage
from core_portal.models.form import JSONType


class Lead(SQLModel, table=True):
    __tablename__ = "leads"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    name: str = Field(sa_column=Column(String, nullable=False))
    email: str = Field(sa_column=Column(String, nullable=False, index=True))
    mobile_number: str = Field(sa_column=Column(String, nullable=False))
    city: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    # list of ServiceType values
    service_types: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))

    admin_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    )
    assigned_counselor_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    )

    stage: LeadStage = Field(
        default=LeadStage.NEW,
        sa_column=Column(SAEnum(LeadStage, name="lead_stage"), nullable=False)
    )
    source: str = Field(default="Enquiry Form", sa_column=Column(String, nullable=False))

    conversion_request_id: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    conversion_status: Optional[ConversionStatus] = Field(
        default=None,
        sa_column=Column(SAEnum(ConversionStatus, name="conversion_status"), nullable=True)
    )

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))


class LeadStudentConversion(SQLModel, table=True):
    __tablename__ = "lead_student_conversions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    lead_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("leads.id"), nullable=False, index=True)
    )
    requested_by: uuid.UUID = Field(sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False))
    admin_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    )

    status: ConversionStatus = Field(
        default=ConversionStatus.PENDING,
        sa_column=Column(SAEnum(ConversionStatus, name="conversion_status"), nullable=False)
    )
    rejection_reason: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    approved_by: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    rejected_by: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    rejected_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    created_student_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("students.id"), nullable=True)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
