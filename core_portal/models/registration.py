from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional
import uuid

from core_portal.models.enums import RegistrationStatus


class StudentServiceRegistration(SQLModel, table=True):
    __tablename__ = "student_service_registrations"
    __table_args__ = (UniqueConstraint("student_id", "service_id", name="uq_student_service"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))

    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    )
    service_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("services.id"), nullable=False, index=True)
    )

    # Staff assignment. active_ops_id is whoever owns the case right now.
    primary_ops_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True)
    )
    secondary_ops_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True)
    )
    active_ops_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    )

    status: RegistrationStatus = Field(
        default=RegistrationStatus.REGISTERED,
        sa_column=Column(SAEnum(RegistrationStatus, name="registration_status"), nullable=False)
    )

    registered_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
