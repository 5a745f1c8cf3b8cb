from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Any, Dict
import uuid

from core_portal.models.enums import FormPartKey
from core_portal.models.form import JSONType


class StudentFormAnswer(SQLModel, table=True):
    """
    One row per (registration, part). `answers` is
    section_id -> sub_section_id -> [instance, ...], each instance a flat
    field_key -> value mapping. Saves replace the whole mapping.
    """
    __tablename__ = "student_form_answers"
    __table_args__ = (UniqueConstraint("registration_id", "part_key", name="uq_registration_part"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))

    registration_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("student_service_registrations.id"), nullable=False, index=True)
    )
    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    )
    part_key: FormPartKey = Field(
        sa_column=Column(SAEnum(FormPartKey, name="form_part_key"), nullable=False)
    )

    answers: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))
    completed: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))

    last_saved_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )
