# core_portal/models/form.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from typing import Any, Dict, List, Optional
import uuid

from core_portal.models.enums import FieldType, FormPartKey

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class FormPart(SQLModel, table=True):
    __tablename__ = "form_parts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    key: FormPartKey = Field(
        sa_column=Column(SAEnum(FormPartKey, name="form_part_key"), nullable=False, unique=True)
    )
    title: str = Field(sa_column=Column(String, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class FormSection(SQLModel, table=True):
    __tablename__ = "form_sections"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    part_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("form_parts.id"), nullable=False, index=True)
    )
    # NULL = shared by every service using the part
    service_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("services.id"), nullable=True, index=True)
    )
    title: str = Field(sa_column=Column(String, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class FormSubSection(SQLModel, table=True):
    __tablename__ = "form_sub_sections"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    section_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("form_sections.id"), nullable=False, index=True)
    )
    title: str = Field(sa_column=Column(String, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_repeatable: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    max_repeat: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class FormField(SQLModel, table=True):
    __tablename__ = "form_fields"
    # The key is the answer dictionary key, so it must not collide inside a sub-section
    __table_args__ = (UniqueConstraint("sub_section_id", "key", name="uq_field_key_per_subsection"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    sub_section_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("form_sub_sections.id"), nullable=False, index=True)
    )
    label: str = Field(sa_column=Column(String, nullable=False))
    key: str = Field(sa_column=Column(String, nullable=False))
    type: FieldType = Field(sa_column=Column(SAEnum(FieldType, name="field_type"), nullable=False))
    placeholder: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    help_text: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    required: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))

    # {"min": .., "max": .., "pattern": .., "message": ..}
    validation: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    # [{"label": .., "value": ..}]
    options: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    default_value: Optional[Any] = Field(default=None, sa_column=Column(JSONType, nullable=True))

    # Sibling key in the same instance; a change there resets this field
    depends_on: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    # {"trigger": "<checkbox key>", "field": "<source key in the same section>"}
    copy_from: Optional[Dict[str, str]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
