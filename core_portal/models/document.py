# core_portal/models/document.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional
import uuid

from core_portal.models.enums import CoreDocumentType, DocumentCategory, DocumentStatus, UserRole


class CoreDocumentField(SQLModel, table=True):
    """A document slot requested from a student on one registration."""
    __tablename__ = "core_document_fields"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    )
    registration_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("student_service_registrations.id"), nullable=False, index=True)
    )

    document_name: str = Field(sa_column=Column(String, nullable=False))
    document_key: str = Field(sa_column=Column(String, nullable=False, index=True))
    document_type: CoreDocumentType = Field(
        default=CoreDocumentType.CORE,
        sa_column=Column(SAEnum(CoreDocumentType, name="core_document_type"), nullable=False)
    )
    category: DocumentCategory = Field(
        default=DocumentCategory.SECONDARY,
        sa_column=Column(SAEnum(DocumentCategory, name="document_category"), nullable=False)
    )
    required: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    help_text: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    allow_multiple: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    order: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))

    created_by: uuid.UUID = Field(sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False))
    created_by_role: UserRole = Field(
        sa_column=Column(SAEnum(UserRole, name="user_role"), nullable=False)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))


class StudentDocument(SQLModel, table=True):
    __tablename__ = "student_documents"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    registration_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("student_service_registrations.id"), nullable=False, index=True)
    )
    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    )

    document_category: DocumentCategory = Field(
        default=DocumentCategory.SECONDARY,
        sa_column=Column(SAEnum(DocumentCategory, name="document_category"), nullable=False)
    )
    document_name: str = Field(sa_column=Column(String, nullable=False))
    document_key: str = Field(sa_column=Column(String, nullable=False, index=True))

    file_name: str = Field(sa_column=Column(String, nullable=False))
    file_path: str = Field(sa_column=Column(String, nullable=False))
    file_size: int = Field(sa_column=Column(Integer, nullable=False))
    mime_type: str = Field(sa_column=Column(String, nullable=False))

    uploaded_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    uploaded_by: uuid.UUID = Field(sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False))
    uploaded_by_role: UserRole = Field(
        sa_column=Column(SAEnum(UserRole, name="user_role"), nullable=False)
    )

    status: DocumentStatus = Field(
        default=DocumentStatus.PENDING,
        sa_column=Column(SAEnum(DocumentStatus, name="document_status"), nullable=False)
    )
    approved_by: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    rejected_by: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    rejected_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    rejection_message: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    is_custom_field: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
