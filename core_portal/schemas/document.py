from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from core_portal.models.enums import (
    CoreDocumentType,
    DocumentCategory,
    DocumentStatus,
    UserRole,
)


# ---------------------------------------------------------
# DOCUMENT FIELDS
# ---------------------------------------------------------
class DocumentFieldCreate(BaseModel):
    document_name: str = Field(min_length=1)
    document_type: Optional[CoreDocumentType] = None   # defaults to CORE
    category: Optional[DocumentCategory] = None
    required: bool = False
    help_text: Optional[str] = None
    allow_multiple: bool = False


class DocumentFieldRead(BaseModel):
    id: UUID
    registration_id: UUID
    document_name: str
    document_key: str
    document_type: CoreDocumentType
    category: DocumentCategory
    required: bool
    help_text: Optional[str] = None
    allow_multiple: bool
    order: int
    created_by_role: UserRole
    created_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------
# UPLOADED DOCUMENTS
# ---------------------------------------------------------
class StudentDocumentRead(BaseModel):
    id: UUID
    registration_id: UUID
    student_id: UUID
    document_category: DocumentCategory
    document_name: str
    document_key: str
    file_name: str
    file_size: int
    mime_type: str
    uploaded_at: datetime
    uploaded_by_role: UserRole
    status: DocumentStatus
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_message: Optional[str] = None
    version: int
    is_custom_field: bool

    class Config:
        from_attributes = True


class DocumentRejectRequest(BaseModel):
    rejection_message: str = Field(min_length=1)
