# core_portal/services/document_service.py

import re
import time
from datetime import datetime
from uuid import UUID

from fastapi import UploadFile
from loguru import logger
from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.core.constants import AUTO_APPROVE_UPLOAD_ROLES
from core_portal.core.exceptions import NotFoundError, ValidationFailedError
from core_portal.core.storage import delete_document_file, save_document_file
from core_portal.models.document import CoreDocumentField, StudentDocument
from core_portal.models.enums import CoreDocumentType, DocumentCategory, DocumentStatus
from core_portal.models.registration import StudentServiceRegistration
from core_portal.models.student import Student
from core_portal.models.user import User


# ============================================================================
# KEY GENERATION
# ============================================================================
def slugify_document_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def generate_document_key(name: str, document_type: CoreDocumentType, now_ms: int | None = None) -> str:
    """'Passport' + CORE -> 'core_passport_1718000000000'"""
    prefix = "extra" if document_type == CoreDocumentType.EXTRA else "core"
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}_{slugify_document_name(name)}_{timestamp}"


# ============================================================================
# DOCUMENT FIELDS (slots requested from the student)
# ============================================================================
async def list_document_fields(
    session: AsyncSession,
    registration_id: UUID,
    document_type: CoreDocumentType | None = None,
) -> list[CoreDocumentField]:
    query = (
        select(CoreDocumentField)
        .where(
            CoreDocumentField.registration_id == registration_id,
            CoreDocumentField.is_active == True,  # noqa: E712
        )
        .order_by(CoreDocumentField.document_type, CoreDocumentField.order)
    )
    if document_type:
        query = query.where(CoreDocumentField.document_type == document_type)
    result = await session.execute(query)
    return list(result.scalars().all())


async def create_document_field(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    actor: User,
    document_name: str,
    document_type: CoreDocumentType | None = None,
    category: DocumentCategory | None = None,
    required: bool = False,
    help_text: str | None = None,
    allow_multiple: bool = False,
) -> CoreDocumentField:
    name = (document_name or "").strip()
    if not name or not slugify_document_name(name):
        raise ValidationFailedError("Document name is required")

    doc_type = document_type or CoreDocumentType.CORE

    max_order = await session.execute(
        select(func.max(CoreDocumentField.order)).where(
            CoreDocumentField.registration_id == registration.id,
            CoreDocumentField.document_type == doc_type,
        )
    )
    next_order = (max_order.scalar() or 0) + 1

    field = CoreDocumentField(
        student_id=registration.student_id,
        registration_id=registration.id,
        document_name=name,
        document_key=generate_document_key(name, doc_type),
        document_type=doc_type,
        category=category or DocumentCategory.SECONDARY,
        required=required,
        help_text=help_text,
        allow_multiple=allow_multiple,
        order=next_order,
        created_by=actor.id,
        created_by_role=actor.role,
    )
    session.add(field)
    await session.commit()
    await session.refresh(field)

    logger.info(f"Document field {field.document_key} added to registration {registration.id}")
    return field


async def deactivate_document_field(session: AsyncSession, field_id: UUID) -> CoreDocumentField:
    field = await session.get(CoreDocumentField, field_id)
    if not field or not field.is_active:
        raise NotFoundError("Document field not found")

    field.is_active = False
    session.add(field)
    await session.commit()
    return field


async def get_document_field(session: AsyncSession, field_id: UUID) -> CoreDocumentField:
    field = await session.get(CoreDocumentField, field_id)
    if not field or not field.is_active:
        raise NotFoundError("Document field not found")
    return field


async def _field_for_key(session: AsyncSession, registration_id: UUID, document_key: str) -> CoreDocumentField | None:
    result = await session.execute(
        select(CoreDocumentField).where(
            CoreDocumentField.registration_id == registration_id,
            CoreDocumentField.document_key == document_key,
            CoreDocumentField.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


# ============================================================================
# UPLOADS
# ============================================================================
async def list_documents(session: AsyncSession, registration_id: UUID) -> list[StudentDocument]:
    result = await session.execute(
        select(StudentDocument)
        .where(StudentDocument.registration_id == registration_id)
        .order_by(StudentDocument.uploaded_at.desc())
    )
    return list(result.scalars().all())


async def upload_document(
    session: AsyncSession,
    registration: StudentServiceRegistration,
    actor: User,
    file: UploadFile,
    document_key: str,
    document_name: str | None = None,
    document_category: DocumentCategory | None = None,
) -> StudentDocument:
    """
    Stores a file against a document key.

    - Keys backed by a CoreDocumentField take their name/category from it.
    - A single-file key is replaced in place and its version bumped.
    - allow_multiple keys always get a new record.
    - Staff uploads are approved immediately.
    """
    if not document_key:
        raise ValidationFailedError("Document key is required")

    field = await _field_for_key(session, registration.id, document_key)
    name = field.document_name if field else (document_name or "").strip()
    if not name:
        raise ValidationFailedError("Document name is required")
    category = field.category if field else (document_category or DocumentCategory.SECONDARY)
    allow_multiple = bool(field and field.allow_multiple)

    file_path, size = await save_document_file(file, registration.id)

    now = datetime.utcnow()
    auto_approve = actor.role in AUTO_APPROVE_UPLOAD_ROLES

    old_path = None
    existing = None
    if not allow_multiple:
        result = await session.execute(
            select(StudentDocument)
            .where(
                StudentDocument.registration_id == registration.id,
                StudentDocument.document_key == document_key,
            )
            .order_by(StudentDocument.version.desc())
        )
        existing = result.scalars().first()

    if existing:
        old_path = existing.file_path
        existing.file_name = file.filename or existing.file_name
        existing.file_path = file_path
        existing.file_size = size
        existing.mime_type = file.content_type
        existing.uploaded_at = now
        existing.uploaded_by = actor.id
        existing.uploaded_by_role = actor.role
        existing.version += 1
        existing.rejection_message = None
        existing.rejected_by = None
        existing.rejected_at = None
        document = existing
        _set_initial_status(document, actor, auto_approve, now)
    else:
        document = StudentDocument(
            registration_id=registration.id,
            student_id=registration.student_id,
            document_category=category,
            document_name=name,
            document_key=document_key,
            file_name=file.filename or "document",
            file_path=file_path,
            file_size=size,
            mime_type=file.content_type,
            uploaded_at=now,
            uploaded_by=actor.id,
            uploaded_by_role=actor.role,
            is_custom_field=field is not None,
        )
        _set_initial_status(document, actor, auto_approve, now)

    session.add(document)
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        delete_document_file(file_path)
        raise
    await session.refresh(document)

    # the replaced file goes only once the row points at the new one
    if old_path:
        delete_document_file(old_path)

    logger.info(
        f"Document {document_key} v{document.version} uploaded by {actor.role.value} "
        f"for registration {registration.id}"
    )
    return document


def _set_initial_status(document: StudentDocument, actor: User, auto_approve: bool, now: datetime):
    if auto_approve:
        document.status = DocumentStatus.APPROVED
        document.approved_by = actor.id
        document.approved_at = now
    else:
        document.status = DocumentStatus.PENDING
        document.approved_by = None
        document.approved_at = None


async def get_document(session: AsyncSession, document_id: UUID) -> StudentDocument:
    document = await session.get(StudentDocument, document_id)
    if not document:
        raise NotFoundError("Document not found")
    return document


# ============================================================================
# REVIEW
# ============================================================================
async def approve_document(session: AsyncSession, document: StudentDocument, reviewer: User) -> StudentDocument:
    if document.status != DocumentStatus.PENDING:
        raise ValidationFailedError(f"Only pending documents can be approved (current: {document.status.value})")

    document.status = DocumentStatus.APPROVED
    document.approved_by = reviewer.id
    document.approved_at = datetime.utcnow()
    session.add(document)
    await session.commit()
    await session.refresh(document)
    return document


async def reject_document(
    session: AsyncSession,
    document: StudentDocument,
    reviewer: User,
    message: str,
) -> tuple[StudentDocument, Student]:
    """
    Marks the document REJECTED and returns it with its student so the
    caller can queue the notification email.
    """
    if not message or not message.strip():
        raise ValidationFailedError("Rejection message is required")
    if document.status != DocumentStatus.PENDING:
        raise ValidationFailedError(f"Only pending documents can be rejected (current: {document.status.value})")

    document.status = DocumentStatus.REJECTED
    document.rejected_by = reviewer.id
    document.rejected_at = datetime.utcnow()
    document.rejection_message = message.strip()
    session.add(document)
    await session.commit()
    await session.refresh(document)

    student = await session.get(Student, document.student_id)
    return document, student


async def delete_document(session: AsyncSession, document: StudentDocument) -> None:
    if document.status == DocumentStatus.APPROVED:
        raise ValidationFailedError("Approved documents cannot be deleted")

    file_path = document.file_path
    await session.delete(document)
    await session.commit()
    delete_document_file(file_path)
