# core_portal/api/endpoints/documents.py

import os
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session, get_current_user
from core_portal.core.constants import DOCUMENT_FIELD_ROLES
from core_portal.core.exceptions import PermissionDeniedError, ServiceError, http_error
from core_portal.core.policy import Action
from core_portal.core.storage import get_download_target
from core_portal.models.enums import CoreDocumentType, DocumentCategory
from core_portal.models.user import User
from core_portal.schemas.document import (
    DocumentFieldCreate,
    DocumentFieldRead,
    DocumentRejectRequest,
    StudentDocumentRead,
)
from core_portal.services import document_service, registration_service
from core_portal.services.audit_service import log_activity
from core_portal.services.email_service import send_document_rejected_email

router = APIRouter(prefix="/api/documents", tags=["Documents"])


async def _load_document(session, document_id: UUID, user: User, action: Action):
    document = await document_service.get_document(session, document_id)
    registration, student = await registration_service.load_registration(
        session, document.registration_id, user, action
    )
    return document, registration, student


# ===================================================================
# SINGLE DOCUMENT: download / approve / reject / delete
# ===================================================================
@router.get("/file/{document_id}/download")
async def download_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        document, _, _ = await _load_document(session, document_id, current_user, Action.READ)
    except ServiceError as e:
        raise http_error(e)

    kind, target = get_download_target(document.file_path)
    if kind == "url":
        return RedirectResponse(target)
    if not os.path.exists(target):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found on server")
    return FileResponse(target, media_type=document.mime_type, filename=document.file_name)


@router.patch("/file/{document_id}/approve")
async def approve_document(
    document_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        document, _, _ = await _load_document(session, document_id, current_user, Action.REVIEW)
        document = await document_service.approve_document(session, document, current_user)
    except ServiceError as e:
        raise http_error(e)

    background_tasks.add_task(
        log_activity, "DOCUMENT_APPROVED", current_user, "student_document", document.id,
        remarks=document.document_name,
    )
    return {
        "success": True,
        "message": "Document approved",
        "data": StudentDocumentRead.model_validate(document),
    }


@router.patch("/file/{document_id}/reject")
async def reject_document(
    document_id: UUID,
    payload: DocumentRejectRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        document, _, _ = await _load_document(session, document_id, current_user, Action.REVIEW)
        document, student = await document_service.reject_document(
            session, document, current_user, payload.rejection_message
        )
    except ServiceError as e:
        raise http_error(e)

    if student:
        background_tasks.add_task(send_document_rejected_email, {
            "email": student.email,
            "name": student.name,
            "document_name": document.document_name,
            "rejection_message": document.rejection_message,
            "rejected_by": current_user.name,
        })
    background_tasks.add_task(
        log_activity, "DOCUMENT_REJECTED", current_user, "student_document", document.id,
        remarks=document.rejection_message,
    )

    return {
        "success": True,
        "message": "Document rejected",
        "data": StudentDocumentRead.model_validate(document),
    }


@router.delete("/file/{document_id}")
async def delete_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        document, _, _ = await _load_document(session, document_id, current_user, Action.WRITE)
        await document_service.delete_document(session, document)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Document deleted"}


# ===================================================================
# DOCUMENT FIELDS (CORE / EXTRA slots)
# ===================================================================
@router.delete("/fields/{field_id}")
async def deactivate_document_field(
    field_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if current_user.role not in DOCUMENT_FIELD_ROLES:
            raise PermissionDeniedError("You cannot manage document fields")
        field = await document_service.get_document_field(session, field_id)
        await registration_service.load_registration(
            session, field.registration_id, current_user, Action.REVIEW
        )
        await document_service.deactivate_document_field(session, field.id)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Document field removed"}


@router.get("/{registration_id}/fields")
async def list_document_fields(
    registration_id: UUID,
    document_type: Optional[CoreDocumentType] = Query(None),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.READ
        )
    except ServiceError as e:
        raise http_error(e)

    fields = await document_service.list_document_fields(session, registration.id, document_type)
    return {"success": True, "data": [DocumentFieldRead.model_validate(f) for f in fields]}


@router.post("/{registration_id}/fields", status_code=status.HTTP_201_CREATED)
async def create_document_field(
    registration_id: UUID,
    payload: DocumentFieldCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if current_user.role not in DOCUMENT_FIELD_ROLES:
            raise PermissionDeniedError("You cannot manage document fields")
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.REVIEW
        )
        field = await document_service.create_document_field(
            session,
            registration,
            current_user,
            document_name=payload.document_name,
            document_type=payload.document_type,
            category=payload.category,
            required=payload.required,
            help_text=payload.help_text,
            allow_multiple=payload.allow_multiple,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Document field created",
        "data": DocumentFieldRead.model_validate(field),
    }


# ===================================================================
# UPLOADS
# ===================================================================
@router.get("/{registration_id}")
async def list_documents(
    registration_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.READ
        )
    except ServiceError as e:
        raise http_error(e)

    documents = await document_service.list_documents(session, registration.id)
    return {"success": True, "data": [StudentDocumentRead.model_validate(d) for d in documents]}


@router.post("/{registration_id}/upload", status_code=status.HTTP_201_CREATED)
async def upload_document(
    registration_id: UUID,
    file: UploadFile = File(...),
    document_key: str = Form(...),
    document_name: Optional[str] = Form(None),
    document_category: Optional[DocumentCategory] = Form(None),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.WRITE
        )
        document = await document_service.upload_document(
            session,
            registration,
            current_user,
            file,
            document_key=document_key,
            document_name=document_name,
            document_category=document_category,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Document uploaded",
        "data": StudentDocumentRead.model_validate(document),
    }
