# core_portal/core/storage.py

import os
import re
import uuid
from pathlib import Path

from fastapi import UploadFile
from loguru import logger
from supabase import create_client, Client

from core_portal.core.config import settings
from core_portal.core.exceptions import ValidationFailedError

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/jpg",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
MAX_FILE_SIZE = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024


def _init_supabase() -> Client | None:
    if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
        return None
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    except Exception as e:
        logger.warning(f"Supabase init failed, using local uploads: {e}")
        return None


supabase = _init_supabase()


def _safe_extension(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext if re.fullmatch(r"\.[a-z0-9]{1,8}", ext) else ""


async def save_document_file(file: UploadFile, registration_id: uuid.UUID) -> tuple[str, int]:
    """
    Stores an uploaded document and returns (storage_path, size).

    The original filename is never used on disk.
    """
    if file.content_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailedError("Unsupported file type. Upload a PDF, image or Word document.")

    content = await file.read()
    if len(content) > MAX_FILE_SIZE:
        raise ValidationFailedError(f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB}MB.")
    if not content:
        raise ValidationFailedError("Uploaded file is empty.")

    relative_path = f"{registration_id}/{uuid.uuid4()}{_safe_extension(file.filename)}"

    if supabase:
        supabase.storage.from_(settings.SUPABASE_BUCKET).upload(
            path=relative_path,
            file=content,
            file_options={"content-type": file.content_type, "upsert": "true"},
        )
        return relative_path, len(content)

    target = Path(settings.UPLOAD_DIR) / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    return relative_path, len(content)


def delete_document_file(file_path: str) -> None:
    try:
        if supabase:
            supabase.storage.from_(settings.SUPABASE_BUCKET).remove([file_path])
            return
        (Path(settings.UPLOAD_DIR) / file_path).unlink(missing_ok=True)
    except Exception as e:
        logger.warning(f"Failed to delete stored file {file_path}: {e}")


def get_download_target(file_path: str, expiration: int = 3600) -> tuple[str, str]:
    """
    Returns ("url", signed_url) for cloud storage or ("path", local_path).
    """
    if supabase:
        response = supabase.storage.from_(settings.SUPABASE_BUCKET).create_signed_url(file_path, expiration)
        if isinstance(response, dict):
            return "url", response.get("signedURL") or response.get("signedUrl")
        return "url", str(response)

    return "path", str(Path(settings.UPLOAD_DIR) / file_path)
