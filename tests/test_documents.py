import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import Headers

from core_portal.core.config import settings
from core_portal.models.document import StudentDocument
from core_portal.models.enums import CoreDocumentType
from core_portal.services import document_service
from core_portal.services.document_service import generate_document_key

PDF = ("passport.pdf", b"%PDF-1.4 test document", "application/pdf")


def test_document_key_format():
    assert generate_document_key("Passport", CoreDocumentType.CORE, now_ms=1718000000000) == "core_passport_1718000000000"
    assert generate_document_key("Bank Statement (6 months)", CoreDocumentType.EXTRA, now_ms=1) == "extra_bank_statement_6_months_1"


async def _create_field(client, tenant, auth_headers, **payload):
    res = await client.post(
        f"/api/documents/{tenant.registration.id}/fields",
        json={"document_name": "Passport", **payload},
        headers=auth_headers(tenant.ops),
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]


async def _upload(client, tenant, headers, key, file=PDF):
    return await client.post(
        f"/api/documents/{tenant.registration.id}/upload",
        files={"file": file},
        data={"document_key": key},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_core_field_defaults_to_core_type(client, tenant, auth_headers):
    field = await _create_field(client, tenant, auth_headers)

    assert field["document_type"] == "CORE"
    assert field["document_key"].startswith("core_passport_")
    assert field["document_key"].rsplit("_", 1)[1].isdigit()


@pytest.mark.asyncio
async def test_student_cannot_create_document_fields(client, tenant, auth_headers):
    res = await client.post(
        f"/api/documents/{tenant.registration.id}/fields",
        json={"document_name": "Passport"},
        headers=auth_headers(tenant.student_user),
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_student_upload_is_pending_and_reupload_bumps_version(client, tenant, auth_headers):
    field = await _create_field(client, tenant, auth_headers)
    headers = auth_headers(tenant.student_user)

    res = await _upload(client, tenant, headers, field["document_key"])
    assert res.status_code == 201, res.text
    first = res.json()["data"]
    assert first["status"] == "PENDING"
    assert first["document_name"] == "Passport"
    assert first["version"] == 1

    res = await _upload(client, tenant, headers, field["document_key"])
    second = res.json()["data"]
    assert second["id"] == first["id"]
    assert second["version"] == 2

    res = await client.get(f"/api/documents/{tenant.registration.id}", headers=headers)
    assert len(res.json()["data"]) == 1


@pytest.mark.asyncio
async def test_ops_upload_is_auto_approved_and_cannot_be_deleted(client, tenant, auth_headers):
    headers = auth_headers(tenant.ops)
    res = await client.post(
        f"/api/documents/{tenant.registration.id}/upload",
        files={"file": PDF},
        data={"document_key": "offer_letter", "document_name": "Offer Letter"},
        headers=headers,
    )
    assert res.status_code == 201
    document = res.json()["data"]
    assert document["status"] == "APPROVED"

    res = await client.delete(f"/api/documents/file/{document['id']}", headers=headers)
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_unsupported_file_type_is_rejected(client, tenant, auth_headers):
    res = await _upload(
        client, tenant, auth_headers(tenant.student_user), "notes",
        file=("notes.exe", b"MZ", "application/x-msdownload"),
    )
    assert res.status_code == 400


@pytest.mark.asyncio
@patch("core_portal.services.email_service.smtplib.SMTP")
async def test_reject_emails_the_student(mock_smtp, client, tenant, auth_headers, monkeypatch):
    mock_server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = mock_server
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(settings, "SMTP_PORT", 25)

    field = await _create_field(client, tenant, auth_headers)
    res = await _upload(client, tenant, auth_headers(tenant.student_user), field["document_key"])
    document = res.json()["data"]

    res = await client.patch(
        f"/api/documents/file/{document['id']}/reject",
        json={"rejection_message": "Scan is blurry, please upload a clearer copy"},
        headers=auth_headers(tenant.ops),
    )
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "REJECTED"

    mock_server.sendmail.assert_called_once()
    _, recipient, raw = mock_server.sendmail.call_args[0]
    assert recipient == "asha@example.com"
    assert "Subject: Document Rejected: Passport" in raw
    assert "Scan is blurry, please upload a clearer copy" in raw


@pytest.mark.asyncio
async def test_review_requires_review_rights(client, tenant, auth_headers):
    field = await _create_field(client, tenant, auth_headers)
    res = await _upload(client, tenant, auth_headers(tenant.student_user), field["document_key"])
    document_id = res.json()["data"]["id"]

    for user in (tenant.counselor, tenant.student_user, tenant.other_ops):
        res = await client.patch(f"/api/documents/file/{document_id}/approve", headers=auth_headers(user))
        assert res.status_code == 403

    res = await client.patch(f"/api/documents/file/{document_id}/approve", headers=auth_headers(tenant.admin))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "APPROVED"

    # already reviewed
    res = await client.patch(
        f"/api/documents/file/{document_id}/reject",
        json={"rejection_message": "too late"},
        headers=auth_headers(tenant.admin),
    )
    assert res.status_code == 400


def _upload_file(content=b"%PDF-1.4 offer letter"):
    return UploadFile(
        file=io.BytesIO(content),
        filename="offer.pdf",
        headers=Headers({"content-type": "application/pdf"}),
    )


@pytest.mark.asyncio
@patch("core_portal.services.document_service.delete_document_file")
async def test_replaced_file_is_removed_after_commit(mock_delete, session, tenant):
    first = await document_service.upload_document(
        session, tenant.registration, tenant.student_user, _upload_file(), "offer_letter", "Offer Letter"
    )
    old_path = first.file_path
    mock_delete.assert_not_called()

    second = await document_service.upload_document(
        session, tenant.registration, tenant.student_user, _upload_file(), "offer_letter", "Offer Letter"
    )
    assert second.version == 2
    mock_delete.assert_called_once_with(old_path)


@pytest.mark.asyncio
@patch("core_portal.services.document_service.delete_document_file")
async def test_failed_commit_keeps_the_previous_file(mock_delete, session, tenant):
    first = await document_service.upload_document(
        session, tenant.registration, tenant.student_user, _upload_file(), "offer_letter", "Offer Letter"
    )
    document_id, old_path = first.id, first.file_path

    with patch.object(session, "commit", AsyncMock(side_effect=SQLAlchemyError("database unavailable"))):
        with pytest.raises(SQLAlchemyError):
            await document_service.upload_document(
                session, tenant.registration, tenant.student_user, _upload_file(), "offer_letter", "Offer Letter"
            )

    # only the freshly stored file is cleaned up
    mock_delete.assert_called_once()
    assert mock_delete.call_args.args[0] != old_path

    document = await session.get(StudentDocument, document_id)
    await session.refresh(document)
    assert document.file_path == old_path
    assert document.version == 1
