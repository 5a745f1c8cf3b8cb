# core_portal/api/endpoints/form_answers.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session, get_current_user
from core_portal.core.exceptions import ServiceError, ValidationFailedError, http_error
from core_portal.core.policy import Action
from core_portal.models.enums import FormPartKey
from core_portal.models.user import User
from core_portal.schemas.form import (
    FieldChangeRequest,
    FormAnswerRead,
    InstanceChangeRequest,
    SaveAnswersRequest,
)
from core_portal.services import answer_service, form_aggregator, registration_service
from core_portal.services.form_service import get_form_structure

router = APIRouter(prefix="/api/form-answers", tags=["Form Answers"])


async def _load_section(session, registration, part_key: FormPartKey, section_id: UUID):
    structure = await get_form_structure(session, registration.service_id)
    part = form_aggregator.find_part(structure, part_key)
    return form_aggregator.find_section(part, str(section_id))


# ===================================================================
# READ SAVED ANSWERS
# ===================================================================
@router.get("/{registration_id}")
async def get_answers(
    registration_id: UUID,
    part_key: Optional[FormPartKey] = Query(None),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.READ
        )
    except ServiceError as e:
        raise http_error(e)

    rows = await answer_service.get_answers(session, registration, part_key)
    return {"success": True, "data": [FormAnswerRead.model_validate(r) for r in rows]}


@router.get("/{registration_id}/prefilled")
async def get_prefilled(
    registration_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, student = await registration_service.load_registration(
            session, registration_id, current_user, Action.READ
        )
        data = await answer_service.get_prefilled_form(session, registration, student)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": data}


@router.get("/{registration_id}/progress")
async def get_progress(
    registration_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.READ
        )
        data = await answer_service.get_progress(session, registration)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": data}


# ===================================================================
# SAVE ONE PART
# ===================================================================
@router.put("/{registration_id}/{part_key}")
async def save_answers(
    registration_id: UUID,
    part_key: FormPartKey,
    payload: SaveAnswersRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, student = await registration_service.load_registration(
            session, registration_id, current_user, Action.WRITE
        )
        row = await answer_service.save_part_answers(
            session, registration, student, part_key, payload.answers, payload.completed
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": f"{part_key.value} answers saved",
        "data": FormAnswerRead.model_validate(row),
    }


# ===================================================================
# FIELD CHANGE (dependent resets + copy rules)
# ===================================================================
@router.post("/{registration_id}/apply-change")
async def apply_change(
    registration_id: UUID,
    payload: FieldChangeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.WRITE
        )
        section = await _load_section(session, registration, payload.part_key, payload.section_id)
        updated = form_aggregator.apply_field_change(
            section,
            payload.section_answers,
            str(payload.sub_section_id),
            payload.index,
            payload.key,
            payload.value,
        )
    except ServiceError as e:
        raise http_error(e)

    return {"success": True, "data": {"section_answers": updated}}


# ===================================================================
# REPEATABLE INSTANCES
# ===================================================================
@router.post("/{registration_id}/instances/add")
async def add_instance(
    registration_id: UUID,
    payload: InstanceChangeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.WRITE
        )
        section = await _load_section(session, registration, payload.part_key, payload.section_id)
        sub_section = form_aggregator.find_sub_section(section, str(payload.sub_section_id))
        instances = form_aggregator.add_instance(sub_section, payload.instances)
    except ServiceError as e:
        raise http_error(e)

    return {"success": True, "data": {"instances": instances}}


@router.post("/{registration_id}/instances/remove")
async def remove_instance(
    registration_id: UUID,
    payload: InstanceChangeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if payload.index is None:
            raise ValidationFailedError("Index of the entry to remove is required")
        registration, _ = await registration_service.load_registration(
            session, registration_id, current_user, Action.WRITE
        )
        section = await _load_section(session, registration, payload.part_key, payload.section_id)
        sub_section = form_aggregator.find_sub_section(section, str(payload.sub_section_id))
        instances = form_aggregator.remove_instance(sub_section, payload.instances, payload.index)
    except ServiceError as e:
        raise http_error(e)

    return {"success": True, "data": {"instances": instances}}
