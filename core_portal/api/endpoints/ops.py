# core_portal/api/endpoints/ops.py

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.rbac import AllowRoles
from core_portal.models.enums import OpsScheduleStatus, UserRole
from core_portal.models.user import User
from core_portal.schemas.scheduling import (
    AvailabilityQuery,
    OpsScheduleCreate,
    OpsScheduleRead,
    OpsScheduleUpdate,
)
from core_portal.services import availability_service, ops_schedule_service
from core_portal.services.availability_service import OPS_SCHEDULE

router = APIRouter(prefix="/api/ops", tags=["OPS"])

ops_only = AllowRoles(UserRole.OPS)


def _read_all(items):
    return [OpsScheduleRead.model_validate(s) for s in items]


# ===================================================================
# MY STUDENTS
# ===================================================================
@router.get("/my-students")
async def my_students(
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    students = await ops_schedule_service.list_my_students(session, current_user)
    return {"success": True, "data": students}


# ===================================================================
# SCHEDULE
# ===================================================================
@router.get("/schedules/summary")
async def schedule_summary(
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    summary = await ops_schedule_service.get_summary(session, current_user)
    return {
        "success": True,
        "data": {
            "today": _read_all(summary["today"]),
            "tomorrow": _read_all(summary["tomorrow"]),
            "missed": _read_all(summary["missed"]),
            "counts": summary["counts"],
        },
    }


@router.post("/schedules/check-availability")
async def check_availability(
    payload: AvailabilityQuery,
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        result = await availability_service.check_availability(
            session,
            {current_user.id: "You"},
            payload.scheduled_date,
            payload.scheduled_time,
            payload.duration,
            exclude=(OPS_SCHEDULE, payload.exclude_id) if payload.exclude_id else None,
        )
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": result}


@router.post("/schedules", status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: OpsScheduleCreate,
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        schedule = await ops_schedule_service.create_schedule(
            session,
            current_user,
            scheduled_date=payload.scheduled_date,
            scheduled_time=payload.scheduled_time,
            description=payload.description,
            student_id=payload.student_id,
            duration=payload.duration,
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Schedule created",
        "data": OpsScheduleRead.model_validate(schedule),
    }


@router.get("/schedules")
async def list_schedules(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status_filter: Optional[OpsScheduleStatus] = Query(None, alias="status"),
    student_id: Optional[UUID] = Query(None),
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    schedules = await ops_schedule_service.list_schedules(
        session, current_user,
        start_date=start_date, end_date=end_date, status=status_filter, student_id=student_id,
    )
    return {"success": True, "data": _read_all(schedules)}


@router.get("/schedules/{schedule_id}")
async def get_schedule(
    schedule_id: UUID,
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        schedule = await ops_schedule_service.get_schedule(session, schedule_id, current_user)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "data": OpsScheduleRead.model_validate(schedule)}


@router.patch("/schedules/{schedule_id}")
async def update_schedule(
    schedule_id: UUID,
    payload: OpsScheduleUpdate,
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        schedule = await ops_schedule_service.update_schedule(
            session, schedule_id, current_user, payload.model_dump(exclude_unset=True)
        )
    except ServiceError as e:
        raise http_error(e)

    return {
        "success": True,
        "message": "Schedule updated",
        "data": OpsScheduleRead.model_validate(schedule),
    }


@router.delete("/schedules/{schedule_id}")
async def delete_schedule(
    schedule_id: UUID,
    current_user: User = Depends(ops_only),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await ops_schedule_service.delete_schedule(session, schedule_id, current_user)
    except ServiceError as e:
        raise http_error(e)
    return {"success": True, "message": "Schedule deleted"}
