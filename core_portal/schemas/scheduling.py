from datetime import date, datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from core_portal.core.constants import TIME_PATTERN
from core_portal.models.enums import (
    FollowUpStatus,
    LeadStage,
    MeetingType,
    OpsScheduleStatus,
    TeamMeetStatus,
)


# ---------------------------------------------------------
# TEAM MEET
# ---------------------------------------------------------
class TeamMeetCreate(BaseModel):
    requested_to: UUID
    subject: str = Field(min_length=1)
    scheduled_date: date
    scheduled_time: str = Field(pattern=TIME_PATTERN)
    duration: int = 30
    meeting_type: MeetingType = MeetingType.ONLINE
    description: Optional[str] = None


class TeamMeetRead(BaseModel):
    id: UUID
    subject: str
    scheduled_date: date
    scheduled_time: str
    duration: int
    meeting_type: MeetingType
    description: Optional[str] = None
    requested_by: UUID
    requested_to: UUID
    status: TeamMeetStatus
    rejection_message: Optional[str] = None
    completed_at: Optional[datetime] = None
    zoho_meeting_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RescheduleRequest(BaseModel):
    scheduled_date: date
    scheduled_time: str = Field(pattern=TIME_PATTERN)
    duration: Optional[int] = None


class RejectRequest(BaseModel):
    message: str = Field(min_length=1)


class AvailabilityQuery(BaseModel):
    scheduled_date: date
    scheduled_time: str = Field(pattern=TIME_PATTERN)
    duration: int = 30
    participant_id: Optional[UUID] = None
    exclude_id: Optional[UUID] = None


# ---------------------------------------------------------
# OPS SCHEDULE
# ---------------------------------------------------------
class OpsScheduleCreate(BaseModel):
    student_id: Optional[UUID] = None   # None = personal task
    scheduled_date: date
    scheduled_time: str = Field(pattern=TIME_PATTERN)
    duration: Optional[int] = None
    description: str = Field(min_length=1)


class OpsScheduleUpdate(BaseModel):
    student_id: Optional[UUID] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    duration: Optional[int] = None
    description: Optional[str] = None
    status: Optional[OpsScheduleStatus] = None


class OpsScheduleRead(BaseModel):
    id: UUID
    ops_id: UUID
    student_id: Optional[UUID] = None
    scheduled_date: date
    scheduled_time: str
    duration: int
    description: str
    status: OpsScheduleStatus
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------
# COUNSELOR FOLLOW-UP
# ---------------------------------------------------------
class FollowUpCreate(BaseModel):
    lead_id: UUID
    scheduled_date: date
    scheduled_time: str = Field(pattern=TIME_PATTERN)
    duration: int = 30
    meeting_type: MeetingType = MeetingType.ONLINE
    notes: Optional[str] = None


class FollowUpUpdate(BaseModel):
    status: Optional[FollowUpStatus] = None
    notes: Optional[str] = None
    stage_changed_to: Optional[LeadStage] = None


class FollowUpRead(BaseModel):
    id: UUID
    lead_id: UUID
    counselor_id: UUID
    scheduled_date: date
    scheduled_time: str
    duration: int
    meeting_type: MeetingType
    status: FollowUpStatus
    stage_at_follow_up: LeadStage
    stage_changed_to: Optional[LeadStage] = None
    follow_up_number: int
    notes: Optional[str] = None
    zoho_meeting_url: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
