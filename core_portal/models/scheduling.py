# core_portal/models/scheduling.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from datetime import date, datetime
from typing import Optional
import uuid

from core_portal.models.enums import (
    FollowUpStatus,
    LeadStage,
    MeetingType,
    OpsScheduleStatus,
    TeamMeetStatus,
)


# ----------------------------------------------------------------
# TEAM MEET (staff <-> staff)
# ----------------------------------------------------------------
class TeamMeet(SQLModel, table=True):
    __tablename__ = "team_meets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    subject: str = Field(sa_column=Column(String, nullable=False))
    scheduled_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    scheduled_time: str = Field(sa_column=Column(String(5), nullable=False))  # "HH:MM"
    duration: int = Field(default=30, sa_column=Column(Integer, nullable=False, default=30))
    meeting_type: MeetingType = Field(
        default=MeetingType.ONLINE,
        sa_column=Column(SAEnum(MeetingType, name="meeting_type"), nullable=False)
    )
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    requested_by: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    )
    requested_to: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    )
    admin_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True)
    )

    status: TeamMeetStatus = Field(
        default=TeamMeetStatus.PENDING_CONFIRMATION,
        sa_column=Column(SAEnum(TeamMeetStatus, name="team_meet_status"), nullable=False)
    )
    rejection_message: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    zoho_meeting_key: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    zoho_meeting_url: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))


# ----------------------------------------------------------------
# OPS SCHEDULE (OPS personal calendar, optionally about a student)
# ----------------------------------------------------------------
class OpsSchedule(SQLModel, table=True):
    __tablename__ = "ops_schedules"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    ops_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    )
    # NULL = a "Me" task not tied to a student
    student_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, ForeignKey("students.id"), nullable=True)
    )
    scheduled_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    scheduled_time: str = Field(sa_column=Column(String(5), nullable=False))
    duration: int = Field(default=30, sa_column=Column(Integer, nullable=False, default=30))
    description: str = Field(sa_column=Column(Text, nullable=False))
    status: OpsScheduleStatus = Field(
        default=OpsScheduleStatus.SCHEDULED,
        sa_column=Column(SAEnum(OpsScheduleStatus, name="ops_schedule_status"), nullable=False)
    )
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))


# ----------------------------------------------------------------
# COUNSELOR FOLLOW-UP (counselor <-> lead)
# ----------------------------------------------------------------
class FollowUp(SQLModel, table=True):
    __tablename__ = "follow_ups"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    lead_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("leads.id"), nullable=False, index=True)
    )
    counselor_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    )
    scheduled_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    scheduled_time: str = Field(sa_column=Column(String(5), nullable=False))
    duration: int = Field(default=30, sa_column=Column(Integer, nullable=False, default=30))
    meeting_type: MeetingType = Field(
        default=MeetingType.ONLINE,
        sa_column=Column(SAEnum(MeetingType, name="meeting_type"), nullable=False)
    )
    status: FollowUpStatus = Field(
        default=FollowUpStatus.SCHEDULED,
        sa_column=Column(SAEnum(FollowUpStatus, name="follow_up_status"), nullable=False)
    )

    stage_at_follow_up: LeadStage = Field(
        sa_column=Column(SAEnum(LeadStage, name="lead_stage"), nullable=False)
    )
    stage_changed_to: Optional[LeadStage] = Field(
        default=None, sa_column=Column(SAEnum(LeadStage, name="lead_stage"), nullable=True)
    )
    follow_up_number: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    zoho_meeting_key: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    zoho_meeting_url: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))


# ----------------------------------------------------------------
# CALENDAR SLOTS
# One row per participant per 5-minute block an active event occupies.
# The unique constraint is what stops two concurrent requests from
# booking the same participant into overlapping events.
# ----------------------------------------------------------------
class CalendarSlot(SQLModel, table=True):
    __tablename__ = "calendar_slots"
    __table_args__ = (
        UniqueConstraint("participant_id", "slot_date", "slot_minute", name="uq_participant_slot"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, sa_column=Column(Uuid, primary_key=True))
    participant_id: uuid.UUID = Field(sa_column=Column(Uuid, nullable=False, index=True))
    slot_date: date = Field(sa_column=Column(Date, nullable=False))
    slot_minute: int = Field(sa_column=Column(Integer, nullable=False))  # minutes since midnight

    event_type: str = Field(sa_column=Column(String(20), nullable=False))  # team_meet | ops_schedule | follow_up
    event_id: uuid.UUID = Field(sa_column=Column(Uuid, nullable=False, index=True))
