# core_portal/core/constants.py

from core_portal.models.enums import (
    FollowUpStatus,
    OpsScheduleStatus,
    TeamMeetStatus,
    UserRole,
)

# ==========================================================
# ROLES
# ==========================================================
# Staff an admin may create and manage under its tenant
TENANT_STAFF_ROLES = (UserRole.COUNSELOR, UserRole.OPS)

# Uploads by these roles skip the review queue
AUTO_APPROVE_UPLOAD_ROLES = {UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.OPS}

# Roles that may create CORE/EXTRA document fields
DOCUMENT_FIELD_ROLES = {UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.OPS}

# ==========================================================
# SCHEDULING
# ==========================================================
ALLOWED_MEETING_DURATIONS = (15, 30, 45, 60)
DEFAULT_OPS_DURATION = 30
SLOT_MINUTES = 5
TIME_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"

# Event statuses that still occupy a participant's calendar
BUSY_TEAM_MEET_STATUSES = {
    TeamMeetStatus.PENDING_CONFIRMATION,
    TeamMeetStatus.CONFIRMED,
    TeamMeetStatus.COMPLETED,
}
BUSY_OPS_SCHEDULE_STATUSES = {
    OpsScheduleStatus.SCHEDULED,
    OpsScheduleStatus.COMPLETED,
}
BUSY_FOLLOW_UP_EXCLUDED = {FollowUpStatus.CANCELLED}

# Follow-up outcomes that close the call
FOLLOW_UP_OUTCOMES = {
    s for s in FollowUpStatus if s not in (FollowUpStatus.SCHEDULED, FollowUpStatus.CANCELLED)
}

# ==========================================================
# FORMS
# ==========================================================
PHONE_ANSWER_KEYS = ("phone", "phoneNumber", "mobileNumber")

# ==========================================================
# LEADS
# ==========================================================
DUPLICATE_LEAD_WINDOW_HOURS = 24
DEFAULT_REJECTION_REASON = "No reason provided"
