from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    COUNSELOR = "COUNSELOR"
    OPS = "OPS"
    STUDENT = "STUDENT"


# ----------------------------------------------------------------
# Forms
# ----------------------------------------------------------------
class FormPartKey(str, Enum):
    PROFILE = "PROFILE"
    APPLICATION = "APPLICATION"
    DOCUMENT = "DOCUMENT"
    PAYMENT = "PAYMENT"


class FieldType(str, Enum):
    TEXT = "TEXT"
    EMAIL = "EMAIL"
    NUMBER = "NUMBER"
    DATE = "DATE"
    PHONE = "PHONE"
    TEXTAREA = "TEXTAREA"
    SELECT = "SELECT"
    RADIO = "RADIO"
    CHECKBOX = "CHECKBOX"
    FILE = "FILE"
    COUNTRY = "COUNTRY"
    STATE = "STATE"
    CITY = "CITY"


class RegistrationStatus(str, Enum):
    REGISTERED = "REGISTERED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# ----------------------------------------------------------------
# Documents
# ----------------------------------------------------------------
class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CoreDocumentType(str, Enum):
    CORE = "CORE"
    EXTRA = "EXTRA"


class DocumentCategory(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"


# ----------------------------------------------------------------
# Scheduling
# ----------------------------------------------------------------
class MeetingType(str, Enum):
    ONLINE = "ONLINE"
    FACE_TO_FACE = "FACE_TO_FACE"


class TeamMeetStatus(str, Enum):
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class OpsScheduleStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"


class FollowUpStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CALL_NOT_ANSWERED = "CALL_NOT_ANSWERED"
    PHONE_SWITCHED_OFF = "PHONE_SWITCHED_OFF"
    OUT_OF_COVERAGE = "OUT_OF_COVERAGE"
    NUMBER_BUSY = "NUMBER_BUSY"
    CALL_DISCONNECTED = "CALL_DISCONNECTED"
    INVALID_NUMBER = "INVALID_NUMBER"
    INCOMING_BARRED = "INCOMING_BARRED"
    CALL_BACK_LATER = "CALL_BACK_LATER"
    BUSY_RESCHEDULE = "BUSY_RESCHEDULE"
    INTERESTED = "INTERESTED"
    NOT_INTERESTED = "NOT_INTERESTED"
    CONVERTED_TO_STUDENT = "CONVERTED_TO_STUDENT"
    CANCELLED = "CANCELLED"


# ----------------------------------------------------------------
# Leads
# ----------------------------------------------------------------
class LeadStage(str, Enum):
    NEW = "NEW"
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"
    CONVERTED = "CONVERTED"
    CLOSED = "CLOSED"


class ServiceType(str, Enum):
    EDUCATION_PLANNING = "EDUCATION_PLANNING"
    CAREER_FOCUS_STUDY_ABROAD = "CAREER_FOCUS_STUDY_ABROAD"
    IVY_LEAGUE_ADMISSION = "IVY_LEAGUE_ADMISSION"
    IELTS_GRE_COACHING = "IELTS_GRE_COACHING"


class ConversionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
