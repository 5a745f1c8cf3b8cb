"""
Record-level access decisions.

Every handler that reads or writes a registration (answers, documents,
status) asks `authorize_registration`, and every handler touching a lead
asks `authorize_lead`. The role table lives here and nowhere else.
"""

from enum import Enum

from core_portal.core.exceptions import PermissionDeniedError
from core_portal.models.enums import UserRole
from core_portal.models.lead import Lead
from core_portal.models.registration import StudentServiceRegistration
from core_portal.models.student import Student
from core_portal.models.user import User


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    REVIEW = "review"  # approve / reject documents, change status
    ASSIGN = "assign"  # change OPS assignment


# Roles allowed to perform each action at all, before ownership is checked
_ROLE_ACTIONS = {
    UserRole.SUPER_ADMIN: {Action.READ, Action.WRITE, Action.REVIEW, Action.ASSIGN},
    UserRole.ADMIN: {Action.READ, Action.WRITE, Action.REVIEW},
    UserRole.OPS: {Action.READ, Action.WRITE, Action.REVIEW},
    UserRole.COUNSELOR: {Action.READ},
    UserRole.STUDENT: {Action.READ, Action.WRITE},
}


def can_access_registration(
    user: User,
    registration: StudentServiceRegistration,
    student: Student,
    action: Action = Action.READ,
) -> bool:
    if action not in _ROLE_ACTIONS.get(user.role, set()):
        return False

    if user.role == UserRole.SUPER_ADMIN:
        return True
    if user.role == UserRole.ADMIN:
        return student.admin_id == user.id
    if user.role == UserRole.OPS:
        return registration.active_ops_id == user.id
    if user.role == UserRole.COUNSELOR:
        return student.counselor_id == user.id
    if user.role == UserRole.STUDENT:
        return student.user_id == user.id
    return False


def authorize_registration(
    user: User,
    registration: StudentServiceRegistration,
    student: Student,
    action: Action = Action.READ,
) -> None:
    if not can_access_registration(user, registration, student, action):
        raise PermissionDeniedError("You do not have access to this registration")


def can_access_student(user: User, student: Student) -> bool:
    if user.role == UserRole.SUPER_ADMIN:
        return True
    if user.role == UserRole.ADMIN:
        return student.admin_id == user.id
    if user.role == UserRole.COUNSELOR:
        return student.counselor_id == user.id
    if user.role == UserRole.STUDENT:
        return student.user_id == user.id
    # OPS reach students only through registrations they hold
    return False


def can_access_lead(user: User, lead: Lead, action: Action = Action.READ) -> bool:
    if user.role == UserRole.SUPER_ADMIN:
        return True
    if user.role == UserRole.ADMIN:
        return lead.admin_id == user.id
    if user.role == UserRole.COUNSELOR:
        return lead.assigned_counselor_id == user.id and action != Action.ASSIGN
    return False


def authorize_lead(user: User, lead: Lead, action: Action = Action.READ) -> None:
    if not can_access_lead(user, lead, action):
        raise PermissionDeniedError("You do not have access to this lead")
