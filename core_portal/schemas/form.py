from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from core_portal.models.enums import FieldType, FormPartKey


# ---------------------------------------------------------
# FORM STRUCTURE (read side)
# ---------------------------------------------------------
class FieldOption(BaseModel):
    label: str
    value: Any


class FormFieldRead(BaseModel):
    id: UUID
    label: str
    key: str
    type: FieldType
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    required: bool = False
    order: int = 0
    validation: Optional[Dict[str, Any]] = None
    options: Optional[List[FieldOption]] = None
    default_value: Optional[Any] = None
    depends_on: Optional[str] = None
    copy_from: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class FormSubSectionRead(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    order: int = 0
    is_repeatable: bool = False
    max_repeat: Optional[int] = None
    fields: List[FormFieldRead] = []

    class Config:
        from_attributes = True


class FormSectionRead(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    order: int = 0
    sub_sections: List[FormSubSectionRead] = []

    class Config:
        from_attributes = True


class FormPartRead(BaseModel):
    id: UUID
    key: FormPartKey
    title: str
    description: Optional[str] = None
    order: int = 0
    is_required: bool = True
    sections: List[FormSectionRead] = []

    class Config:
        from_attributes = True


# ---------------------------------------------------------
# ANSWERS
# ---------------------------------------------------------
# section_id -> sub_section_id -> [ {field_key: value} ]
PartAnswers = Dict[str, Dict[str, List[Dict[str, Any]]]]


class SaveAnswersRequest(BaseModel):
    answers: PartAnswers
    completed: bool = False


class FormAnswerRead(BaseModel):
    id: UUID
    registration_id: UUID
    student_id: UUID
    part_key: FormPartKey
    answers: Dict[str, Any]
    completed: bool
    last_saved_at: datetime

    class Config:
        from_attributes = True


class FieldChangeRequest(BaseModel):
    """Applies one field edit to a section's answers and returns the result."""
    part_key: FormPartKey
    section_id: UUID
    sub_section_id: UUID
    index: int = Field(default=0, ge=0)
    key: str
    value: Any = None
    section_answers: Dict[str, List[Dict[str, Any]]] = {}


class InstanceChangeRequest(BaseModel):
    part_key: FormPartKey
    section_id: UUID
    sub_section_id: UUID
    instances: List[Dict[str, Any]] = []
    index: Optional[int] = None  # required for removal
