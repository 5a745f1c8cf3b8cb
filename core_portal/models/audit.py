#core_portal/models/audit.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime

from core_portal.models.form import JSONType


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: Optional[UUID] = Field(default=None, foreign_key="users.id")
    actor_role: Optional[str] = None
    actor_name: Optional[str] = None

    action: str
    # e.g. "document", "lead_conversion", "registration"
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    remarks: Optional[str] = None

    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType))

    timestamp: datetime = Field(default_factory=datetime.utcnow)
