# core_portal/models/user.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy import Enum as SAEnum
from datetime import datetime
import uuid
from typing import Optional

from core_portal.models.enums import UserRole


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True)
    )

    name: str = Field(nullable=False)
    email: str = Field(nullable=False, index=True, unique=True)
    password_hash: str = Field(nullable=False)

    role: UserRole = Field(
        sa_column=Column(SAEnum(UserRole, name="user_role"), nullable=False)
    )

    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True)
    )

    # Tenant link: counselors and OPS belong to the admin who created them
    admin_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True)
    )

    # Admin-only: shown on the public enquiry form
    company_name: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )
    enquiry_slug: Optional[str] = Field(
        default=None,
        sa_column=Column(String(60), nullable=True, unique=True, index=True)
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False)
    )
