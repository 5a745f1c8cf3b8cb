from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, ForeignKey, String, Uuid
from datetime import datetime
from typing import Optional
import uuid


class Student(SQLModel, table=True):
    __tablename__ = "students"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True)
    )

    user_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=False, unique=True)
    )

    name: str = Field(sa_column=Column(String, nullable=False))
    email: str = Field(sa_column=Column(String, nullable=False, unique=True, index=True))
    mobile_number: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )

    # Tenant + ownership
    admin_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    )
    counselor_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    )

    # Set when the account was created from a lead conversion
    converted_from_lead_id: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid, nullable=True)
    )
    conversion_date: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False)
    )
