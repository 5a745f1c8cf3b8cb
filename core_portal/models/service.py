from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from typing import Optional
import uuid


class Service(SQLModel, table=True):
    __tablename__ = "services"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True)
    )
    name: str = Field(sa_column=Column(String, nullable=False))
    slug: str = Field(sa_column=Column(String, nullable=False, unique=True, index=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    short_description: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    learn_more_url: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))


class ServiceFormPart(SQLModel, table=True):
    """Which form parts a service uses, and in what order."""
    __tablename__ = "service_form_parts"
    __table_args__ = (UniqueConstraint("service_id", "part_id", name="uq_service_part"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True)
    )
    service_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("services.id"), nullable=False, index=True)
    )
    part_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("form_parts.id"), nullable=False)
    )
    order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    is_required: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
