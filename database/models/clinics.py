"""
Clinic and professional profile models.

Read by the lifecycle services for access checks, posting snapshots and
applicant enrichment. Their own CRUD lives outside this service.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, JSON
from database.engine import Base
from database.models.jobs import utcnow
from core.config import settings
from datetime import datetime
from typing import Any


class Clinic(Base):
    __tablename__ = settings.clinics_table

    clinic_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    created_by: Mapped[str | None] = mapped_column(String(128), index=True)
    associated_users: Mapped[list[str] | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class ProfessionalProfile(Base):
    __tablename__ = settings.professional_profiles_table

    user_sub: Mapped[str] = mapped_column(String(128), primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
