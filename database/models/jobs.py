"""
Job Posting Models

A staffing need published by a clinic. Keyed by (clinic owner, job id); the
job id alone is unique system-wide and is the lookup path used by every
application, invitation and negotiation.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    Text,
    JSON,
    Float,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from core.config import settings
from core.lifecycle import JobStatus, JobType
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Job Posting Model ===================== #
class JobPosting(Base):
    """
    One staffing need posted by a clinic user.

    `job_type` is immutable after creation; which of the rate fields is used
    depends on it (hourly for temporary / multi-day consulting, salary range
    for permanent).
    """

    __tablename__ = settings.job_postings_table

    clinic_user_sub: Mapped[str] = mapped_column(String(128), primary_key=True)
    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    clinic_id: Mapped[str | None] = mapped_column(String(64), index=True)

    job_type: Mapped[JobType] = mapped_column(
        SQLEnum(JobType, native_enum=False, length=50),
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=50),
        nullable=False,
        default=JobStatus.ACTIVE,
        index=True,
    )

    professional_role: Mapped[str] = mapped_column(String(100), nullable=False)
    job_title: Mapped[str | None] = mapped_column(String(255))
    job_description: Mapped[str | None] = mapped_column(Text)

    # Schedule (temporary: date; multi-day consulting: dates)
    date: Mapped[str | None] = mapped_column(String(32))
    dates: Mapped[list[str] | None] = mapped_column(JSON)
    start_time: Mapped[str | None] = mapped_column(String(16))
    end_time: Mapped[str | None] = mapped_column(String(16))

    # Compensation
    hourly_rate: Mapped[float | None] = mapped_column(Float)
    salary_min: Mapped[float | None] = mapped_column(Float)
    salary_max: Mapped[float | None] = mapped_column(Float)
    employment_type: Mapped[str | None] = mapped_column(String(50))

    # Clinic snapshot taken at creation time
    clinic_name: Mapped[str | None] = mapped_column(String(255))
    clinic_address: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    accepted_professional_user_sub: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(f"ix_{settings.job_postings_table}_job_id", "job_id", unique=True),
    )

    def __repr__(self) -> str:
        return f"<JobPosting {self.job_id} {self.job_type.value} {self.status.value}>"
