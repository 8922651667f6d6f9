"""
Application Models

One professional's claim on one job posting. The (job, professional) pair is
the primary key, so a second insert for the same pair is rejected by the
database. `application_id` is the external reference used by negotiations.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    Text,
    Float,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from database.models.jobs import utcnow
from core.config import settings
from core.lifecycle import ApplicationStatus
from datetime import datetime


# ==================== Application Model ===================== #
class JobApplication(Base):
    """Application of a professional to a job posting."""

    __tablename__ = settings.job_applications_table

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    professional_user_sub: Mapped[str] = mapped_column(String(128), primary_key=True)

    application_id: Mapped[str] = mapped_column(String(64), nullable=False)

    clinic_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    clinic_user_sub: Mapped[str | None] = mapped_column(String(128))

    application_status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, native_enum=False, length=50),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )

    application_message: Mapped[str | None] = mapped_column(Text)
    availability: Mapped[str | None] = mapped_column(String(255))
    start_date: Mapped[str | None] = mapped_column(String(32))
    notes: Mapped[str | None] = mapped_column(Text)
    availability_notes: Mapped[str | None] = mapped_column(Text)

    # Terms proposed by the professional when the application was created
    proposed_rate: Mapped[float | None] = mapped_column(Float)
    proposed_salary_min: Mapped[float | None] = mapped_column(Float)
    proposed_salary_max: Mapped[float | None] = mapped_column(Float)

    # Mirrored from the accepted negotiation; both fields carry the same value
    accepted_hourly_rate: Mapped[float | None] = mapped_column(Float)
    accepted_rate: Mapped[float | None] = mapped_column(Float)

    from_invitation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invitation_id: Mapped[str | None] = mapped_column(String(64))
    invitation_response_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(
            f"ix_{settings.job_applications_table}_application_id",
            "application_id",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<JobApplication {self.application_id} {self.application_status.value}>"
