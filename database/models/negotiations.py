"""
Negotiation Models

Rate / salary counter-proposals tied to exactly one application. Either
party may respond; each side's response fields are kept separately and
never overwrite the other side's.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Text,
    Float,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from database.models.jobs import utcnow
from core.config import settings
from core.lifecycle import Actor, NegotiationStatus
from datetime import datetime


# ==================== Negotiation Model ===================== #
class JobNegotiation(Base):
    __tablename__ = settings.job_negotiations_table

    application_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    negotiation_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    job_id: Mapped[str] = mapped_column(String(64), nullable=False)
    clinic_id: Mapped[str | None] = mapped_column(String(64))

    from_type: Mapped[Actor] = mapped_column(
        SQLEnum(Actor, native_enum=False, length=50),
        nullable=False,
    )
    from_user_sub: Mapped[str | None] = mapped_column(String(128))
    to_user_sub: Mapped[str | None] = mapped_column(String(128))

    negotiation_status: Mapped[NegotiationStatus] = mapped_column(
        SQLEnum(NegotiationStatus, native_enum=False, length=50),
        nullable=False,
        default=NegotiationStatus.PENDING,
        index=True,
    )
    message: Mapped[str | None] = mapped_column(Text)

    # Opening proposal: hourly rate XOR salary range, by job type
    proposed_hourly_rate: Mapped[float | None] = mapped_column(Float)
    proposed_salary_min: Mapped[float | None] = mapped_column(Float)
    proposed_salary_max: Mapped[float | None] = mapped_column(Float)

    # Counter terms
    clinic_counter_hourly_rate: Mapped[float | None] = mapped_column(Float)
    professional_counter_hourly_rate: Mapped[float | None] = mapped_column(Float)
    counter_salary_min: Mapped[float | None] = mapped_column(Float)
    counter_salary_max: Mapped[float | None] = mapped_column(Float)

    # Per-actor responses
    clinic_response: Mapped[NegotiationStatus | None] = mapped_column(
        SQLEnum(NegotiationStatus, native_enum=False, length=50)
    )
    clinic_message: Mapped[str | None] = mapped_column(Text)
    clinic_responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    professional_response: Mapped[NegotiationStatus | None] = mapped_column(
        SQLEnum(NegotiationStatus, native_enum=False, length=50)
    )
    professional_message: Mapped[str | None] = mapped_column(Text)
    professional_responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    agreed_hourly_rate: Mapped[float | None] = mapped_column(Float)

    # Incremented on every counter-offer; guards concurrent responses
    counter_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(f"ix_{settings.job_negotiations_table}_job_id", "job_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<JobNegotiation {self.negotiation_id} "
            f"{self.negotiation_status.value} round={self.counter_round}>"
        )
