"""
Invitation Models

A clinic's targeted offer of a job to one professional. Immutable once
accepted or declined.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    Text,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from database.models.jobs import utcnow
from core.config import settings
from core.lifecycle import InvitationStatus
from datetime import datetime


class JobInvitation(Base):
    __tablename__ = settings.job_invitations_table

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    professional_user_sub: Mapped[str] = mapped_column(String(128), primary_key=True)

    invitation_id: Mapped[str] = mapped_column(String(64), nullable=False)

    clinic_user_sub: Mapped[str | None] = mapped_column(String(128))
    clinic_id: Mapped[str | None] = mapped_column(String(64))

    invitation_status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(InvitationStatus, native_enum=False, length=50),
        nullable=False,
        default=InvitationStatus.PENDING,
        index=True,
    )

    invitation_message: Mapped[str | None] = mapped_column(Text)
    urgency: Mapped[str | None] = mapped_column(String(20))
    custom_notes: Mapped[str | None] = mapped_column(Text)

    response_message: Mapped[str | None] = mapped_column(Text)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(
            f"ix_{settings.job_invitations_table}_invitation_id",
            "invitation_id",
            unique=True,
        ),
        Index(
            f"ix_{settings.job_invitations_table}_professional",
            "professional_user_sub",
        ),
    )

    def __repr__(self) -> str:
        return f"<JobInvitation {self.invitation_id} {self.invitation_status.value}>"
