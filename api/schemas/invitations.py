"""Invitation request schemas."""

from typing import Literal, Optional

from pydantic import Field, field_validator

from api.schemas.common import CamelModel


class SendInvitationsRequest(CamelModel):
    professional_user_subs: list[str] = Field(..., min_length=1, max_length=50)
    invitation_message: Optional[str] = Field(None, max_length=2000)
    urgency: Literal["low", "medium", "high"] = "medium"
    custom_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("professional_user_subs")
    @classmethod
    def dedupe_subs(cls, v: list[str]) -> list[str]:
        """Drop blanks and duplicates, keeping order."""
        seen: dict[str, None] = {}
        for sub in v:
            sub = sub.strip()
            if sub:
                seen.setdefault(sub, None)
        if not seen:
            raise ValueError("professionalUserSubs must contain at least one id")
        return list(seen)


class InvitationResponseRequest(CamelModel):
    response: Literal["accepted", "declined", "negotiating"]
    message: Optional[str] = Field(None, max_length=2000)
    proposed_hourly_rate: Optional[float] = Field(None, gt=0)
    proposed_salary_min: Optional[float] = Field(None, gt=0)
    proposed_salary_max: Optional[float] = Field(None, gt=0)
    availability_notes: Optional[str] = Field(None, max_length=2000)
    counter_proposal_message: Optional[str] = Field(None, max_length=2000)
