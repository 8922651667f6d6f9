"""Application and negotiation-response request schemas."""

from typing import Literal, Optional

from pydantic import Field

from api.schemas.common import CamelModel


class ApplyToJobRequest(CamelModel):
    """
    Body of an application.

    `proposedRate` opens a negotiation on hourly jobs; permanent jobs take
    `proposedSalaryMin`/`proposedSalaryMax` instead.
    """

    job_id: Optional[str] = Field(None, description="Required when not given in the path")
    message: Optional[str] = Field(None, max_length=2000)
    proposed_rate: Optional[float] = Field(None, gt=0)
    proposed_salary_min: Optional[float] = Field(None, gt=0)
    proposed_salary_max: Optional[float] = Field(None, gt=0)
    availability: Optional[str] = Field(None, max_length=255)
    start_date: Optional[str] = Field(None, max_length=32)
    notes: Optional[str] = Field(None, max_length=2000)

    @property
    def has_proposal(self) -> bool:
        return any(
            v is not None
            for v in (self.proposed_rate, self.proposed_salary_min, self.proposed_salary_max)
        )


class NegotiationResponseRequest(CamelModel):
    response: Literal["accepted", "declined", "counter_offer"]
    message: Optional[str] = Field(None, max_length=2000)
    counter_salary_min: Optional[float] = Field(None, gt=0)
    counter_salary_max: Optional[float] = Field(None, gt=0)
    clinic_counter_hourly_rate: Optional[float] = Field(None, gt=0)
    professional_counter_hourly_rate: Optional[float] = Field(None, gt=0)

    @property
    def has_counter_terms(self) -> bool:
        return any(
            v is not None
            for v in (
                self.counter_salary_min,
                self.counter_salary_max,
                self.clinic_counter_hourly_rate,
                self.professional_counter_hourly_rate,
            )
        )
