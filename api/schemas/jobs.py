"""Job posting request schemas."""

import datetime as dt
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, model_validator

from api.schemas.common import CamelModel
from core.lifecycle import JobStatus, ProfessionalRole

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class JobPostingBase(CamelModel):
    clinic_id: Optional[str] = Field(None, min_length=1, description="Single clinic")
    clinic_ids: Optional[list[str]] = Field(
        None, min_length=1, description="Post the same job to several clinics"
    )
    professional_role: ProfessionalRole
    job_title: Optional[str] = Field(None, max_length=255)
    job_description: Optional[str] = None

    @model_validator(mode="after")
    def check_clinic_target(self):
        if bool(self.clinic_id) == bool(self.clinic_ids):
            raise ValueError("Provide exactly one of clinicId or clinicIds")
        if self.clinic_ids and len(set(self.clinic_ids)) != len(self.clinic_ids):
            raise ValueError("clinicIds must be unique")
        return self

    @property
    def target_clinic_ids(self) -> list[str]:
        return list(self.clinic_ids) if self.clinic_ids else [self.clinic_id]


class HourlyShiftMixin(CamelModel):
    start_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    hourly_rate: float = Field(..., gt=0)

    @model_validator(mode="after")
    def check_hours(self):
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class TemporaryJobRequest(JobPostingBase, HourlyShiftMixin):
    job_type: Literal["temporary"]
    date: dt.date


class MultiDayConsultingJobRequest(JobPostingBase, HourlyShiftMixin):
    job_type: Literal["multi_day_consulting"]
    dates: list[dt.date] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_dates(self):
        if len(set(self.dates)) != len(self.dates):
            raise ValueError("dates must be unique")
        return self


class PermanentJobRequest(JobPostingBase):
    job_type: Literal["permanent"]
    salary_min: float = Field(..., gt=0)
    salary_max: float = Field(..., gt=0)
    employment_type: Literal["full_time", "part_time"]

    @model_validator(mode="after")
    def check_salary_range(self):
        if self.salary_max <= self.salary_min:
            raise ValueError("salaryMax must be greater than salaryMin")
        return self


CreateJobRequest = Annotated[
    Union[TemporaryJobRequest, MultiDayConsultingJobRequest, PermanentJobRequest],
    Field(discriminator="job_type"),
]


class UpdateJobStatusRequest(CamelModel):
    status: JobStatus
