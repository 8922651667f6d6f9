"""
Shared lookups and serializers for the lifecycle services.

Lookups take an open session and raise `NotFoundError`; serializers turn
rows into the camelCase dicts returned by the API. Bulk closes write in the
caller's transaction and leave the commit to it.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.access import ClinicAssociation
from core.exceptions import NotFoundError
from core.lifecycle import OPEN_NEGOTIATION_STATUSES, NegotiationStatus
from database.models import (
    Clinic,
    JobApplication,
    JobInvitation,
    JobNegotiation,
    JobPosting,
)


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


# ==================== Lookups ===================== #
async def get_job_or_404(session: AsyncSession, job_id: str) -> JobPosting:
    """Resolve a posting by job id alone (unique across clinics)."""
    job = await session.scalar(select(JobPosting).where(JobPosting.job_id == job_id))
    if not job:
        raise NotFoundError("Job posting not found", details={"jobId": job_id})
    return job


async def get_application_or_404(session: AsyncSession, application_id: str) -> JobApplication:
    application = await session.scalar(
        select(JobApplication).where(JobApplication.application_id == application_id)
    )
    if not application:
        raise NotFoundError("Application not found", details={"applicationId": application_id})
    return application


async def get_invitation_or_404(session: AsyncSession, invitation_id: str) -> JobInvitation:
    invitation = await session.scalar(
        select(JobInvitation).where(JobInvitation.invitation_id == invitation_id)
    )
    if not invitation:
        raise NotFoundError("Invitation not found", details={"invitationId": invitation_id})
    return invitation


async def get_negotiation_or_404(
    session: AsyncSession, application_id: str, negotiation_id: str
) -> JobNegotiation:
    negotiation = await session.get(
        JobNegotiation,
        {"application_id": application_id, "negotiation_id": negotiation_id},
    )
    if not negotiation:
        raise NotFoundError(
            "Negotiation not found",
            details={"applicationId": application_id, "negotiationId": negotiation_id},
        )
    return negotiation


async def get_existing_application(
    session: AsyncSession, job_id: str, professional_user_sub: str
) -> Optional[JobApplication]:
    return await session.get(
        JobApplication,
        {"job_id": job_id, "professional_user_sub": professional_user_sub},
    )


async def load_clinic_association(
    session: AsyncSession, clinic_id: Optional[str]
) -> Optional[ClinicAssociation]:
    """Association for the clinic, or None when the clinic row is unknown."""
    if not clinic_id:
        return None
    clinic = await session.get(Clinic, clinic_id)
    if not clinic:
        return None
    return ClinicAssociation.build(
        clinic_id=clinic.clinic_id,
        owner_sub=clinic.created_by,
        associated_users=clinic.associated_users,
    )


async def decline_open_negotiations(session: AsyncSession, *conditions, now: datetime) -> int:
    """
    Close every pending or countered negotiation matching `conditions`.

    Runs inside the caller's transaction; the caller commits.
    """
    result = await session.execute(
        update(JobNegotiation)
        .where(
            JobNegotiation.negotiation_status.in_(OPEN_NEGOTIATION_STATUSES),
            *conditions,
        )
        .values(negotiation_status=NegotiationStatus.DECLINED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# ==================== Serializers ===================== #
def job_to_dict(job: JobPosting) -> dict[str, Any]:
    return {
        "jobId": job.job_id,
        "clinicUserSub": job.clinic_user_sub,
        "clinicId": job.clinic_id,
        "jobType": enum_value(job.job_type),
        "status": enum_value(job.status),
        "professionalRole": job.professional_role,
        "jobTitle": job.job_title,
        "jobDescription": job.job_description,
        "date": job.date,
        "dates": job.dates,
        "startTime": job.start_time,
        "endTime": job.end_time,
        "hourlyRate": job.hourly_rate,
        "salaryMin": job.salary_min,
        "salaryMax": job.salary_max,
        "employmentType": job.employment_type,
        "clinicName": job.clinic_name,
        "clinicAddress": job.clinic_address,
        "acceptedProfessionalUserSub": job.accepted_professional_user_sub,
        "createdAt": iso(job.created_at),
        "updatedAt": iso(job.updated_at),
    }


def job_summary(job: JobPosting) -> dict[str, Any]:
    """Short form echoed by the apply endpoint."""
    return {
        "title": job.job_title,
        "type": enum_value(job.job_type),
        "role": job.professional_role,
        "hourlyRate": job.hourly_rate,
        "salaryMin": job.salary_min,
        "salaryMax": job.salary_max,
        "date": job.date,
        "dates": job.dates,
    }


def application_to_dict(application: JobApplication) -> dict[str, Any]:
    return {
        "applicationId": application.application_id,
        "jobId": application.job_id,
        "professionalUserSub": application.professional_user_sub,
        "clinicId": application.clinic_id,
        "clinicUserSub": application.clinic_user_sub,
        "applicationStatus": enum_value(application.application_status),
        "applicationMessage": application.application_message,
        "proposedRate": application.proposed_rate,
        "proposedSalaryMin": application.proposed_salary_min,
        "proposedSalaryMax": application.proposed_salary_max,
        "availability": application.availability,
        "startDate": application.start_date,
        "notes": application.notes,
        "availabilityNotes": application.availability_notes,
        "acceptedHourlyRate": application.accepted_hourly_rate,
        "acceptedRate": application.accepted_rate,
        "fromInvitation": application.from_invitation,
        "invitationId": application.invitation_id,
        "invitationResponseDate": iso(application.invitation_response_date),
        "appliedAt": iso(application.applied_at),
        "updatedAt": iso(application.updated_at),
    }


def negotiation_to_dict(negotiation: JobNegotiation) -> dict[str, Any]:
    return {
        "negotiationId": negotiation.negotiation_id,
        "applicationId": negotiation.application_id,
        "jobId": negotiation.job_id,
        "clinicId": negotiation.clinic_id,
        "fromType": enum_value(negotiation.from_type),
        "fromUserSub": negotiation.from_user_sub,
        "toUserSub": negotiation.to_user_sub,
        "negotiationStatus": enum_value(negotiation.negotiation_status),
        "message": negotiation.message,
        "proposedHourlyRate": negotiation.proposed_hourly_rate,
        "proposedSalaryMin": negotiation.proposed_salary_min,
        "proposedSalaryMax": negotiation.proposed_salary_max,
        "clinicCounterHourlyRate": negotiation.clinic_counter_hourly_rate,
        "professionalCounterHourlyRate": negotiation.professional_counter_hourly_rate,
        "counterSalaryMin": negotiation.counter_salary_min,
        "counterSalaryMax": negotiation.counter_salary_max,
        "clinicResponse": enum_value(negotiation.clinic_response),
        "clinicMessage": negotiation.clinic_message,
        "clinicRespondedAt": iso(negotiation.clinic_responded_at),
        "professionalResponse": enum_value(negotiation.professional_response),
        "professionalMessage": negotiation.professional_message,
        "professionalRespondedAt": iso(negotiation.professional_responded_at),
        "agreedHourlyRate": negotiation.agreed_hourly_rate,
        "counterRound": negotiation.counter_round,
        "createdAt": iso(negotiation.created_at),
        "updatedAt": iso(negotiation.updated_at),
    }


def invitation_to_dict(invitation: JobInvitation) -> dict[str, Any]:
    return {
        "invitationId": invitation.invitation_id,
        "jobId": invitation.job_id,
        "professionalUserSub": invitation.professional_user_sub,
        "clinicUserSub": invitation.clinic_user_sub,
        "clinicId": invitation.clinic_id,
        "invitationStatus": enum_value(invitation.invitation_status),
        "invitationMessage": invitation.invitation_message,
        "urgency": invitation.urgency,
        "customNotes": invitation.custom_notes,
        "responseMessage": invitation.response_message,
        "respondedAt": iso(invitation.responded_at),
        "sentAt": iso(invitation.sent_at),
        "updatedAt": iso(invitation.updated_at),
    }
