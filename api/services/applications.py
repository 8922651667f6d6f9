"""
Application service functions.

Apply-to-job entry point, application reads, and the decisions that close
an application: clinic accept or reject, professional withdraw. An
application and its opening negotiation (when the professional proposes
terms) are written in one transaction; the (job, professional) primary key
makes the insert exactly-once under concurrent submissions.
"""

from datetime import datetime
from typing import Any, Optional
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.schemas.applications import ApplyToJobRequest
from api.services.clinics import get_clinic_summary
from api.services.jobs import schedule_job
from api.services.lookups import (
    application_to_dict,
    decline_open_negotiations,
    get_application_or_404,
    get_existing_application,
    get_job_or_404,
    iso,
    job_summary,
    load_clinic_association,
    negotiation_to_dict,
)
from api.services.notifications import notify
from core.access import Action, can_act, ensure_can_act
from core.exceptions import BadRequestError, ConflictError, ForbiddenError
from core.identity import Identity
from core.lifecycle import (
    OPEN_INVITATION_STATUSES,
    Actor,
    ApplicationStatus,
    InvitationStatus,
    JobStatus,
    NegotiationStatus,
    can_transition,
    ensure_transition,
    is_permanent,
    validate_proposal,
)
from database.models import JobApplication, JobInvitation, JobNegotiation, JobPosting
from database.models.jobs import utcnow

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def duplicate_application_error(existing: JobApplication) -> ConflictError:
    return ConflictError(
        "You have already applied to this job",
        details={
            "applicationId": existing.application_id,
            "applicationStatus": existing.application_status.value,
        },
    )


async def apply_to_job(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    job_id: Optional[str],
    request: ApplyToJobRequest,
) -> dict[str, Any]:
    """
    Create an application for the calling professional.

    With proposed terms the application starts `negotiating` and an opening
    negotiation row is written alongside it; otherwise it starts `pending`.

    Raises:
        BadRequestError: jobId missing, posting without clinicId, or bad proposal shape
        NotFoundError: job does not exist
        ConflictError: job not active, or an application already exists
    """
    job_id = job_id or request.job_id
    if not job_id:
        raise BadRequestError(
            "jobId is required",
            details={"expected": ["jobId"], "provided": {"jobId": None}},
        )

    professional_sub = identity.sub
    ensure_can_act(identity, Action.APPLICATION_CREATE, resource_owner_id=professional_sub)

    async with sessions() as session:
        job = await get_job_or_404(session, job_id)

        if job.status != JobStatus.ACTIVE:
            raise ConflictError(
                "Job is not accepting applications",
                details={"jobId": job_id, "status": job.status.value},
            )

        if not job.clinic_id:
            raise BadRequestError(
                "Job posting is missing clinicId",
                details={"jobId": job_id},
            )

        proposal = None
        if request.has_proposal:
            proposal = validate_proposal(
                job.job_type,
                request.proposed_rate,
                request.proposed_salary_min,
                request.proposed_salary_max,
                hourly_field="proposedRate",
            )

        existing = await get_existing_application(session, job_id, professional_sub)
        if existing:
            raise duplicate_application_error(existing)

        status = ApplicationStatus.NEGOTIATING if proposal else ApplicationStatus.PENDING
        now = utcnow()

        application = JobApplication(
            job_id=job_id,
            professional_user_sub=professional_sub,
            application_id=new_id(),
            clinic_id=job.clinic_id,
            clinic_user_sub=job.clinic_user_sub,
            application_status=status,
            application_message=request.message,
            proposed_rate=proposal.hourly_rate if proposal else None,
            proposed_salary_min=proposal.salary_min if proposal else None,
            proposed_salary_max=proposal.salary_max if proposal else None,
            availability=request.availability,
            start_date=request.start_date,
            notes=request.notes,
            from_invitation=False,
            applied_at=now,
            updated_at=now,
        )
        session.add(application)

        negotiation = None
        if proposal:
            negotiation = JobNegotiation(
                application_id=application.application_id,
                negotiation_id=new_id(),
                job_id=job_id,
                clinic_id=job.clinic_id,
                from_type=Actor.PROFESSIONAL,
                from_user_sub=professional_sub,
                to_user_sub=job.clinic_user_sub,
                negotiation_status=NegotiationStatus.PENDING,
                message=request.message,
                proposed_hourly_rate=proposal.hourly_rate,
                proposed_salary_min=proposal.salary_min,
                proposed_salary_max=proposal.salary_max,
                counter_round=0,
                created_at=now,
                updated_at=now,
            )
            session.add(negotiation)

        try:
            await session.commit()
        except IntegrityError:
            # Lost the race against a concurrent submission for the same pair
            await session.rollback()
            logger.info(f"Concurrent duplicate application for job {job_id} by {professional_sub}")
            raise ConflictError("You have already applied to this job", details={"jobId": job_id})

        logger.info(
            f"Application {application.application_id} created for job {job_id} "
            f"by {professional_sub} with status {status.value}"
        )
        summary = job_summary(job)
        clinic_user_sub = job.clinic_user_sub
        clinic_id = job.clinic_id

    event_payload = {
        "applicationId": application.application_id,
        "jobId": job_id,
        "professionalUserSub": professional_sub,
        "applicationStatus": status.value,
    }
    notify("application.submitted", clinic_user_sub, event_payload)
    if negotiation:
        notify(
            "negotiation.started",
            clinic_user_sub,
            {**event_payload, "negotiationId": negotiation.negotiation_id},
        )

    result = {
        "message": "Application submitted successfully",
        "applicationId": application.application_id,
        "jobId": job_id,
        "applicationStatus": status.value,
        "appliedAt": iso(application.applied_at),
        "job": summary,
        "clinic": await get_clinic_summary(sessions, clinic_id),
    }
    if negotiation:
        result["negotiationId"] = negotiation.negotiation_id
        result["proposedRate"] = proposal.hourly_rate
        result["proposedSalaryMin"] = proposal.salary_min
        result["proposedSalaryMax"] = proposal.salary_max
    return result


async def ensure_application_access(
    session: AsyncSession,
    identity: Identity,
    application: JobApplication,
) -> Optional[JobPosting]:
    """
    The professional who applied, or a clinic user with access to the job.

    Returns the job posting (None if it no longer exists).
    """
    job = await session.scalar(
        select(JobPosting).where(JobPosting.job_id == application.job_id)
    )

    if can_act(
        identity.sub,
        identity.groups,
        Action.APPLICATION_READ,
        resource_owner_id=application.professional_user_sub,
    ):
        return job

    if job is not None:
        association = await load_clinic_association(session, job.clinic_id)
        if can_act(
            identity.sub,
            identity.groups,
            Action.JOB_LIST_APPLICATIONS,
            resource_owner_id=job.clinic_user_sub,
            clinic_association=association,
        ):
            return job

    logger.warning(
        f"Access denied: user {identity.sub} on application {application.application_id}"
    )
    raise ForbiddenError("Access denied to this application")


async def get_application(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    application_id: str,
) -> dict[str, Any]:
    """Get one application, with the job status for context."""
    async with sessions() as session:
        application = await get_application_or_404(session, application_id)
        job = await ensure_application_access(session, identity, application)

        result = application_to_dict(application)
        result["jobStatus"] = job.status.value if job else None
        result["jobType"] = job.job_type.value if job else None
        return result


async def list_application_negotiations(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    application_id: str,
) -> dict[str, Any]:
    """Negotiation history of an application, newest first."""
    async with sessions() as session:
        application = await get_application_or_404(session, application_id)
        await ensure_application_access(session, identity, application)

        result = await session.execute(
            select(JobNegotiation)
            .where(JobNegotiation.application_id == application_id)
            .order_by(JobNegotiation.created_at.desc())
        )
        negotiations = result.scalars().all()

        return {
            "applicationId": application_id,
            "negotiations": [negotiation_to_dict(n) for n in negotiations],
            "total": len(negotiations),
        }


# ==================== Decisions ===================== #
async def _close_application(
    session: AsyncSession,
    application: JobApplication,
    target: ApplicationStatus,
    now: datetime,
    **values,
) -> None:
    """
    Move the application off its observed status and close what hangs off it.

    Open negotiations on the application are declined, as is the invitation
    it came from while that is still open. The caller commits.
    """
    observed = application.application_status
    result = await session.execute(
        update(JobApplication)
        .where(
            JobApplication.job_id == application.job_id,
            JobApplication.professional_user_sub == application.professional_user_sub,
            JobApplication.application_status == observed,
        )
        .values(application_status=target, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise ConflictError(
            "Application was modified by a concurrent request",
            details={"applicationId": application.application_id},
        )

    await decline_open_negotiations(
        session, JobNegotiation.application_id == application.application_id, now=now
    )
    if application.invitation_id:
        await session.execute(
            update(JobInvitation)
            .where(
                JobInvitation.invitation_id == application.invitation_id,
                JobInvitation.invitation_status.in_(OPEN_INVITATION_STATUSES),
            )
            .values(invitation_status=InvitationStatus.DECLINED, updated_at=now)
            .execution_options(synchronize_session=False)
        )


async def _load_for_clinic(
    session: AsyncSession,
    identity: Identity,
    application_id: str,
    action: Action,
) -> tuple[JobApplication, JobPosting]:
    application = await get_application_or_404(session, application_id)
    job = await get_job_or_404(session, application.job_id)
    association = await load_clinic_association(session, job.clinic_id)
    ensure_can_act(
        identity,
        action,
        resource_owner_id=job.clinic_user_sub,
        clinic_association=association,
    )
    return application, job


async def accept_application(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    application_id: str,
) -> dict[str, Any]:
    """
    Clinic accepts an applicant at the posted terms.

    The application moves to `scheduled` and any negotiation still open on
    it is declined. The job is then scheduled for the professional as a
    dependent write.

    Raises:
        ForbiddenError: caller has no clinic access to the job
        ConflictError: job can no longer be scheduled, application closed, or raced
    """
    async with sessions() as session:
        application, job = await _load_for_clinic(
            session, identity, application_id, Action.APPLICATION_ACCEPT
        )

        if not can_transition("job", job.status, JobStatus.SCHEDULED):
            raise ConflictError(
                "Job can no longer be scheduled",
                details={"jobId": job.job_id, "status": job.status.value},
            )
        observed = application.application_status
        ensure_transition("application", observed, ApplicationStatus.SCHEDULED)

        now = utcnow()
        values = {}
        if not is_permanent(job.job_type.value) and job.hourly_rate is not None:
            values = {"accepted_hourly_rate": job.hourly_rate, "accepted_rate": job.hourly_rate}
        await _close_application(session, application, ApplicationStatus.SCHEDULED, now, **values)
        await session.commit()

        professional_sub = application.professional_user_sub
        job_id = job.job_id
        job_status = job.status

    logger.info(
        f"Application {application_id} {observed.value} -> scheduled by {identity.sub}"
    )
    scheduled = await schedule_job(sessions, job_id, job_status, professional_sub)

    notify(
        "application.accepted",
        professional_sub,
        {"applicationId": application_id, "jobId": job_id, "applicationStatus": "scheduled"},
    )
    return {
        "message": "Professional accepted and status updated to scheduled",
        "applicationId": application_id,
        "jobId": job_id,
        "professionalUserSub": professional_sub,
        "applicationStatus": ApplicationStatus.SCHEDULED.value,
        "jobScheduled": scheduled,
    }


async def reject_application(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    application_id: str,
) -> dict[str, Any]:
    """Clinic turns an applicant down; the application ends `declined`."""
    async with sessions() as session:
        application, job = await _load_for_clinic(
            session, identity, application_id, Action.APPLICATION_REJECT
        )

        observed = application.application_status
        ensure_transition("application", observed, ApplicationStatus.DECLINED)

        await _close_application(session, application, ApplicationStatus.DECLINED, utcnow())
        await session.commit()

        professional_sub = application.professional_user_sub
        job_id = job.job_id

    logger.info(f"Application {application_id} {observed.value} -> declined by {identity.sub}")
    notify(
        "application.rejected",
        professional_sub,
        {"applicationId": application_id, "jobId": job_id, "applicationStatus": "declined"},
    )
    return {
        "message": "Job application has been rejected successfully",
        "applicationId": application_id,
        "jobId": job_id,
        "professionalUserSub": professional_sub,
        "applicationStatus": ApplicationStatus.DECLINED.value,
    }


async def withdraw_application(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    application_id: str,
) -> dict[str, Any]:
    """
    The applicant withdraws their own application.

    Accepted and scheduled applications are refused; the professional has to
    go through the clinic for those.
    """
    async with sessions() as session:
        application = await get_application_or_404(session, application_id)
        ensure_can_act(
            identity,
            Action.APPLICATION_WITHDRAW,
            resource_owner_id=application.professional_user_sub,
        )

        observed = application.application_status
        if observed in (ApplicationStatus.ACCEPTED, ApplicationStatus.SCHEDULED):
            raise BadRequestError(
                "Cannot withdraw an accepted job application. Please contact the clinic directly.",
                details={"applicationId": application_id, "applicationStatus": observed.value},
            )
        ensure_transition("application", observed, ApplicationStatus.WITHDRAWN)

        now = utcnow()
        await _close_application(session, application, ApplicationStatus.WITHDRAWN, now)
        await session.commit()

        job_id = application.job_id
        clinic_user_sub = application.clinic_user_sub
        professional_sub = application.professional_user_sub

    logger.info(f"Application {application_id} {observed.value} -> withdrawn by {identity.sub}")
    notify(
        "application.withdrawn",
        clinic_user_sub,
        {
            "applicationId": application_id,
            "jobId": job_id,
            "professionalUserSub": professional_sub,
        },
    )
    return {
        "message": "Job application withdrawn successfully",
        "applicationId": application_id,
        "jobId": job_id,
        "withdrawnAt": iso(now),
    }
