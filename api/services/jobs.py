"""Job posting service functions."""

from datetime import datetime
from typing import Any, Optional
import asyncio
import logging
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.schemas.jobs import (
    CreateJobRequest,
    MultiDayConsultingJobRequest,
    PermanentJobRequest,
    TemporaryJobRequest,
)
from api.services.clinics import get_professional_summary
from api.services.lookups import (
    application_to_dict,
    decline_open_negotiations,
    get_job_or_404,
    job_to_dict,
    load_clinic_association,
    negotiation_to_dict,
)
from core.access import Action, ClinicAssociation, ensure_can_act
from core.exceptions import ConflictError, NotFoundError
from core.identity import Identity
from core.lifecycle import (
    OPEN_APPLICATION_STATUSES,
    OPEN_INVITATION_STATUSES,
    OPEN_NEGOTIATION_STATUSES,
    ApplicationStatus,
    InvitationStatus,
    JobStatus,
    JobType,
    can_transition,
    ensure_transition,
)
from database.models import (
    Clinic,
    JobApplication,
    JobInvitation,
    JobNegotiation,
    JobPosting,
)
from database.models.jobs import utcnow

logger = logging.getLogger(__name__)


async def _load_job_with_access(
    session: AsyncSession,
    identity: Identity,
    job_id: str,
    action: Action,
) -> JobPosting:
    job = await get_job_or_404(session, job_id)
    association = await load_clinic_association(session, job.clinic_id)
    ensure_can_act(
        identity,
        action,
        resource_owner_id=job.clinic_user_sub,
        clinic_association=association,
    )
    return job


# ==================== Create ===================== #
async def create_job_postings(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    request: CreateJobRequest,
) -> dict[str, Any]:
    """
    Create one posting per target clinic.

    Access to every clinic is checked before anything is written. Postings are
    then created concurrently; the first failure fails the request.
    """
    clinic_ids = request.target_clinic_ids

    async with sessions() as session:
        result = await session.execute(select(Clinic).where(Clinic.clinic_id.in_(clinic_ids)))
        clinics = {c.clinic_id: c for c in result.scalars().all()}

    missing = [cid for cid in clinic_ids if cid not in clinics]
    if missing:
        raise NotFoundError("Clinic not found", details={"clinicIds": missing})

    for clinic_id in clinic_ids:
        clinic = clinics[clinic_id]
        ensure_can_act(
            identity,
            Action.JOB_CREATE,
            clinic_association=ClinicAssociation.build(
                clinic_id=clinic.clinic_id,
                owner_sub=clinic.created_by,
                associated_users=clinic.associated_users,
            ),
        )

    jobs = await asyncio.gather(
        *(
            _create_posting(sessions, identity.sub, clinics[cid], request)
            for cid in clinic_ids
        )
    )

    logger.info(
        f"User {identity.sub} created {len(jobs)} {request.job_type} posting(s): "
        f"{[j['jobId'] for j in jobs]}"
    )
    return {
        "message": "Job posting created successfully",
        "jobIds": [j["jobId"] for j in jobs],
        "jobs": jobs,
    }


async def _create_posting(
    sessions: async_sessionmaker[AsyncSession],
    owner_sub: str,
    clinic: Clinic,
    request: CreateJobRequest,
) -> dict[str, Any]:
    now = utcnow()
    job = JobPosting(
        clinic_user_sub=owner_sub,
        job_id=str(uuid.uuid4()),
        clinic_id=clinic.clinic_id,
        job_type=JobType(request.job_type),
        status=JobStatus.ACTIVE,
        professional_role=request.professional_role.value,
        job_title=request.job_title,
        job_description=request.job_description,
        clinic_name=clinic.name,
        clinic_address=clinic.address,
        created_at=now,
        updated_at=now,
    )

    if isinstance(request, TemporaryJobRequest):
        job.date = request.date.isoformat()
    elif isinstance(request, MultiDayConsultingJobRequest):
        job.dates = [d.isoformat() for d in sorted(request.dates)]

    if isinstance(request, PermanentJobRequest):
        job.salary_min = request.salary_min
        job.salary_max = request.salary_max
        job.employment_type = request.employment_type
    else:
        job.start_time = request.start_time
        job.end_time = request.end_time
        job.hourly_rate = request.hourly_rate

    async with sessions() as session:
        session.add(job)
        await session.commit()
        return job_to_dict(job)


# ==================== Read ===================== #
async def get_job_posting(
    sessions: async_sessionmaker[AsyncSession],
    job_id: str,
) -> dict[str, Any]:
    """Any authenticated caller may read a posting."""
    async with sessions() as session:
        job = await get_job_or_404(session, job_id)
        return job_to_dict(job)


# ==================== Status ===================== #
async def update_job_status(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    job_id: str,
    new_status: JobStatus,
) -> dict[str, Any]:
    """
    Move a posting along the job transition table.

    Cancelling also closes the job's open work in the same transaction:
    applications move to `job_cancelled`, while negotiations and invitations
    move to `declined`. Nothing is left open to block a later delete.
    """
    async with sessions() as session:
        job = await _load_job_with_access(session, identity, job_id, Action.JOB_UPDATE_STATUS)

        observed = job.status
        ensure_transition("job", observed, new_status)

        now = utcnow()
        result = await session.execute(
            update(JobPosting)
            .where(JobPosting.job_id == job_id, JobPosting.status == observed)
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await session.rollback()
            raise ConflictError(
                "Job status was modified by a concurrent request",
                details={"jobId": job_id},
            )

        closed = {}
        if new_status == JobStatus.CANCELLED:
            closed = await _close_open_work(session, job_id, now)

        await session.commit()
        await session.refresh(job)

    logger.info(
        f"Job {job_id} {observed.value} -> {new_status.value} by {identity.sub}"
        + (f" (closed {closed})" if any(closed.values()) else "")
    )
    response = job_to_dict(job)
    response["previousStatus"] = observed.value
    return response


async def _close_open_work(session: AsyncSession, job_id: str, now: datetime) -> dict[str, int]:
    applications = await session.execute(
        update(JobApplication)
        .where(
            JobApplication.job_id == job_id,
            JobApplication.application_status.in_(OPEN_APPLICATION_STATUSES),
        )
        .values(application_status=ApplicationStatus.JOB_CANCELLED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    negotiations = await decline_open_negotiations(
        session, JobNegotiation.job_id == job_id, now=now
    )
    invitations = await session.execute(
        update(JobInvitation)
        .where(
            JobInvitation.job_id == job_id,
            JobInvitation.invitation_status.in_(OPEN_INVITATION_STATUSES),
        )
        .values(invitation_status=InvitationStatus.DECLINED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return {
        "applications": applications.rowcount,
        "negotiations": negotiations,
        "invitations": invitations.rowcount,
    }


async def schedule_job(
    sessions: async_sessionmaker[AsyncSession],
    job_id: str,
    observed: JobStatus,
    professional_sub: str,
) -> bool:
    """
    Move the job to `scheduled` after an acceptance.

    Dependent write: a failure is logged and never undoes the acceptance
    that triggered it.
    """
    if not can_transition("job", observed, JobStatus.SCHEDULED):
        logger.info(f"Job {job_id} is {observed.value}; not scheduling")
        return False

    try:
        async with sessions() as session:
            result = await session.execute(
                update(JobPosting)
                .where(JobPosting.job_id == job_id, JobPosting.status == observed)
                .values(
                    status=JobStatus.SCHEDULED,
                    accepted_professional_user_sub=professional_sub,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to schedule job {job_id}: {e}", exc_info=True)
        return False

    if result.rowcount != 1:
        logger.warning(f"Job {job_id} changed status concurrently; not scheduled")
        return False

    logger.info(f"Job {job_id} {observed.value} -> scheduled for {professional_sub}")
    return True


# ==================== Delete ===================== #
async def _count(session: AsyncSession, model, *conditions) -> int:
    return await session.scalar(select(func.count()).select_from(model).where(*conditions)) or 0


async def delete_job_posting(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    job_id: str,
) -> dict[str, Any]:
    """
    Delete a posting and its terminal history.

    Rejected while any application, invitation or negotiation on the job is
    still open.
    """
    async with sessions() as session:
        job = await _load_job_with_access(session, identity, job_id, Action.JOB_DELETE)

        blocking = {
            "applications": await _count(
                session,
                JobApplication,
                JobApplication.job_id == job_id,
                JobApplication.application_status.in_(OPEN_APPLICATION_STATUSES),
            ),
            "invitations": await _count(
                session,
                JobInvitation,
                JobInvitation.job_id == job_id,
                JobInvitation.invitation_status.in_(OPEN_INVITATION_STATUSES),
            ),
            "negotiations": await _count(
                session,
                JobNegotiation,
                JobNegotiation.job_id == job_id,
                JobNegotiation.negotiation_status.in_(OPEN_NEGOTIATION_STATUSES),
            ),
        }
        if any(blocking.values()):
            raise ConflictError(
                "Job has active applications, invitations or negotiations",
                details={"jobId": job_id, "active": blocking},
            )

        deleted = {}
        for name, model in (
            ("negotiations", JobNegotiation),
            ("applications", JobApplication),
            ("invitations", JobInvitation),
        ):
            result = await session.execute(
                delete(model)
                .where(model.job_id == job_id)
                .execution_options(synchronize_session=False)
            )
            deleted[name] = result.rowcount

        await session.execute(
            delete(JobPosting)
            .where(
                JobPosting.clinic_user_sub == job.clinic_user_sub,
                JobPosting.job_id == job_id,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    logger.info(f"Job {job_id} deleted by {identity.sub}: {deleted}")
    return {
        "message": "Job posting deleted successfully",
        "jobId": job_id,
        "deleted": deleted,
    }


# ==================== Applicants ===================== #
async def list_job_applications(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    job_id: str,
    status: Optional[ApplicationStatus] = None,
) -> dict[str, Any]:
    """
    Applications for a job, each with its latest negotiation and the
    applicant's profile summary.
    """
    async with sessions() as session:
        job = await _load_job_with_access(session, identity, job_id, Action.JOB_LIST_APPLICATIONS)

        query = (
            select(JobApplication)
            .where(JobApplication.job_id == job_id)
            .order_by(JobApplication.applied_at.desc())
        )
        if status:
            query = query.where(JobApplication.application_status == status)
        applications = (await session.execute(query)).scalars().all()

        negotiations = (
            await session.execute(
                select(JobNegotiation)
                .where(JobNegotiation.job_id == job_id)
                .order_by(JobNegotiation.updated_at.desc())
            )
        ).scalars().all()

    latest: dict[str, JobNegotiation] = {}
    for negotiation in negotiations:
        latest.setdefault(negotiation.application_id, negotiation)

    profiles = await asyncio.gather(
        *(get_professional_summary(sessions, a.professional_user_sub) for a in applications),
        return_exceptions=True,
    )

    items = []
    for application, profile in zip(applications, profiles):
        if isinstance(profile, Exception):
            logger.warning(
                f"Profile enrichment failed for {application.professional_user_sub}: {profile}"
            )
            profile = None
        item = application_to_dict(application)
        negotiation = latest.get(application.application_id)
        item["latestNegotiation"] = negotiation_to_dict(negotiation) if negotiation else None
        item["professional"] = profile
        items.append(item)

    return {
        "jobId": job_id,
        "jobType": job.job_type.value,
        "applications": items,
        "total": len(items),
    }
