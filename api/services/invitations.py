"""
Invitation service functions.

Clinics invite professionals to active postings; the professional responds
once with accepted, negotiating or declined. The response's new rows and
the invitation status change commit together, and the invitation update is
conditional on the status that was read, so concurrent responses cannot
both succeed.
"""

from datetime import datetime
from typing import Any, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.schemas.invitations import InvitationResponseRequest, SendInvitationsRequest
from api.services.applications import duplicate_application_error, new_id
from api.services.lookups import (
    decline_open_negotiations,
    get_existing_application,
    get_invitation_or_404,
    get_job_or_404,
    invitation_to_dict,
    iso,
    load_clinic_association,
)
from api.services.jobs import schedule_job
from api.services.notifications import notify
from core.access import Action, ensure_can_act
from core.config import settings
from core.exceptions import BadRequestError, ConflictError, InternalError
from core.identity import Identity
from core.lifecycle import (
    INVITATION_NEXT_STEPS,
    Actor,
    ApplicationStatus,
    InvitationStatus,
    JobStatus,
    NegotiationStatus,
    Proposal,
    ensure_transition,
    is_terminal,
    roles_compatible,
    validate_proposal,
)
from database.models import (
    JobApplication,
    JobInvitation,
    JobNegotiation,
    JobPosting,
    ProfessionalProfile,
)
from database.models.jobs import utcnow

logger = logging.getLogger(__name__)

RESPONSE_MESSAGES = {
    InvitationStatus.ACCEPTED: "Invitation accepted successfully",
    InvitationStatus.NEGOTIATING: "Negotiation started successfully",
    InvitationStatus.DECLINED: "Invitation declined",
}


# ==================== Sending ===================== #
async def send_invitations(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    job_id: str,
    request: SendInvitationsRequest,
) -> dict[str, Any]:
    """
    Invite professionals to an active job posting.

    The whole batch is rejected when any id is unknown or has an incompatible
    role. Otherwise each invitation is an insert-only write and
    per-professional failures are reported in `errors` without failing the
    batch.
    """
    subs = request.professional_user_subs
    if len(subs) > settings.max_invitations_per_request:
        raise BadRequestError(
            f"At most {settings.max_invitations_per_request} professionals per request",
            details={"expected": settings.max_invitations_per_request, "provided": len(subs)},
        )

    async with sessions() as session:
        job = await get_job_or_404(session, job_id)
        association = await load_clinic_association(session, job.clinic_id)
        ensure_can_act(
            identity,
            Action.INVITATION_CREATE,
            resource_owner_id=job.clinic_user_sub,
            clinic_association=association,
        )

        if job.status != JobStatus.ACTIVE:
            raise ConflictError(
                "Invitations can only be sent for active jobs",
                details={"jobId": job_id, "status": job.status.value},
            )

        result = await session.execute(
            select(ProfessionalProfile).where(ProfessionalProfile.user_sub.in_(subs))
        )
        profiles = {p.user_sub: p for p in result.scalars().all()}

    invalid = [sub for sub in subs if sub not in profiles]
    if invalid:
        raise BadRequestError(
            "Some professional ids do not exist",
            details={"invalidProfessionalIds": invalid},
        )

    mismatches = [
        {"professionalUserSub": sub, "role": profiles[sub].role}
        for sub in subs
        if not roles_compatible(job.professional_role, profiles[sub].role)
    ]
    if mismatches:
        raise BadRequestError(
            f"Professional role must match the job role '{job.professional_role}'",
            details={"expected": job.professional_role, "mismatches": mismatches},
        )

    successful: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []

    for sub in subs:
        try:
            invitation = await _insert_invitation(sessions, job, sub, request)
        except ConflictError as e:
            errors.append({"professionalUserSub": sub, "error": e.message})
            continue

        successful.append({
            "invitationId": invitation.invitation_id,
            "professionalUserSub": sub,
            "professionalName": profiles[sub].full_name,
            "sentAt": iso(invitation.sent_at),
        })
        notify(
            "invitation.sent",
            sub,
            {
                "invitationId": invitation.invitation_id,
                "jobId": job_id,
                "jobTitle": job.job_title,
                "urgency": request.urgency,
            },
        )

    logger.info(
        f"Invitations for job {job_id}: {len(successful)} sent, {len(errors)} failed"
    )

    return {
        "message": f"Sent {len(successful)} invitation(s)",
        "jobId": job_id,
        "totalInvited": len(successful),
        "successful": successful,
        "errors": errors,
    }


async def _insert_invitation(
    sessions: async_sessionmaker[AsyncSession],
    job: JobPosting,
    professional_sub: str,
    request: SendInvitationsRequest,
) -> JobInvitation:
    async with sessions() as session:
        existing = await get_existing_application(session, job.job_id, professional_sub)
        if existing:
            raise ConflictError("Professional has already applied to this job")

        now = utcnow()
        invitation = JobInvitation(
            job_id=job.job_id,
            professional_user_sub=professional_sub,
            invitation_id=new_id(),
            clinic_user_sub=job.clinic_user_sub,
            clinic_id=job.clinic_id,
            invitation_status=InvitationStatus.PENDING,
            invitation_message=request.invitation_message,
            urgency=request.urgency,
            custom_notes=request.custom_notes,
            sent_at=now,
            updated_at=now,
        )
        session.add(invitation)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ConflictError("Professional has already been invited to this job")

    return invitation


# ==================== Listing ===================== #
async def list_my_invitations(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    status: Optional[str] = None,
) -> dict[str, Any]:
    """Invitations addressed to the caller, newest first, with job context."""
    query = (
        select(JobInvitation, JobPosting)
        .outerjoin(JobPosting, JobPosting.job_id == JobInvitation.job_id)
        .where(JobInvitation.professional_user_sub == identity.sub)
        .order_by(JobInvitation.sent_at.desc())
    )
    if status:
        try:
            query = query.where(JobInvitation.invitation_status == InvitationStatus(status))
        except ValueError:
            raise BadRequestError(
                f"Invalid status '{status}'",
                details={"expected": [s.value for s in InvitationStatus], "provided": status},
            )

    async with sessions() as session:
        rows = (await session.execute(query)).all()

    invitations = []
    for invitation, job in rows:
        item = invitation_to_dict(invitation)
        item["job"] = (
            {
                "jobTitle": job.job_title,
                "jobType": job.job_type.value,
                "status": job.status.value,
                "clinicName": job.clinic_name,
                "hourlyRate": job.hourly_rate,
                "salaryMin": job.salary_min,
                "salaryMax": job.salary_max,
            }
            if job
            else None
        )
        invitations.append(item)

    return {"invitations": invitations, "total": len(invitations)}


# ==================== Responding ===================== #
INVITATION_TO_APPLICATION_STATUS = {
    InvitationStatus.ACCEPTED: ApplicationStatus.ACCEPTED,
    InvitationStatus.NEGOTIATING: ApplicationStatus.NEGOTIATING,
    InvitationStatus.DECLINED: ApplicationStatus.DECLINED,
}


async def _update_invitation_application(
    session: AsyncSession,
    application: JobApplication,
    response: InvitationStatus,
    proposal: Optional[Proposal],
    request: InvitationResponseRequest,
    now: datetime,
) -> None:
    """
    Carry a follow-up response into the application an earlier
    `negotiating` response created.

    Open negotiations on the application are closed first; a new proposal
    gets a fresh negotiation row from the caller. A decline leaves an
    application that is already closed untouched.
    """
    observed = application.application_status
    target = INVITATION_TO_APPLICATION_STATUS[response]
    if response == InvitationStatus.DECLINED and is_terminal("application", observed):
        return
    ensure_transition("application", observed, target)

    await decline_open_negotiations(
        session, JobNegotiation.application_id == application.application_id, now=now
    )

    values = {
        "application_status": target,
        "invitation_response_date": now,
        "updated_at": now,
    }
    if request.message:
        values["application_message"] = request.message
    if proposal:
        values.update(
            proposed_rate=proposal.hourly_rate,
            proposed_salary_min=proposal.salary_min,
            proposed_salary_max=proposal.salary_max,
        )

    result = await session.execute(
        update(JobApplication)
        .where(
            JobApplication.job_id == application.job_id,
            JobApplication.professional_user_sub == application.professional_user_sub,
            JobApplication.application_status == observed,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise ConflictError(
            "Application was modified by a concurrent request",
            details={"applicationId": application.application_id},
        )


async def respond_to_invitation(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    invitation_id: str,
    request: InvitationResponseRequest,
) -> dict[str, Any]:
    """
    Record the professional's response to an invitation.

    accepted: application created as `accepted`, job moved to `scheduled`
    negotiating: application `negotiating` plus an opening negotiation
    declined: only the invitation changes

    Once an invitation is `negotiating` it already has an application; a
    later response updates that application instead of creating one, and a
    decline closes it along with its open negotiations.

    Raises:
        NotFoundError: invitation or job missing
        ForbiddenError: caller is not the invited professional
        ConflictError: invitation already accepted/declined, or raced
        InternalError: invitation row lacks its job/clinic references
    """
    response = InvitationStatus(request.response)

    async with sessions() as session:
        invitation = await get_invitation_or_404(session, invitation_id)
        ensure_can_act(
            identity,
            Action.INVITATION_RESPOND,
            resource_owner_id=invitation.professional_user_sub,
        )

        observed = invitation.invitation_status
        if is_terminal("invitation", observed):
            raise ConflictError(
                f"Invitation has already been {observed.value}",
                details={"invitationId": invitation_id, "invitationStatus": observed.value},
            )
        ensure_transition("invitation", observed, response)

        if not (invitation.job_id and invitation.clinic_user_sub and invitation.clinic_id):
            raise InternalError(
                "Invitation is missing job or clinic references",
                details={
                    "invitationId": invitation_id,
                    "jobId": invitation.job_id,
                    "clinicUserSub": invitation.clinic_user_sub,
                    "clinicId": invitation.clinic_id,
                },
            )

        job = await get_job_or_404(session, invitation.job_id)
        professional_sub = invitation.professional_user_sub

        proposal = None
        if response == InvitationStatus.NEGOTIATING:
            proposal = validate_proposal(
                job.job_type,
                request.proposed_hourly_rate,
                request.proposed_salary_min,
                request.proposed_salary_max,
            )

        if response != InvitationStatus.DECLINED and job.status in (
            JobStatus.COMPLETED, JobStatus.INACTIVE, JobStatus.CANCELLED
        ):
            raise ConflictError(
                "Job is no longer available",
                details={"jobId": job.job_id, "status": job.status.value},
            )

        # A negotiating invitation already owns the application it created
        existing = await get_existing_application(session, job.job_id, professional_sub)
        if existing and not (existing.from_invitation and existing.invitation_id == invitation_id):
            if response != InvitationStatus.DECLINED:
                raise duplicate_application_error(existing)
            existing = None

        now = utcnow()
        application = None
        negotiation = None

        if existing:
            application = existing
            await _update_invitation_application(session, existing, response, proposal, request, now)
        elif response != InvitationStatus.DECLINED:
            application = JobApplication(
                job_id=job.job_id,
                professional_user_sub=professional_sub,
                application_id=new_id(),
                clinic_id=invitation.clinic_id,
                clinic_user_sub=invitation.clinic_user_sub,
                application_status=(
                    ApplicationStatus.ACCEPTED
                    if response == InvitationStatus.ACCEPTED
                    else ApplicationStatus.NEGOTIATING
                ),
                application_message=request.message,
                proposed_rate=proposal.hourly_rate if proposal else None,
                proposed_salary_min=proposal.salary_min if proposal else None,
                proposed_salary_max=proposal.salary_max if proposal else None,
                availability_notes=request.availability_notes,
                from_invitation=True,
                invitation_id=invitation_id,
                invitation_response_date=now,
                applied_at=now,
                updated_at=now,
            )
            session.add(application)

        if proposal:
            negotiation = JobNegotiation(
                application_id=application.application_id,
                negotiation_id=new_id(),
                job_id=job.job_id,
                clinic_id=invitation.clinic_id,
                from_type=Actor.PROFESSIONAL,
                from_user_sub=professional_sub,
                to_user_sub=invitation.clinic_user_sub,
                negotiation_status=NegotiationStatus.PENDING,
                message=request.counter_proposal_message or request.message,
                proposed_hourly_rate=proposal.hourly_rate,
                proposed_salary_min=proposal.salary_min,
                proposed_salary_max=proposal.salary_max,
                counter_round=0,
                created_at=now,
                updated_at=now,
            )
            session.add(negotiation)

        try:
            updated = await session.execute(
                update(JobInvitation)
                .where(
                    JobInvitation.job_id == invitation.job_id,
                    JobInvitation.professional_user_sub == professional_sub,
                    JobInvitation.invitation_status == observed,
                )
                .values(
                    invitation_status=response,
                    responded_at=now,
                    response_message=request.message,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount != 1:
                await session.rollback()
                raise ConflictError(
                    "Invitation was modified by a concurrent request",
                    details={"invitationId": invitation_id},
                )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ConflictError(
                "An application for this job already exists",
                details={"jobId": job.job_id},
            )

        job_ref = job.job_id
        job_type = job.job_type.value
        job_status = job.status
        clinic_user_sub = invitation.clinic_user_sub

    logger.info(
        f"Invitation {invitation_id} {observed.value} -> {response.value} "
        f"by {professional_sub}"
    )

    if response == InvitationStatus.ACCEPTED:
        await schedule_job(sessions, job_ref, job_status, professional_sub)

    notify(
        "invitation.responded",
        clinic_user_sub,
        {
            "invitationId": invitation_id,
            "jobId": job_ref,
            "professionalUserSub": professional_sub,
            "response": response.value,
            "applicationId": application.application_id if application else None,
        },
    )

    result = {
        "message": RESPONSE_MESSAGES[response],
        "invitationId": invitation_id,
        "jobId": job_ref,
        "response": response.value,
        "applicationId": application.application_id if application else None,
        "respondedAt": iso(now),
        "jobType": job_type,
        "nextSteps": INVITATION_NEXT_STEPS[response],
    }
    if negotiation:
        result["negotiationId"] = negotiation.negotiation_id
    return result

