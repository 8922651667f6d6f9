"""
Negotiation service functions.

A negotiation is one mutable row per application that both parties answer
in turn. Each response is validated against the negotiation transition
table, and the negotiation update plus the mirrored application update are
committed together. The negotiation update is conditional on the observed
status and counter round, so of two concurrent responses only one wins.
"""

from typing import Any, Optional
import logging

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.schemas.applications import NegotiationResponseRequest
from api.services.jobs import schedule_job
from api.services.lookups import (
    get_application_or_404,
    get_job_or_404,
    get_negotiation_or_404,
    iso,
    negotiation_to_dict,
)
from api.services.notifications import notify
from core.exceptions import BadRequestError, ConflictError, ForbiddenError, expected_vs_provided
from core.identity import Identity
from core.lifecycle import (
    NEGOTIATION_NEXT_STEPS,
    NEGOTIATION_RESPONSE_TO_APPLICATION_STATUS,
    Actor,
    JobType,
    NegotiationStatus,
    ensure_transition,
    is_permanent,
    is_terminal,
    validate_proposal,
)
from database.models import JobApplication, JobNegotiation, JobPosting
from database.models.jobs import utcnow

logger = logging.getLogger(__name__)

HOURLY_COUNTER_FIELD = {
    Actor.CLINIC: ("clinic_counter_hourly_rate", "clinicCounterHourlyRate"),
    Actor.PROFESSIONAL: ("professional_counter_hourly_rate", "professionalCounterHourlyRate"),
}


def resolve_actor(
    identity: Identity,
    clinic_user_sub: Optional[str],
    professional_user_sub: Optional[str],
) -> Actor:
    """The responding party, by identity match only."""
    if identity.sub == clinic_user_sub:
        return Actor.CLINIC
    if identity.sub == professional_user_sub:
        return Actor.PROFESSIONAL
    logger.warning(f"Access denied: user {identity.sub} is not a party to this negotiation")
    raise ForbiddenError("You are not a party to this negotiation")


def _counter_terms(
    actor: Actor,
    job_type: JobType,
    request: NegotiationResponseRequest,
) -> dict[str, Any]:
    """Validated counter fields to write, keyed by column name."""
    own_attr, own_field = HOURLY_COUNTER_FIELD[actor]
    other_actor = Actor.PROFESSIONAL if actor == Actor.CLINIC else Actor.CLINIC
    other_attr, other_field = HOURLY_COUNTER_FIELD[other_actor]

    other_value = getattr(request, other_attr)
    if other_value is not None:
        raise BadRequestError(
            f"{other_field} cannot be set by the {actor.value}",
            details=expected_vs_provided([own_field], {other_field: other_value}),
        )

    proposal = validate_proposal(
        job_type,
        getattr(request, own_attr),
        request.counter_salary_min,
        request.counter_salary_max,
        hourly_field=own_field,
        salary_fields=("counterSalaryMin", "counterSalaryMax"),
    )
    if proposal.is_salary:
        return {
            "counter_salary_min": proposal.salary_min,
            "counter_salary_max": proposal.salary_max,
        }
    return {own_attr: proposal.hourly_rate}


def _agreed_hourly_rate(
    actor: Actor,
    negotiation: JobNegotiation,
    application: JobApplication,
) -> float:
    """
    The single rate both sides end up with.

    A professional accepts the clinic's counter. A clinic accepts the
    professional's counter, falling back to the rate proposed on the
    application.
    """
    if actor == Actor.PROFESSIONAL:
        if negotiation.clinic_counter_hourly_rate is None:
            raise BadRequestError(
                "No clinic counter-offer to accept",
                details=expected_vs_provided(
                    ["clinicCounterHourlyRate"], {"clinicCounterHourlyRate": None}
                ),
            )
        return negotiation.clinic_counter_hourly_rate

    if negotiation.professional_counter_hourly_rate is not None:
        return negotiation.professional_counter_hourly_rate
    if application.proposed_rate is not None:
        return application.proposed_rate
    raise BadRequestError(
        "No proposed rate to accept",
        details=expected_vs_provided(
            ["professionalCounterHourlyRate", "proposedRate"],
            {"professionalCounterHourlyRate": None, "proposedRate": None},
        ),
    )


def _response_body(
    negotiation: JobNegotiation,
    application: JobApplication,
    actor: Actor,
    response: NegotiationStatus,
    responded_at: Optional[str],
    message: str,
) -> dict[str, Any]:
    body = {
        "message": message,
        "negotiationId": negotiation.negotiation_id,
        "applicationId": negotiation.application_id,
        "jobId": negotiation.job_id,
        "actor": actor.value,
        "response": response.value,
        "negotiationStatus": negotiation.negotiation_status.value,
        "applicationStatus": application.application_status.value,
        "counterRound": negotiation.counter_round,
        "respondedAt": responded_at,
        "nextSteps": NEGOTIATION_NEXT_STEPS[response],
    }
    if application.accepted_hourly_rate is not None:
        body["acceptedHourlyRate"] = application.accepted_hourly_rate
    return body


async def respond_to_negotiation(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    application_id: str,
    negotiation_id: str,
    request: NegotiationResponseRequest,
) -> dict[str, Any]:
    """
    Accept, decline or counter a negotiation as the clinic or the professional.

    Repeating the response a negotiation already ended with is a no-op that
    returns the current state.

    Raises:
        NotFoundError: negotiation, job or application missing
        ForbiddenError: caller is neither the job owner nor the applicant
        BadRequestError: counter terms of the wrong shape, or nothing to accept
        ConflictError: illegal transition, or a concurrent response won
    """
    response = NegotiationStatus(request.response)

    async with sessions() as session:
        negotiation = await get_negotiation_or_404(session, application_id, negotiation_id)
        job = await get_job_or_404(session, negotiation.job_id)
        application = await get_application_or_404(session, application_id)

        actor = resolve_actor(identity, job.clinic_user_sub, application.professional_user_sub)
        observed = negotiation.negotiation_status
        observed_round = negotiation.counter_round

        if is_terminal("negotiation", observed) and observed == response:
            logger.info(
                f"Negotiation {negotiation_id} already {observed.value}; "
                f"repeat response by {actor.value} ignored"
            )
            responded_at = (
                negotiation.clinic_responded_at
                if actor == Actor.CLINIC
                else negotiation.professional_responded_at
            )
            return _response_body(
                negotiation,
                application,
                actor,
                response,
                iso(responded_at),
                f"Negotiation already {observed.value}",
            )

        ensure_transition("negotiation", observed, response)

        if response == NegotiationStatus.COUNTER_OFFER:
            counter = _counter_terms(actor, job.job_type, request)
        elif request.has_counter_terms:
            raise BadRequestError(
                "Counter terms are only allowed with a counter_offer response",
                details=expected_vs_provided(
                    ["response=counter_offer"], {"response": response.value}
                ),
            )
        else:
            counter = {}

        agreed_rate = None
        if response == NegotiationStatus.ACCEPTED and not is_permanent(job.job_type.value):
            agreed_rate = _agreed_hourly_rate(actor, negotiation, application)

        application_target = NEGOTIATION_RESPONSE_TO_APPLICATION_STATUS[response]
        application_observed = application.application_status
        ensure_transition("application", application_observed, application_target)

        now = utcnow()
        prefix = actor.value
        values: dict[str, Any] = {
            "negotiation_status": response,
            f"{prefix}_response": response,
            f"{prefix}_message": request.message,
            f"{prefix}_responded_at": now,
            "updated_at": now,
            **counter,
        }
        if response == NegotiationStatus.COUNTER_OFFER:
            values["counter_round"] = observed_round + 1
        if agreed_rate is not None:
            values["agreed_hourly_rate"] = agreed_rate

        result = await session.execute(
            update(JobNegotiation)
            .where(
                JobNegotiation.application_id == application_id,
                JobNegotiation.negotiation_id == negotiation_id,
                JobNegotiation.negotiation_status == observed,
                JobNegotiation.counter_round == observed_round,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await session.rollback()
            raise ConflictError(
                "Negotiation was modified by a concurrent response",
                details={"negotiationId": negotiation_id},
            )

        application_values: dict[str, Any] = {
            "application_status": application_target,
            "updated_at": now,
        }
        if agreed_rate is not None:
            application_values["accepted_hourly_rate"] = agreed_rate
            application_values["accepted_rate"] = agreed_rate

        # Keyed by the applicant, never by the caller
        result = await session.execute(
            update(JobApplication)
            .where(
                JobApplication.job_id == application.job_id,
                JobApplication.professional_user_sub == application.professional_user_sub,
                JobApplication.application_status == application_observed,
            )
            .values(**application_values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await session.rollback()
            raise ConflictError(
                "Application was modified by a concurrent request",
                details={"applicationId": application_id},
            )

        await session.commit()
        await session.refresh(negotiation)
        await session.refresh(application)

        job_id = job.job_id
        job_status = job.status
        clinic_user_sub = job.clinic_user_sub
        professional_sub = application.professional_user_sub

    logger.info(
        f"Negotiation {negotiation_id} {observed.value} -> {response.value} by {actor.value} "
        f"{identity.sub}; application {application_id} -> {application_target.value}"
    )

    if response == NegotiationStatus.ACCEPTED:
        await schedule_job(sessions, job_id, job_status, professional_sub)

    recipient = professional_sub if actor == Actor.CLINIC else clinic_user_sub
    notify(
        "negotiation.responded",
        recipient,
        {
            "negotiationId": negotiation_id,
            "applicationId": application_id,
            "jobId": job_id,
            "actor": actor.value,
            "response": response.value,
            "agreedHourlyRate": agreed_rate,
        },
    )

    messages = {
        NegotiationStatus.ACCEPTED: "Negotiation accepted",
        NegotiationStatus.DECLINED: "Negotiation declined",
        NegotiationStatus.COUNTER_OFFER: "Counter-offer sent",
    }
    return _response_body(
        negotiation, application, actor, response, iso(now), messages[response]
    )


async def list_my_negotiations(
    sessions: async_sessionmaker[AsyncSession],
    identity: Identity,
    status: Optional[str] = None,
) -> dict[str, Any]:
    """Negotiations where the caller is the applicant or the job owner, newest first."""
    query = (
        select(JobNegotiation, JobApplication.professional_user_sub, JobPosting.clinic_user_sub)
        .join(JobApplication, JobApplication.application_id == JobNegotiation.application_id)
        .outerjoin(JobPosting, JobPosting.job_id == JobNegotiation.job_id)
        .where(
            or_(
                JobApplication.professional_user_sub == identity.sub,
                JobPosting.clinic_user_sub == identity.sub,
            )
        )
        .order_by(JobNegotiation.updated_at.desc())
    )
    if status:
        try:
            query = query.where(JobNegotiation.negotiation_status == NegotiationStatus(status))
        except ValueError:
            raise BadRequestError(
                f"Invalid status '{status}'",
                details={"expected": [s.value for s in NegotiationStatus], "provided": status},
            )

    async with sessions() as session:
        rows = (await session.execute(query)).all()

    negotiations = []
    for negotiation, professional_sub, clinic_sub in rows:
        item = negotiation_to_dict(negotiation)
        item["role"] = (
            Actor.CLINIC.value if clinic_sub == identity.sub else Actor.PROFESSIONAL.value
        )
        negotiations.append(item)

    return {"negotiations": negotiations, "total": len(negotiations)}
