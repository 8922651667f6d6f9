"""
Job offer / negotiation lifecycle.

Closed status enumerations for every entity taking part in the
offer/counter-offer workflow, the transition tables that every mutation is
validated against, and the proposal-shape rules shared by the apply,
invitation-response and negotiation-response entry points.
"""

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Mapping, Optional, TypeVar

from core.exceptions import BadRequestError, ConflictError, expected_vs_provided


# ==================== Enums ===================== #
class JobType(str, PyEnum):
    """Kind of staffing need. Immutable once a posting exists."""

    TEMPORARY = "temporary"
    PERMANENT = "permanent"
    MULTI_DAY_CONSULTING = "multi_day_consulting"


class JobStatus(str, PyEnum):
    ACTIVE = "active"
    SCHEDULED = "scheduled"
    ACTION_NEEDED = "action_needed"
    COMPLETED = "completed"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class ApplicationStatus(str, PyEnum):
    PENDING = "pending"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    SCHEDULED = "scheduled"
    DECLINED = "declined"
    WITHDRAWN = "withdrawn"
    JOB_CANCELLED = "job_cancelled"


class NegotiationStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTER_OFFER = "counter_offer"


class InvitationStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    NEGOTIATING = "negotiating"


class Actor(str, PyEnum):
    """Party performing a negotiation response."""

    CLINIC = "clinic"
    PROFESSIONAL = "professional"


class ProfessionalRole(str, PyEnum):
    ASSOCIATE_DENTIST = "associate_dentist"
    DENTAL_HYGIENIST = "dental_hygienist"
    DENTAL_ASSISTANT = "dental_assistant"
    EXPANDED_FUNCTIONS_DA = "expanded_functions_da"
    DUAL_ROLE_FRONT_DA = "dual_role_front_da"
    PATIENT_COORDINATOR_FRONT = "patient_coordinator_front"
    TREATMENT_COORDINATOR_FRONT = "treatment_coordinator_front"


def roles_compatible(job_role: Optional[str], professional_role: Optional[str]) -> bool:
    """A dual front/DA role on either side matches anything."""
    dual = ProfessionalRole.DUAL_ROLE_FRONT_DA.value
    if job_role == dual or professional_role == dual:
        return True
    return job_role == professional_role


# ==================== Transition tables ===================== #
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.ACTIVE: frozenset({
        JobStatus.SCHEDULED, JobStatus.ACTION_NEEDED, JobStatus.COMPLETED,
        JobStatus.INACTIVE, JobStatus.CANCELLED,
    }),
    JobStatus.ACTION_NEEDED: frozenset({
        JobStatus.ACTIVE, JobStatus.SCHEDULED, JobStatus.COMPLETED,
        JobStatus.INACTIVE, JobStatus.CANCELLED,
    }),
    JobStatus.SCHEDULED: frozenset({
        JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.INACTIVE,
    }),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.INACTIVE: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({
        ApplicationStatus.NEGOTIATING, ApplicationStatus.ACCEPTED,
        ApplicationStatus.SCHEDULED, ApplicationStatus.DECLINED,
        ApplicationStatus.WITHDRAWN, ApplicationStatus.JOB_CANCELLED,
    }),
    # accepted: a negotiating invitation accepted at the posted terms
    ApplicationStatus.NEGOTIATING: frozenset({
        ApplicationStatus.NEGOTIATING, ApplicationStatus.ACCEPTED,
        ApplicationStatus.SCHEDULED, ApplicationStatus.DECLINED,
        ApplicationStatus.WITHDRAWN, ApplicationStatus.JOB_CANCELLED,
    }),
    ApplicationStatus.ACCEPTED: frozenset({
        ApplicationStatus.SCHEDULED, ApplicationStatus.WITHDRAWN,
        ApplicationStatus.JOB_CANCELLED,
    }),
    ApplicationStatus.SCHEDULED: frozenset({
        ApplicationStatus.WITHDRAWN, ApplicationStatus.JOB_CANCELLED,
    }),
    ApplicationStatus.DECLINED: frozenset(),
    ApplicationStatus.WITHDRAWN: frozenset(),
    ApplicationStatus.JOB_CANCELLED: frozenset(),
}

NEGOTIATION_TRANSITIONS: dict[NegotiationStatus, frozenset[NegotiationStatus]] = {
    NegotiationStatus.PENDING: frozenset({
        NegotiationStatus.ACCEPTED, NegotiationStatus.DECLINED,
        NegotiationStatus.COUNTER_OFFER,
    }),
    # counter_offer is revisited on the same row by either party
    NegotiationStatus.COUNTER_OFFER: frozenset({
        NegotiationStatus.ACCEPTED, NegotiationStatus.DECLINED,
        NegotiationStatus.COUNTER_OFFER,
    }),
    NegotiationStatus.ACCEPTED: frozenset(),
    NegotiationStatus.DECLINED: frozenset(),
}

INVITATION_TRANSITIONS: dict[InvitationStatus, frozenset[InvitationStatus]] = {
    InvitationStatus.PENDING: frozenset({
        InvitationStatus.ACCEPTED, InvitationStatus.DECLINED,
        InvitationStatus.NEGOTIATING,
    }),
    InvitationStatus.NEGOTIATING: frozenset({
        InvitationStatus.ACCEPTED, InvitationStatus.DECLINED,
        InvitationStatus.NEGOTIATING,
    }),
    InvitationStatus.ACCEPTED: frozenset(),
    InvitationStatus.DECLINED: frozenset(),
}

TRANSITIONS: dict[str, Mapping] = {
    "job": JOB_TRANSITIONS,
    "application": APPLICATION_TRANSITIONS,
    "negotiation": NEGOTIATION_TRANSITIONS,
    "invitation": INVITATION_TRANSITIONS,
}

# Application statuses that still hold a claim on a job
OPEN_APPLICATION_STATUSES = frozenset({
    ApplicationStatus.PENDING, ApplicationStatus.NEGOTIATING,
    ApplicationStatus.ACCEPTED, ApplicationStatus.SCHEDULED,
})
OPEN_INVITATION_STATUSES = frozenset({InvitationStatus.PENDING, InvitationStatus.NEGOTIATING})
OPEN_NEGOTIATION_STATUSES = frozenset({NegotiationStatus.PENDING, NegotiationStatus.COUNTER_OFFER})

NEGOTIATION_RESPONSE_TO_APPLICATION_STATUS: dict[NegotiationStatus, ApplicationStatus] = {
    NegotiationStatus.ACCEPTED: ApplicationStatus.SCHEDULED,
    NegotiationStatus.DECLINED: ApplicationStatus.DECLINED,
    NegotiationStatus.COUNTER_OFFER: ApplicationStatus.NEGOTIATING,
}

INVITATION_NEXT_STEPS: dict[InvitationStatus, str] = {
    InvitationStatus.ACCEPTED: "Job has been scheduled. Wait for clinic confirmation.",
    InvitationStatus.NEGOTIATING: "Negotiation started. Clinic will review your proposal.",
    InvitationStatus.DECLINED: "Invitation declined. Thank you for your response.",
}

NEGOTIATION_NEXT_STEPS: dict[NegotiationStatus, str] = {
    NegotiationStatus.ACCEPTED: "Job has been scheduled with negotiated terms.",
    NegotiationStatus.COUNTER_OFFER: "Counter-offer sent; the other party will review.",
    NegotiationStatus.DECLINED: "Negotiation declined.",
}

S = TypeVar("S", bound=PyEnum)


def is_terminal(entity: str, status: PyEnum) -> bool:
    return not TRANSITIONS[entity].get(status)


def can_transition(entity: str, current: S, target: S) -> bool:
    return target in TRANSITIONS[entity].get(current, frozenset())


def ensure_transition(entity: str, current: S, target: S) -> None:
    """Raise ConflictError unless `current -> target` is in the entity's table."""
    if can_transition(entity, current, target):
        return

    if is_terminal(entity, current):
        message = f"{entity.capitalize()} has already been {current.value}"
    else:
        message = (
            f"Cannot move {entity} from '{current.value}' to '{target.value}'"
        )
    allowed = sorted(s.value for s in TRANSITIONS[entity].get(current, ()))
    raise ConflictError(
        message,
        details={"currentStatus": current.value, "requestedStatus": target.value, "allowed": allowed},
    )


# ==================== Proposal shape ===================== #
@dataclass(frozen=True)
class Proposal:
    """Validated rate terms: exactly one of hourly rate or salary range."""

    hourly_rate: Optional[float] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None

    @property
    def is_salary(self) -> bool:
        return self.salary_min is not None


def is_permanent(job_type: Optional[str]) -> bool:
    return (job_type or "").lower() == JobType.PERMANENT.value


def validate_proposal(
    job_type: JobType | str,
    hourly_rate: Optional[float],
    salary_min: Optional[float],
    salary_max: Optional[float],
    hourly_field: str = "proposedHourlyRate",
    salary_fields: tuple[str, str] = ("proposedSalaryMin", "proposedSalaryMax"),
) -> Proposal:
    """
    Check a rate proposal against the job type.

    Permanent jobs negotiate a salary range (both bounds, min < max) and never an
    hourly rate; every other job type negotiates an hourly rate and never a
    salary range.
    """
    min_field, max_field = salary_fields
    job_type_value = job_type.value if isinstance(job_type, JobType) else str(job_type)

    if is_permanent(job_type_value):
        if hourly_rate is not None:
            raise BadRequestError(
                f"{hourly_field} is not allowed for permanent job negotiations",
                details=expected_vs_provided(
                    [min_field, max_field], {hourly_field: hourly_rate}
                ),
            )
        if salary_min is None or salary_max is None:
            raise BadRequestError(
                f"{min_field} and {max_field} are required for permanent job negotiations",
                details=expected_vs_provided(
                    [min_field, max_field],
                    {min_field: salary_min, max_field: salary_max},
                ),
            )
        if salary_max <= salary_min:
            raise BadRequestError(
                f"{max_field} must be greater than {min_field}",
                details=expected_vs_provided(
                    f"{min_field} < {max_field}",
                    {min_field: salary_min, max_field: salary_max},
                ),
            )
        return Proposal(salary_min=float(salary_min), salary_max=float(salary_max))

    if salary_min is not None or salary_max is not None:
        raise BadRequestError(
            f"{min_field}/{max_field} are only allowed for permanent jobs",
            details=expected_vs_provided(
                [hourly_field], {min_field: salary_min, max_field: salary_max}
            ),
        )
    if hourly_rate is None:
        raise BadRequestError(
            f"{hourly_field} is required for hourly job negotiations",
            details=expected_vs_provided([hourly_field], {hourly_field: None}),
        )
    return Proposal(hourly_rate=float(hourly_rate))
