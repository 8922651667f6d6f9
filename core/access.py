"""
Access policy for clinic and professional actions.

Pure decision functions, no I/O. Callers load the job posting / clinic row
first and pass the relevant owner ids in.

Rules:
1. The Root group bypasses every check
2. Clinic-scoped actions need a clinic role that grants the action AND an
   association with the clinic (owner of the posting, clinic creator, or a
   listed associated user)
3. Professional-scoped actions need the caller to be the professional on the
   application/invitation; no group elevation applies
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Set

from core.exceptions import ForbiddenError
from core.identity import Identity, ROOT_GROUP, normalize_groups

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Actions checked by the policy."""

    # Clinic-scoped
    JOB_CREATE = "job:create"
    JOB_READ = "job:read"
    JOB_UPDATE_STATUS = "job:update_status"
    JOB_DELETE = "job:delete"
    JOB_LIST_APPLICATIONS = "job:list_applications"
    INVITATION_CREATE = "invitation:create"
    APPLICATION_ACCEPT = "application:accept"
    APPLICATION_REJECT = "application:reject"

    # Professional-scoped
    APPLICATION_CREATE = "application:create"
    APPLICATION_READ = "application:read"
    INVITATION_RESPOND = "invitation:respond"
    NEGOTIATION_READ = "negotiation:read"
    APPLICATION_WITHDRAW = "application:withdraw"


CLINIC_ACTIONS: frozenset[Action] = frozenset({
    Action.JOB_CREATE,
    Action.JOB_READ,
    Action.JOB_UPDATE_STATUS,
    Action.JOB_DELETE,
    Action.JOB_LIST_APPLICATIONS,
    Action.INVITATION_CREATE,
    Action.APPLICATION_ACCEPT,
    Action.APPLICATION_REJECT,
})

PROFESSIONAL_ACTIONS: frozenset[Action] = frozenset({
    Action.APPLICATION_CREATE,
    Action.APPLICATION_READ,
    Action.INVITATION_RESPOND,
    Action.NEGOTIATION_READ,
    Action.APPLICATION_WITHDRAW,
})

# Clinic role to action mapping
CLINIC_ROLE_ACTIONS: dict[str, Set[Action]] = {
    "clinicadmin": set(CLINIC_ACTIONS),
    "clinicmanager": set(CLINIC_ACTIONS),
    "clinicviewer": {
        # Read only
        Action.JOB_READ,
        Action.JOB_LIST_APPLICATIONS,
    },
}


@dataclass(frozen=True)
class ClinicAssociation:
    """Who may act on behalf of one clinic."""

    clinic_id: str
    owner_sub: Optional[str] = None
    associated_users: frozenset[str] = field(default_factory=frozenset)

    def includes(self, subject_id: str) -> bool:
        return subject_id == self.owner_sub or subject_id in self.associated_users

    @classmethod
    def build(
        cls,
        clinic_id: str,
        owner_sub: Optional[str] = None,
        associated_users: Optional[Iterable[str]] = None,
    ) -> "ClinicAssociation":
        return cls(
            clinic_id=clinic_id,
            owner_sub=owner_sub,
            associated_users=frozenset(associated_users or ()),
        )


def _role_grants(groups: frozenset[str], action: Action) -> bool:
    return any(action in CLINIC_ROLE_ACTIONS.get(group, ()) for group in groups)


def can_act(
    subject_id: str,
    groups: Iterable[str],
    action: Action,
    resource_owner_id: Optional[str] = None,
    clinic_association: Optional[ClinicAssociation] = None,
) -> bool:
    """
    Decide whether `subject_id` may perform `action`.

    Args:
        subject_id: Caller's subject id
        groups: Caller's groups, normalised or not
        action: Action being attempted
        resource_owner_id: For clinic actions the posting owner (`clinicUserSub`);
            for professional actions the professional on the application/invitation
        clinic_association: Clinic the resource belongs to (clinic actions only)

    Returns:
        True if permitted
    """
    normalized = normalize_groups(groups)

    if ROOT_GROUP in normalized:
        return True

    if action in PROFESSIONAL_ACTIONS:
        return resource_owner_id is not None and subject_id == resource_owner_id

    if not _role_grants(normalized, action):
        return False

    if resource_owner_id is not None and subject_id == resource_owner_id:
        return True

    return clinic_association is not None and clinic_association.includes(subject_id)


def ensure_can_act(
    identity: Identity,
    action: Action,
    resource_owner_id: Optional[str] = None,
    clinic_association: Optional[ClinicAssociation] = None,
) -> None:
    """Raise ForbiddenError unless the identity may perform the action."""
    if can_act(
        identity.sub,
        identity.groups,
        action,
        resource_owner_id=resource_owner_id,
        clinic_association=clinic_association,
    ):
        return

    logger.warning(
        f"Access denied: user {identity.sub} action {action.value} "
        f"owner={resource_owner_id} "
        f"clinic={clinic_association.clinic_id if clinic_association else None}"
    )
    if action in PROFESSIONAL_ACTIONS:
        raise ForbiddenError("You can only act on your own applications and invitations")
    raise ForbiddenError(
        "Access denied: clinic role and association required",
        details={"action": action.value},
    )


def has_clinic_role(identity: Identity) -> bool:
    """True when the caller carries any clinic role (or Root)."""
    return identity.is_root or any(g in CLINIC_ROLE_ACTIONS for g in identity.groups)
