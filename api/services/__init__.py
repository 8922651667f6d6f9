"""
API Services Layer.

Database operations behind the HTTP routes. Every service takes the
session factory and the caller's identity explicitly.
"""

from api.services.jobs import (
    create_job_postings,
    get_job_posting,
    update_job_status,
    delete_job_posting,
    list_job_applications,
    schedule_job,
)

from api.services.applications import (
    apply_to_job,
    get_application,
    list_application_negotiations,
    accept_application,
    reject_application,
    withdraw_application,
)

from api.services.invitations import (
    send_invitations,
    list_my_invitations,
    respond_to_invitation,
)

from api.services.negotiations import (
    respond_to_negotiation,
    list_my_negotiations,
)

from api.services.notifications import notify

__all__ = [
    # Jobs
    "create_job_postings",
    "get_job_posting",
    "update_job_status",
    "delete_job_posting",
    "list_job_applications",
    "schedule_job",
    # Applications
    "apply_to_job",
    "get_application",
    "list_application_negotiations",
    "accept_application",
    "reject_application",
    "withdraw_application",
    # Invitations
    "send_invitations",
    "list_my_invitations",
    "respond_to_invitation",
    # Negotiations
    "respond_to_negotiation",
    "list_my_negotiations",
    # Notifications
    "notify",
]
