from database.models.jobs import JobPosting
from database.models.applications import JobApplication
from database.models.negotiations import JobNegotiation
from database.models.invitations import JobInvitation
from database.models.clinics import Clinic, ProfessionalProfile

__all__ = [
    "JobPosting",
    "JobApplication",
    "JobNegotiation",
    "JobInvitation",
    "Clinic",
    "ProfessionalProfile",
]
