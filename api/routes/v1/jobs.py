"""
Job posting endpoints.

Creating, reading, status changes and deletion of postings, plus the
per-job apply, applicant listing and invitation endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_session_factory, require_identity
from api.schemas.applications import ApplyToJobRequest
from api.schemas.common import ERROR_RESPONSES
from api.schemas.invitations import SendInvitationsRequest
from api.schemas.jobs import CreateJobRequest, UpdateJobStatusRequest
from api.services import applications as application_service
from api.services import invitations as invitation_service
from api.services import jobs as job_service
from core.identity import Identity
from core.lifecycle import ApplicationStatus

router = APIRouter(prefix="/jobs", tags=["Jobs"], responses=ERROR_RESPONSES)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Job Posting",
    description="Post a temporary, multi-day consulting or permanent job to one or more clinics.",
)
async def create_job(
    request: CreateJobRequest,
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await job_service.create_job_postings(sessions, identity, request)


@router.get(
    "/{job_id}",
    summary="Get Job Posting",
)
async def get_job(
    job_id: str = Path(..., description="Job ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Retrieve a posting. Any authenticated caller may read it."""
    return await job_service.get_job_posting(sessions, job_id)


@router.patch(
    "/{job_id}/status",
    summary="Update Job Status",
    description="Move a posting along its lifecycle. Requires clinic access to the job.",
)
async def update_job_status(
    request: UpdateJobStatusRequest,
    job_id: str = Path(..., description="Job ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await job_service.update_job_status(sessions, identity, job_id, request.status)


@router.delete(
    "/{job_id}",
    summary="Delete Job Posting",
    description="Delete a posting that has no open applications, invitations or negotiations.",
)
async def delete_job(
    job_id: str = Path(..., description="Job ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await job_service.delete_job_posting(sessions, identity, job_id)


@router.get(
    "/{job_id}/applications",
    summary="List Job Applications",
    description="Applications for a job with their latest negotiation. Requires clinic access.",
)
async def list_job_applications(
    job_id: str = Path(..., description="Job ID"),
    application_status: Optional[ApplicationStatus] = Query(
        None, alias="status", description="Filter by application status"
    ),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await job_service.list_job_applications(
        sessions, identity, job_id, status=application_status
    )


@router.post(
    "/{job_id}/apply",
    status_code=status.HTTP_201_CREATED,
    summary="Apply To Job",
    description="Submit an application, optionally proposing a rate or salary range.",
)
async def apply_to_job(
    job_id: str = Path(..., description="Job ID"),
    request: Optional[ApplyToJobRequest] = Body(None),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await application_service.apply_to_job(
        sessions, identity, job_id, request or ApplyToJobRequest()
    )


@router.post(
    "/{job_id}/invitations",
    summary="Send Job Invitations",
    description="Invite professionals to an active job. Requires clinic access to the job.",
)
async def send_invitations(
    request: SendInvitationsRequest,
    job_id: str = Path(..., description="Job ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await invitation_service.send_invitations(sessions, identity, job_id, request)
