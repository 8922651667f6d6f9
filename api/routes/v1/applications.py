"""
Application workflow endpoints.

Applying with the job id in the body, reading an application and its
negotiation history, answering a negotiation, and the accept, reject and
withdraw decisions.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_session_factory, require_identity
from api.schemas.applications import ApplyToJobRequest, NegotiationResponseRequest
from api.schemas.common import ERROR_RESPONSES
from api.services import applications as application_service
from api.services import negotiations as negotiation_service
from core.identity import Identity

router = APIRouter(prefix="/applications", tags=["Applications"], responses=ERROR_RESPONSES)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Apply To Job",
    description="Same as POST /jobs/{jobId}/apply with `jobId` in the body.",
)
async def create_application(
    request: ApplyToJobRequest,
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await application_service.apply_to_job(sessions, identity, None, request)


@router.get(
    "/{application_id}",
    summary="Get Application Details",
    description="Visible to the applicant and to clinic users with access to the job.",
)
async def get_application(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await application_service.get_application(sessions, identity, application_id)


@router.get(
    "/{application_id}/negotiations",
    summary="List Application Negotiations",
)
async def list_application_negotiations(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Negotiation history of one application, newest first."""
    return await application_service.list_application_negotiations(
        sessions, identity, application_id
    )


@router.post(
    "/{application_id}/negotiations/{negotiation_id}/response",
    summary="Respond To Negotiation",
    description=(
        "Accept, decline or counter a negotiation. The caller acts as the clinic "
        "when they own the job and as the professional when they own the application."
    ),
)
async def respond_to_negotiation(
    request: NegotiationResponseRequest,
    application_id: str = Path(..., description="Application ID"),
    negotiation_id: str = Path(..., description="Negotiation ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await negotiation_service.respond_to_negotiation(
        sessions, identity, application_id, negotiation_id, request
    )


@router.post(
    "/{application_id}/accept",
    summary="Accept Applicant",
    description="Clinic accepts the applicant at the posted terms and schedules the job.",
)
async def accept_application(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await application_service.accept_application(sessions, identity, application_id)


@router.post(
    "/{application_id}/reject",
    summary="Reject Applicant",
)
async def reject_application(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await application_service.reject_application(sessions, identity, application_id)


@router.post(
    "/{application_id}/withdraw",
    summary="Withdraw Application",
    description="The applicant withdraws; accepted or scheduled applications cannot be withdrawn.",
)
async def withdraw_application(
    application_id: str = Path(..., description="Application ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await application_service.withdraw_application(sessions, identity, application_id)
