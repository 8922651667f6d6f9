"""Invitation endpoints for professionals."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_session_factory, require_identity
from api.schemas.common import ERROR_RESPONSES
from api.schemas.invitations import InvitationResponseRequest
from api.services import invitations as invitation_service
from core.identity import Identity

router = APIRouter(prefix="/invitations", tags=["Invitations"], responses=ERROR_RESPONSES)


@router.get(
    "",
    summary="List My Invitations",
)
async def list_my_invitations(
    status: Optional[str] = Query(None, description="Filter by invitation status"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Invitations addressed to the caller."""
    return await invitation_service.list_my_invitations(sessions, identity, status)


@router.post(
    "/{invitation_id}/response",
    summary="Respond To Invitation",
    description=(
        "Accept, decline or start negotiating on an invitation. Accepting or "
        "negotiating creates the application."
    ),
)
async def respond_to_invitation(
    request: InvitationResponseRequest,
    invitation_id: str = Path(..., description="Invitation ID"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await invitation_service.respond_to_invitation(
        sessions, identity, invitation_id, request
    )
