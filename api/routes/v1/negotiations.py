"""Negotiation listing endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_session_factory, require_identity
from api.schemas.common import ERROR_RESPONSES
from api.services import negotiations as negotiation_service
from core.identity import Identity

router = APIRouter(prefix="/negotiations", tags=["Negotiations"], responses=ERROR_RESPONSES)


@router.get(
    "",
    summary="List My Negotiations",
    description="Negotiations where the caller is the applicant or owns the job.",
)
async def list_my_negotiations(
    status: Optional[str] = Query(None, description="Filter by negotiation status"),
    identity: Identity = Depends(require_identity),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await negotiation_service.list_my_negotiations(sessions, identity, status)
