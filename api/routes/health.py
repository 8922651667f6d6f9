"""Health check endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_session_factory
from core.config import settings
from database.engine import ping

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", service=settings.app_name, version="0.1.0")


@router.get("/ready")
async def readiness_check(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Readiness check for load balancers; fails with 503 when the database is unreachable."""
    await ping(sessions)
    return {"status": "ready", "database": "ok"}
