"""Clinic and professional profile reads used for enrichment."""

from typing import Any, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Clinic, ProfessionalProfile

logger = logging.getLogger(__name__)


def clinic_to_summary(clinic: Clinic) -> dict[str, Any]:
    return {
        "clinicId": clinic.clinic_id,
        "name": clinic.name,
        "address": clinic.address,
    }


async def get_clinic_summary(
    sessions: async_sessionmaker[AsyncSession],
    clinic_id: Optional[str],
) -> Optional[dict[str, Any]]:
    """Clinic display data. Failures degrade to None instead of failing the caller."""
    if not clinic_id:
        return None
    try:
        async with sessions() as session:
            clinic = await session.get(Clinic, clinic_id)
    except SQLAlchemyError as e:
        logger.warning(f"Clinic enrichment failed for {clinic_id}: {e}", exc_info=True)
        return None

    return clinic_to_summary(clinic) if clinic else None


async def get_professional_summary(
    sessions: async_sessionmaker[AsyncSession],
    user_sub: str,
) -> Optional[dict[str, Any]]:
    async with sessions() as session:
        profile = await session.get(ProfessionalProfile, user_sub)

    if not profile:
        return None
    return {
        "userSub": profile.user_sub,
        "fullName": profile.full_name,
        "role": profile.role,
    }
