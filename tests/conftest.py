"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time; these must be in place before any app module loads.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("AWS_REGION", "us-east-1")

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from unittest.mock import MagicMock, patch

import httpx
import jwt as pyjwt
import pytest

from api.main import create_app
from core.config import settings
from core.lifecycle import (
    Actor,
    ApplicationStatus,
    InvitationStatus,
    JobStatus,
    JobType,
    NegotiationStatus,
)
from database.engine import create_engine, create_session_factory, init_db
from database.models import (
    Clinic,
    JobApplication,
    JobInvitation,
    JobNegotiation,
    JobPosting,
    ProfessionalProfile,
)

CLINIC_OWNER = "clinic-owner-sub"
CLINIC_MANAGER = "clinic-manager-sub"
PROFESSIONAL = "professional-sub"
OTHER_PROFESSIONAL = "other-professional-sub"
CLINIC_ID = "clinic-1"


def make_token(
    sub: str,
    groups: Iterable[str] = (),
    expires_in: int = 3600,
    secret: Optional[str] = None,
    **claims,
) -> str:
    """Access token shaped like the identity provider's."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "cognito:groups": list(groups),
        "token_use": "access",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        **claims,
    }
    return pyjwt.encode(payload, secret or settings.jwt_secret_key, algorithm="HS256")


def auth(sub: str, groups: Iterable[str] = ()) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, groups)}"}


CLINIC_HEADERS = auth(CLINIC_OWNER, ["Clinic Admin"])
PROFESSIONAL_HEADERS = auth(PROFESSIONAL, ["professional"])


@pytest.fixture
async def engine(tmp_path):
    """Per-test sqlite database with every table created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return create_session_factory(engine)


@pytest.fixture
def app(sessions):
    return create_app(session_factory=sessions)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture(autouse=True)
def notifications():
    """Capture enqueued notifications instead of running the celery task."""
    mock_task = MagicMock()
    with patch("api.services.notifications.send_notification", mock_task):
        yield mock_task.delay


def sent_events(delay_mock) -> list[tuple[str, str]]:
    """(event, recipient) pairs passed to `send_notification.delay`."""
    return [(c.args[0], c.args[1]) for c in delay_mock.call_args_list]


class Seeder:
    """Writes fixture rows straight to the database."""

    def __init__(self, sessions):
        self.sessions = sessions

    async def _add(self, row):
        async with self.sessions() as session:
            session.add(row)
            await session.commit()
        return row

    async def clinic(
        self,
        clinic_id: str = CLINIC_ID,
        owner: str = CLINIC_OWNER,
        associated_users: Iterable[str] = (CLINIC_MANAGER,),
        name: str = "Bright Smiles Dental",
    ) -> Clinic:
        return await self._add(
            Clinic(
                clinic_id=clinic_id,
                name=name,
                address={"city": "Austin", "state": "TX"},
                created_by=owner,
                associated_users=list(associated_users),
            )
        )

    async def professional(
        self,
        sub: str = PROFESSIONAL,
        role: str = "dental_hygienist",
    ) -> ProfessionalProfile:
        return await self._add(
            ProfessionalProfile(user_sub=sub, full_name=f"Pro {sub}", role=role)
        )

    async def job(
        self,
        job_type: JobType = JobType.TEMPORARY,
        status: JobStatus = JobStatus.ACTIVE,
        owner: str = CLINIC_OWNER,
        clinic_id: Optional[str] = CLINIC_ID,
        professional_role: str = "dental_hygienist",
        job_id: Optional[str] = None,
    ) -> JobPosting:
        job = JobPosting(
            clinic_user_sub=owner,
            job_id=job_id or str(uuid.uuid4()),
            clinic_id=clinic_id,
            job_type=job_type,
            status=status,
            professional_role=professional_role,
            job_title="Hygienist shift",
            clinic_name="Bright Smiles Dental",
        )
        if job_type == JobType.PERMANENT:
            job.salary_min, job.salary_max = 70000.0, 90000.0
            job.employment_type = "full_time"
        else:
            job.date = "2026-11-02"
            job.start_time, job.end_time = "08:00", "16:00"
            job.hourly_rate = 40.0
        return await self._add(job)

    async def application(
        self,
        job: JobPosting,
        professional: str = PROFESSIONAL,
        status: ApplicationStatus = ApplicationStatus.NEGOTIATING,
        proposed_rate: Optional[float] = None,
        invitation: Optional[JobInvitation] = None,
    ) -> JobApplication:
        return await self._add(
            JobApplication(
                job_id=job.job_id,
                professional_user_sub=professional,
                application_id=str(uuid.uuid4()),
                clinic_id=job.clinic_id,
                clinic_user_sub=job.clinic_user_sub,
                application_status=status,
                proposed_rate=proposed_rate,
                from_invitation=invitation is not None,
                invitation_id=invitation.invitation_id if invitation else None,
            )
        )

    async def negotiation(
        self,
        application: JobApplication,
        status: NegotiationStatus = NegotiationStatus.PENDING,
        from_type: Actor = Actor.PROFESSIONAL,
        **fields,
    ) -> JobNegotiation:
        return await self._add(
            JobNegotiation(
                application_id=application.application_id,
                negotiation_id=str(uuid.uuid4()),
                job_id=application.job_id,
                clinic_id=application.clinic_id,
                from_type=from_type,
                from_user_sub=application.professional_user_sub,
                to_user_sub=application.clinic_user_sub,
                negotiation_status=status,
                **fields,
            )
        )

    async def invitation(
        self,
        job: JobPosting,
        professional: str = PROFESSIONAL,
        status: InvitationStatus = InvitationStatus.PENDING,
    ) -> JobInvitation:
        return await self._add(
            JobInvitation(
                job_id=job.job_id,
                professional_user_sub=professional,
                invitation_id=str(uuid.uuid4()),
                clinic_user_sub=job.clinic_user_sub,
                clinic_id=job.clinic_id,
                invitation_status=status,
            )
        )


@pytest.fixture
def seed(sessions) -> Seeder:
    return Seeder(sessions)
