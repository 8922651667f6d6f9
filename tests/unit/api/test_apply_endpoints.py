"""
Tests for the apply-to-job endpoints.
"""

import asyncio

from sqlalchemy import func, select

from conftest import (
    CLINIC_HEADERS,
    CLINIC_OWNER,
    PROFESSIONAL,
    PROFESSIONAL_HEADERS,
    auth,
    sent_events,
)
from core.lifecycle import ApplicationStatus, JobStatus, JobType, NegotiationStatus
from database.models import JobApplication, JobNegotiation


class TestApplyWithoutProposal:
    async def test_creates_pending_application(self, client, seed, notifications):
        await seed.clinic()
        job = await seed.job()

        response = await client.post(
            f"/jobs/{job.job_id}/apply",
            json={"message": "Available all day", "availability": "full day"},
            headers=PROFESSIONAL_HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["applicationStatus"] == "pending"
        assert body["jobId"] == job.job_id
        assert body["job"]["type"] == "temporary"
        assert body["clinic"]["name"] == "Bright Smiles Dental"
        assert "negotiationId" not in body
        assert sent_events(notifications) == [("application.submitted", CLINIC_OWNER)]

    async def test_empty_body(self, client, seed):
        job = await seed.job()

        response = await client.post(f"/jobs/{job.job_id}/apply", headers=PROFESSIONAL_HEADERS)

        assert response.status_code == 201
        assert response.json()["clinic"] is None

    async def test_job_id_in_body(self, client, seed):
        job = await seed.job()

        response = await client.post(
            "/applications", json={"jobId": job.job_id}, headers=PROFESSIONAL_HEADERS
        )

        assert response.status_code == 201
        assert response.json()["jobId"] == job.job_id

    async def test_job_id_required(self, client):
        response = await client.post("/applications", json={}, headers=PROFESSIONAL_HEADERS)

        assert response.status_code == 400
        assert response.json()["error"]["details"]["expected"] == ["jobId"]


class TestApplyWithProposal:
    async def test_hourly_proposal_opens_negotiation(self, client, seed, sessions, notifications):
        job = await seed.job()

        response = await client.post(
            f"/jobs/{job.job_id}/apply",
            json={"proposedRate": 45},
            headers=PROFESSIONAL_HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["applicationStatus"] == "negotiating"
        assert body["proposedRate"] == 45

        async with sessions() as session:
            negotiation = await session.scalar(
                select(JobNegotiation).where(JobNegotiation.negotiation_id == body["negotiationId"])
            )
        assert negotiation.proposed_hourly_rate == 45
        assert negotiation.negotiation_status == NegotiationStatus.PENDING
        assert negotiation.proposed_salary_min is None
        assert [e for e, _ in sent_events(notifications)] == [
            "application.submitted",
            "negotiation.started",
        ]

    async def test_permanent_salary_proposal(self, client, seed):
        job = await seed.job(job_type=JobType.PERMANENT)

        response = await client.post(
            f"/jobs/{job.job_id}/apply",
            json={"proposedSalaryMin": 80000, "proposedSalaryMax": 95000},
            headers=PROFESSIONAL_HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["proposedSalaryMax"] == 95000

    async def test_permanent_rejects_hourly_rate(self, client, seed):
        job = await seed.job(job_type=JobType.PERMANENT)

        response = await client.post(
            f"/jobs/{job.job_id}/apply",
            json={"proposedRate": 45},
            headers=PROFESSIONAL_HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["provided"] == {"proposedRate": 45}

    async def test_hourly_job_rejects_salary(self, client, seed):
        job = await seed.job()

        response = await client.post(
            f"/jobs/{job.job_id}/apply",
            json={"proposedSalaryMin": 80000, "proposedSalaryMax": 95000},
            headers=PROFESSIONAL_HEADERS,
        )

        assert response.status_code == 400

    async def test_negative_rate_is_validation_error(self, client, seed):
        job = await seed.job()

        response = await client.post(
            f"/jobs/{job.job_id}/apply",
            json={"proposedRate": -5},
            headers=PROFESSIONAL_HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestApplyPreconditions:
    async def test_unknown_job(self, client):
        response = await client.post("/jobs/missing/apply", json={}, headers=PROFESSIONAL_HEADERS)
        assert response.status_code == 404

    async def test_job_not_active(self, client, seed):
        job = await seed.job(status=JobStatus.SCHEDULED)

        response = await client.post(f"/jobs/{job.job_id}/apply", json={}, headers=PROFESSIONAL_HEADERS)

        assert response.status_code == 409
        assert response.json()["error"]["details"]["status"] == "scheduled"

    async def test_job_without_clinic(self, client, seed):
        job = await seed.job(clinic_id=None)

        response = await client.post(f"/jobs/{job.job_id}/apply", json={}, headers=PROFESSIONAL_HEADERS)

        assert response.status_code == 400

    async def test_requires_token(self, client, seed):
        job = await seed.job()

        response = await client.post(f"/jobs/{job.job_id}/apply", json={})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_MISSING"

    async def test_duplicate_application(self, client, seed):
        job = await seed.job()
        await seed.application(job, status=ApplicationStatus.PENDING)

        response = await client.post(f"/jobs/{job.job_id}/apply", json={}, headers=PROFESSIONAL_HEADERS)

        assert response.status_code == 409
        assert response.json()["error"]["details"]["applicationStatus"] == "pending"

    async def test_concurrent_applies_create_one_row(self, client, seed, sessions):
        job = await seed.job()

        responses = await asyncio.gather(*(
            client.post(f"/jobs/{job.job_id}/apply", json={"proposedRate": 40}, headers=PROFESSIONAL_HEADERS)
            for _ in range(5)
        ))

        statuses = sorted(r.status_code for r in responses)
        assert statuses.count(201) == 1
        assert all(s == 409 for s in statuses if s != 201)

        async with sessions() as session:
            count = await session.scalar(
                select(func.count()).select_from(JobApplication).where(
                    JobApplication.job_id == job.job_id,
                    JobApplication.professional_user_sub == PROFESSIONAL,
                )
            )
            negotiations = await session.scalar(
                select(func.count()).select_from(JobNegotiation).where(
                    JobNegotiation.job_id == job.job_id
                )
            )
        assert count == 1
        assert negotiations == 1


class TestReadApplication:
    async def test_professional_reads_own(self, client, seed):
        job = await seed.job()
        application = await seed.application(job)

        response = await client.get(
            f"/applications/{application.application_id}", headers=PROFESSIONAL_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["jobStatus"] == "active"

    async def test_clinic_reads_applicant(self, client, seed):
        await seed.clinic()
        job = await seed.job()
        application = await seed.application(job)

        response = await client.get(
            f"/applications/{application.application_id}", headers=CLINIC_HEADERS
        )

        assert response.status_code == 200

    async def test_stranger_forbidden(self, client, seed):
        job = await seed.job()
        application = await seed.application(job)

        response = await client.get(
            f"/applications/{application.application_id}", headers=auth("stranger")
        )

        assert response.status_code == 403

    async def test_negotiation_history_newest_first(self, client, seed):
        job = await seed.job()
        application = await seed.application(job)
        first = await seed.negotiation(application, status=NegotiationStatus.DECLINED)
        second = await seed.negotiation(application)

        response = await client.get(
            f"/applications/{application.application_id}/negotiations",
            headers=PROFESSIONAL_HEADERS,
        )

        ids = [n["negotiationId"] for n in response.json()["negotiations"]]
        assert ids == [second.negotiation_id, first.negotiation_id]
