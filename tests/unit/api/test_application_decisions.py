"""
Tests for closing an application: clinic accept and reject, professional withdraw.
"""

from sqlalchemy import select

from conftest import (
    CLINIC_HEADERS,
    CLINIC_OWNER,
    OTHER_PROFESSIONAL,
    PROFESSIONAL,
    PROFESSIONAL_HEADERS,
    auth,
    sent_events,
)
from core.lifecycle import (
    ApplicationStatus,
    InvitationStatus,
    JobStatus,
    JobType,
    NegotiationStatus,
)
from database.models import JobApplication, JobInvitation, JobNegotiation, JobPosting


async def _load(sessions, model, **keys):
    async with sessions() as session:
        return await session.scalar(
            select(model).where(*(getattr(model, k) == v for k, v in keys.items()))
        )


class TestAcceptApplicant:
    async def test_pending_application_is_scheduled(self, client, seed, sessions, notifications):
        job = await seed.job()
        application = await seed.application(job, status=ApplicationStatus.PENDING)

        response = await client.post(
            f"/applications/{application.application_id}/accept", headers=CLINIC_HEADERS
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["applicationStatus"] == "scheduled"
        assert body["jobScheduled"] is True

        stored = await _load(sessions, JobApplication, application_id=application.application_id)
        assert stored.application_status == ApplicationStatus.SCHEDULED
        assert stored.accepted_hourly_rate == 40
        stored_job = await _load(sessions, JobPosting, job_id=job.job_id)
        assert stored_job.status == JobStatus.SCHEDULED
        assert stored_job.accepted_professional_user_sub == PROFESSIONAL
        assert sent_events(notifications) == [("application.accepted", PROFESSIONAL)]

    async def test_open_negotiation_is_closed(self, client, seed, sessions):
        job = await seed.job(job_type=JobType.PERMANENT)
        application = await seed.application(job)
        negotiation = await seed.negotiation(
            application, proposed_salary_min=80000, proposed_salary_max=90000
        )

        response = await client.post(
            f"/applications/{application.application_id}/accept", headers=CLINIC_HEADERS
        )

        assert response.status_code == 200
        stored = await _load(sessions, JobNegotiation, negotiation_id=negotiation.negotiation_id)
        assert stored.negotiation_status == NegotiationStatus.DECLINED
        stored_application = await _load(
            sessions, JobApplication, application_id=application.application_id
        )
        assert stored_application.accepted_hourly_rate is None

    async def test_second_applicant_cannot_be_accepted(self, client, seed, sessions):
        job = await seed.job()
        first = await seed.application(job, PROFESSIONAL, ApplicationStatus.PENDING)
        second = await seed.application(job, OTHER_PROFESSIONAL, ApplicationStatus.PENDING)

        accepted = await client.post(
            f"/applications/{first.application_id}/accept", headers=CLINIC_HEADERS
        )
        response = await client.post(
            f"/applications/{second.application_id}/accept", headers=CLINIC_HEADERS
        )

        assert accepted.status_code == 200
        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Job can no longer be scheduled"
        stored = await _load(sessions, JobApplication, application_id=second.application_id)
        assert stored.application_status == ApplicationStatus.PENDING

    async def test_closed_application(self, client, seed):
        application = await seed.application(await seed.job(), status=ApplicationStatus.WITHDRAWN)

        response = await client.post(
            f"/applications/{application.application_id}/accept", headers=CLINIC_HEADERS
        )

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Application has already been withdrawn"

    async def test_applicant_cannot_accept_themselves(self, client, seed):
        application = await seed.application(await seed.job(), status=ApplicationStatus.PENDING)

        response = await client.post(
            f"/applications/{application.application_id}/accept", headers=PROFESSIONAL_HEADERS
        )

        assert response.status_code == 403

    async def test_viewer_cannot_accept(self, client, seed):
        await seed.clinic(associated_users=["viewer-1"])
        application = await seed.application(await seed.job(), status=ApplicationStatus.PENDING)

        response = await client.post(
            f"/applications/{application.application_id}/accept",
            headers=auth("viewer-1", ["clinicviewer"]),
        )

        assert response.status_code == 403


class TestRejectApplicant:
    async def test_rejection_closes_application_and_negotiation(
        self, client, seed, sessions, notifications
    ):
        job = await seed.job()
        application = await seed.application(job, proposed_rate=45)
        negotiation = await seed.negotiation(application)

        response = await client.post(
            f"/applications/{application.application_id}/reject", headers=CLINIC_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["applicationStatus"] == "declined"
        stored = await _load(sessions, JobApplication, application_id=application.application_id)
        assert stored.application_status == ApplicationStatus.DECLINED
        stored_negotiation = await _load(
            sessions, JobNegotiation, negotiation_id=negotiation.negotiation_id
        )
        assert stored_negotiation.negotiation_status == NegotiationStatus.DECLINED
        assert sent_events(notifications) == [("application.rejected", PROFESSIONAL)]

        deleted = await client.delete(f"/jobs/{job.job_id}", headers=CLINIC_HEADERS)
        assert deleted.status_code == 200

    async def test_rejecting_twice_conflicts(self, client, seed):
        application = await seed.application(await seed.job(), status=ApplicationStatus.PENDING)
        url = f"/applications/{application.application_id}/reject"

        first = await client.post(url, headers=CLINIC_HEADERS)
        second = await client.post(url, headers=CLINIC_HEADERS)

        assert first.status_code == 200
        assert second.status_code == 409

    async def test_invitation_application_closes_its_invitation(self, client, seed, sessions):
        job = await seed.job()
        invitation = await seed.invitation(job, status=InvitationStatus.NEGOTIATING)
        application = await seed.application(job, invitation=invitation)

        response = await client.post(
            f"/applications/{application.application_id}/reject", headers=CLINIC_HEADERS
        )

        assert response.status_code == 200
        stored = await _load(sessions, JobInvitation, invitation_id=invitation.invitation_id)
        assert stored.invitation_status == InvitationStatus.DECLINED

    async def test_unknown_application(self, client):
        response = await client.post("/applications/missing/reject", headers=CLINIC_HEADERS)

        assert response.status_code == 404


class TestWithdrawApplication:
    async def test_pending_application_withdrawn(self, client, seed, sessions, notifications):
        application = await seed.application(await seed.job(), status=ApplicationStatus.PENDING)

        response = await client.post(
            f"/applications/{application.application_id}/withdraw", headers=PROFESSIONAL_HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Job application withdrawn successfully"
        assert body["withdrawnAt"] is not None
        stored = await _load(sessions, JobApplication, application_id=application.application_id)
        assert stored.application_status == ApplicationStatus.WITHDRAWN
        assert sent_events(notifications) == [("application.withdrawn", CLINIC_OWNER)]

    async def test_negotiating_application_closes_negotiation(self, client, seed, sessions):
        application = await seed.application(await seed.job(), proposed_rate=45)
        negotiation = await seed.negotiation(application, status=NegotiationStatus.COUNTER_OFFER)

        response = await client.post(
            f"/applications/{application.application_id}/withdraw", headers=PROFESSIONAL_HEADERS
        )

        assert response.status_code == 200
        stored = await _load(sessions, JobNegotiation, negotiation_id=negotiation.negotiation_id)
        assert stored.negotiation_status == NegotiationStatus.DECLINED

    async def test_accepted_application_refused(self, client, seed, sessions):
        application = await seed.application(await seed.job(), status=ApplicationStatus.ACCEPTED)

        response = await client.post(
            f"/applications/{application.application_id}/withdraw", headers=PROFESSIONAL_HEADERS
        )

        assert response.status_code == 400
        assert "contact the clinic" in response.json()["error"]["message"]
        stored = await _load(sessions, JobApplication, application_id=application.application_id)
        assert stored.application_status == ApplicationStatus.ACCEPTED

    async def test_other_professional_forbidden(self, client, seed):
        application = await seed.application(await seed.job(), status=ApplicationStatus.PENDING)

        response = await client.post(
            f"/applications/{application.application_id}/withdraw",
            headers=auth(OTHER_PROFESSIONAL, ["professional"]),
        )

        assert response.status_code == 403

    async def test_clinic_cannot_withdraw_for_applicant(self, client, seed):
        application = await seed.application(await seed.job(), status=ApplicationStatus.PENDING)

        response = await client.post(
            f"/applications/{application.application_id}/withdraw", headers=CLINIC_HEADERS
        )

        assert response.status_code == 403
