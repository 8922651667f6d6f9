"""
Tests for the lifecycle transition tables and proposal-shape rules.
"""

import pytest

from core.exceptions import BadRequestError, ConflictError
from core.lifecycle import (
    APPLICATION_TRANSITIONS,
    JOB_TRANSITIONS,
    NEGOTIATION_RESPONSE_TO_APPLICATION_STATUS,
    ApplicationStatus,
    InvitationStatus,
    JobStatus,
    JobType,
    NegotiationStatus,
    can_transition,
    ensure_transition,
    is_terminal,
    roles_compatible,
    validate_proposal,
)


class TestTransitionTables:
    """Test the per-entity transition tables."""

    @pytest.mark.parametrize("entity,status", [
        ("job", JobStatus.COMPLETED),
        ("job", JobStatus.INACTIVE),
        ("job", JobStatus.CANCELLED),
        ("application", ApplicationStatus.DECLINED),
        ("application", ApplicationStatus.WITHDRAWN),
        ("application", ApplicationStatus.JOB_CANCELLED),
        ("negotiation", NegotiationStatus.ACCEPTED),
        ("negotiation", NegotiationStatus.DECLINED),
        ("invitation", InvitationStatus.ACCEPTED),
        ("invitation", InvitationStatus.DECLINED),
    ])
    def test_terminal_statuses(self, entity, status):
        assert is_terminal(entity, status)

    @pytest.mark.parametrize("entity,status", [
        ("job", JobStatus.ACTIVE),
        ("job", JobStatus.SCHEDULED),
        ("application", ApplicationStatus.PENDING),
        ("negotiation", NegotiationStatus.COUNTER_OFFER),
        ("invitation", InvitationStatus.NEGOTIATING),
    ])
    def test_open_statuses(self, entity, status):
        assert not is_terminal(entity, status)

    def test_every_status_has_a_row(self):
        assert set(JOB_TRANSITIONS) == set(JobStatus)
        assert set(APPLICATION_TRANSITIONS) == set(ApplicationStatus)

    def test_counter_offer_can_be_revisited(self):
        assert can_transition(
            "negotiation", NegotiationStatus.COUNTER_OFFER, NegotiationStatus.COUNTER_OFFER
        )

    def test_scheduled_job_cannot_reopen(self):
        assert not can_transition("job", JobStatus.SCHEDULED, JobStatus.ACTIVE)

    def test_negotiating_application_can_be_accepted(self):
        assert can_transition(
            "application", ApplicationStatus.NEGOTIATING, ApplicationStatus.ACCEPTED
        )

    def test_response_maps_to_application_status(self):
        assert NEGOTIATION_RESPONSE_TO_APPLICATION_STATUS == {
            NegotiationStatus.ACCEPTED: ApplicationStatus.SCHEDULED,
            NegotiationStatus.DECLINED: ApplicationStatus.DECLINED,
            NegotiationStatus.COUNTER_OFFER: ApplicationStatus.NEGOTIATING,
        }


class TestEnsureTransition:
    """Test ConflictError reporting for illegal moves."""

    def test_allowed_move_passes(self):
        ensure_transition("invitation", InvitationStatus.PENDING, InvitationStatus.ACCEPTED)

    def test_terminal_source_message(self):
        with pytest.raises(ConflictError) as exc_info:
            ensure_transition(
                "invitation", InvitationStatus.ACCEPTED, InvitationStatus.DECLINED
            )

        assert exc_info.value.message == "Invitation has already been accepted"
        assert exc_info.value.details["allowed"] == []

    def test_illegal_move_lists_allowed_targets(self):
        with pytest.raises(ConflictError) as exc_info:
            ensure_transition("job", JobStatus.SCHEDULED, JobStatus.ACTION_NEEDED)

        details = exc_info.value.details
        assert details["currentStatus"] == "scheduled"
        assert details["requestedStatus"] == "action_needed"
        assert details["allowed"] == ["cancelled", "completed", "inactive"]


class TestValidateProposal:
    """Test rate-shape validation against the job type."""

    def test_permanent_salary_range(self):
        proposal = validate_proposal(JobType.PERMANENT, None, 80000, 95000)

        assert proposal.is_salary
        assert (proposal.salary_min, proposal.salary_max) == (80000.0, 95000.0)
        assert proposal.hourly_rate is None

    def test_permanent_rejects_hourly_rate(self):
        with pytest.raises(BadRequestError) as exc_info:
            validate_proposal(JobType.PERMANENT, 45, 80000, 95000)

        assert exc_info.value.details["provided"] == {"proposedHourlyRate": 45}

    @pytest.mark.parametrize("salary_min,salary_max", [
        (80000, None),
        (None, 95000),
        (None, None),
    ])
    def test_permanent_requires_both_bounds(self, salary_min, salary_max):
        with pytest.raises(BadRequestError):
            validate_proposal(JobType.PERMANENT, None, salary_min, salary_max)

    @pytest.mark.parametrize("salary_min,salary_max", [(95000, 80000), (80000, 80000)])
    def test_permanent_requires_min_below_max(self, salary_min, salary_max):
        with pytest.raises(BadRequestError) as exc_info:
            validate_proposal(JobType.PERMANENT, None, salary_min, salary_max)

        assert "greater than" in exc_info.value.message

    @pytest.mark.parametrize("job_type", [JobType.TEMPORARY, JobType.MULTI_DAY_CONSULTING])
    def test_hourly_jobs_take_hourly_rate(self, job_type):
        proposal = validate_proposal(job_type, 45, None, None)

        assert not proposal.is_salary
        assert proposal.hourly_rate == 45.0

    def test_hourly_job_rejects_salary(self):
        with pytest.raises(BadRequestError):
            validate_proposal(JobType.TEMPORARY, 45, 80000, None)

    def test_hourly_job_requires_rate_with_custom_field_name(self):
        with pytest.raises(BadRequestError) as exc_info:
            validate_proposal(JobType.TEMPORARY, None, None, None, hourly_field="proposedRate")

        assert exc_info.value.details == {
            "expected": ["proposedRate"],
            "provided": {"proposedRate": None},
        }

    def test_accepts_plain_string_job_type(self):
        assert validate_proposal("permanent", None, 1, 2).is_salary


class TestRolesCompatible:
    @pytest.mark.parametrize("job_role,pro_role,expected", [
        ("dental_hygienist", "dental_hygienist", True),
        ("dental_hygienist", "dental_assistant", False),
        ("dual_role_front_da", "dental_assistant", True),
        ("patient_coordinator_front", "dual_role_front_da", True),
        ("dental_hygienist", None, False),
    ])
    def test_role_matching(self, job_role, pro_role, expected):
        assert roles_compatible(job_role, pro_role) is expected
