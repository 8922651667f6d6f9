"""
Tests for the clinic / professional access policy.
"""

import pytest

from core.access import (
    Action,
    ClinicAssociation,
    can_act,
    ensure_can_act,
    has_clinic_role,
)
from core.exceptions import ForbiddenError
from core.identity import Identity

ASSOCIATION = ClinicAssociation.build(
    clinic_id="clinic-1",
    owner_sub="clinic-creator",
    associated_users=["manager-1"],
)


class TestRootBypass:
    @pytest.mark.parametrize("action", list(Action))
    def test_root_can_do_everything(self, action):
        assert can_act("anyone", ["Root"], action)


class TestProfessionalActions:
    """Professional actions depend on ownership only."""

    def test_owner_allowed(self):
        assert can_act("pro-1", [], Action.APPLICATION_CREATE, resource_owner_id="pro-1")

    def test_other_subject_denied(self):
        assert not can_act("pro-2", [], Action.INVITATION_RESPOND, resource_owner_id="pro-1")

    def test_clinic_role_does_not_elevate(self):
        assert not can_act(
            "manager-1",
            ["clinicadmin"],
            Action.APPLICATION_READ,
            resource_owner_id="pro-1",
            clinic_association=ASSOCIATION,
        )

    def test_missing_owner_denied(self):
        assert not can_act("pro-1", [], Action.APPLICATION_CREATE)


class TestClinicActions:
    """Clinic actions need a granting role and an association."""

    def test_posting_owner_with_role(self):
        assert can_act(
            "owner-1", ["Clinic Admin"], Action.JOB_DELETE, resource_owner_id="owner-1"
        )

    def test_associated_user_with_role(self):
        assert can_act(
            "manager-1",
            ["clinicmanager"],
            Action.INVITATION_CREATE,
            resource_owner_id="owner-1",
            clinic_association=ASSOCIATION,
        )

    def test_clinic_creator_with_role(self):
        assert can_act(
            "clinic-creator", ["clinicadmin"], Action.JOB_CREATE, clinic_association=ASSOCIATION
        )

    def test_role_without_association_denied(self):
        assert not can_act(
            "stranger",
            ["clinicadmin"],
            Action.JOB_UPDATE_STATUS,
            resource_owner_id="owner-1",
            clinic_association=ASSOCIATION,
        )

    def test_association_without_role_denied(self):
        assert not can_act(
            "manager-1", [], Action.JOB_READ, clinic_association=ASSOCIATION
        )

    @pytest.mark.parametrize("action,expected", [
        (Action.JOB_READ, True),
        (Action.JOB_LIST_APPLICATIONS, True),
        (Action.JOB_CREATE, False),
        (Action.JOB_DELETE, False),
        (Action.INVITATION_CREATE, False),
    ])
    def test_viewer_is_read_only(self, action, expected):
        assert can_act(
            "manager-1", ["Clinic Viewer"], action, clinic_association=ASSOCIATION
        ) is expected


class TestEnsureCanAct:
    def test_raises_forbidden_with_action(self):
        identity = Identity(sub="stranger", groups=frozenset({"clinicadmin"}))

        with pytest.raises(ForbiddenError) as exc_info:
            ensure_can_act(identity, Action.JOB_DELETE, resource_owner_id="owner-1")

        assert exc_info.value.status_code == 403
        assert exc_info.value.details == {"action": "job:delete"}

    def test_professional_message(self):
        identity = Identity(sub="pro-2")

        with pytest.raises(ForbiddenError, match="your own"):
            ensure_can_act(identity, Action.INVITATION_RESPOND, resource_owner_id="pro-1")

    def test_passes_silently(self):
        ensure_can_act(Identity(sub="pro-1"), Action.APPLICATION_CREATE, resource_owner_id="pro-1")


def test_has_clinic_role():
    assert has_clinic_role(Identity(sub="a", groups=frozenset({"clinicviewer"})))
    assert has_clinic_role(Identity(sub="a", groups=frozenset({"root"})))
    assert not has_clinic_role(Identity(sub="a", groups=frozenset({"professional"})))
