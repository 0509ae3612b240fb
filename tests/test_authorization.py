"""
Authorization gate tests — role policy table, hierarchy scope, purity.
"""

import pytest

from cith.core.exceptions import AuthorizationError
from cith.models.auth import ROLES
from cith.services.authorization import (
    DENY_INACTIVE,
    DENY_ROLE,
    DENY_SCOPE,
    ROLE_POLICY,
    Action,
    AuthorizationGate,
    Resource,
)


class TestRolePolicy:
    def test_policy_covers_every_action(self):
        assert set(ROLE_POLICY) == set(Action)

    def test_policy_only_names_known_roles(self):
        for roles in ROLE_POLICY.values():
            assert roles <= set(ROLES)

    @pytest.mark.parametrize("action", list(Action))
    def test_admin_allowed_everything(self, org, services, action):
        assert services.gate.can_act(org.admin, action, Resource.for_centre(org.c3.id))

    def test_centre_leader_cannot_approve(self, org, services):
        decision = services.gate.can_act(org.leader_c1, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        assert not decision
        assert decision.reason == DENY_ROLE

    def test_only_admin_reviews_position_changes(self, org, services):
        resource = Resource.for_user(org.leader_c1.id, kind="position_change_request", resource_id=1)
        assert not services.gate.can_act(org.leader_c1, Action.REVIEW_POSITION_CHANGE, resource)
        assert not services.gate.can_act(org.pastor_d1, Action.REVIEW_POSITION_CHANGE, resource)
        assert services.gate.can_act(org.admin, Action.REVIEW_POSITION_CHANGE, resource)


class TestScope:
    def test_area_supervisor_scoped_to_own_area(self, org, services):
        assert services.gate.can_act(org.area_a1, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        decision = services.gate.can_act(org.area_a2, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        assert not decision
        assert decision.reason == DENY_SCOPE

    def test_zonal_scoped_to_assigned_areas(self, org, services):
        assert services.gate.can_act(org.zonal_z1, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        assert not services.gate.can_act(org.zonal_z1, Action.AREA_APPROVE, Resource.for_centre(org.c2.id))

    def test_pastor_scoped_to_district(self, org, services):
        assert services.gate.can_act(org.pastor_d1, Action.DISTRICT_APPROVE, Resource.for_centre(org.c2.id))
        assert not services.gate.can_act(org.pastor_d1, Action.DISTRICT_APPROVE, Resource.for_centre(org.c3.id))

    def test_centre_leader_scoped_to_own_centre(self, org, services):
        assert services.gate.can_act(org.leader_c1, Action.SUBMIT, Resource.for_centre(org.c1.id))
        assert not services.gate.can_act(org.leader_c1, Action.SUBMIT, Resource.for_centre(org.c2.id))

    def test_user_owned_resource_requires_owner(self, org, services):
        own = Resource.for_user(org.leader_c1.id)
        other = Resource.for_user(org.leader_c2.id)
        assert services.gate.can_act(org.leader_c1, Action.REQUEST_POSITION_CHANGE, own)
        assert not services.gate.can_act(org.leader_c1, Action.REQUEST_POSITION_CHANGE, other)

    def test_inactive_actor_denied(self, org, services, session):
        org.area_a1.is_active = False
        session.commit()
        decision = services.gate.can_act(org.area_a1, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        assert decision.reason == DENY_INACTIVE

    def test_zonal_area_approval_policy_switch(self, org, services):
        strict = AuthorizationGate(services.directory, zonal_area_approval=False)
        decision = strict.can_act(org.zonal_z1, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        assert decision.reason == DENY_ROLE
        # Rejecting stays available to zonal supervisors
        assert strict.can_act(org.zonal_z1, Action.REJECT, Resource.for_centre(org.c1.id))


class TestGateContract:
    def test_decision_is_pure(self, org, services):
        resource = Resource.for_centre(org.c1.id)
        first = [services.gate.can_act(org.area_a2, action, resource) for action in Action]
        second = [services.gate.can_act(org.area_a2, action, resource) for action in Action]
        assert first == second

    def test_require_raises_generic_error(self, org, services):
        with pytest.raises(AuthorizationError) as exc:
            services.gate.require(org.area_a2, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
        assert str(exc.value) == "Not authorized to perform this action"
        assert exc.value.reason == DENY_SCOPE

    def test_role_and_scope_denials_share_message(self, org, services):
        messages = set()
        for actor in (org.leader_c1, org.area_a2):
            with pytest.raises(AuthorizationError) as exc:
                services.gate.require(actor, Action.AREA_APPROVE, Resource.for_centre(org.c1.id))
            messages.add(str(exc.value))
        assert len(messages) == 1

    def test_visible_centres(self, org, services):
        assert services.gate.visible_centre_ids(org.admin) is None
        assert services.gate.visible_centre_ids(org.pastor_d1) == {org.c1.id, org.c2.id}
        assert services.gate.visible_centre_ids(org.zonal_z1) == {org.c1.id}
        assert services.gate.visible_centre_ids(org.leader_c3) == {org.c3.id}
