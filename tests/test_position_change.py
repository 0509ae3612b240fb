"""
Position-change workflow tests — request validation, availability,
admin review with snapshot checks, cancel.
"""

import pytest
from sqlalchemy import select

from cith.core.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from cith.models.notification import Notification
from cith.models.position_change import PositionChangeRequest


@pytest.fixture()
def a3(org, services):
    """A new, unstaffed area in district 1."""
    return services.registry.create_area_supervisor(org.admin, {"name": "Area A3", "district_id": org.d1.id})


class TestRequest:
    def test_request_snapshots_current_position(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        assert change.status == "pending"
        assert change.current_role == "cith_centre"
        assert change.current_target_id == org.c1.id
        assert change.target_id == a3.id

    def test_target_must_exist(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.positions.request(org.leader_c1, "area_supervisor", 9999)
        assert "target_id" in exc.value.details

    def test_target_must_match_role_table(self, org, services):
        # Centre ids are not district ids
        with pytest.raises(ValidationError):
            services.positions.request(org.leader_c1, "district_pastor", org.c3.id)

    def test_target_required_for_non_admin_role(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.positions.request(org.leader_c1, "area_supervisor", None)
        assert exc.value.details["target_id"] == "required"

    def test_unknown_role(self, org, services, a3):
        with pytest.raises(ValidationError):
            services.positions.request(org.leader_c1, "bishop", a3.id)

    def test_same_position_rejected(self, org, services):
        with pytest.raises(ValidationError):
            services.positions.request(org.area_a1, "area_supervisor", org.a1.id)

    def test_occupied_position_unavailable(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.positions.request(org.leader_c1, "area_supervisor", org.a1.id)
        assert exc.value.details["target_id"] == "not available"

    def test_one_pending_request_per_user(self, org, services, a3):
        services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        with pytest.raises(StateConflictError):
            services.positions.request(org.leader_c1, "cith_centre", org.c2.id)

    def test_centre_allows_more_than_one_leader(self, org, services):
        change = services.positions.request(org.area_a2, "cith_centre", org.c1.id)
        assert change.status == "pending"

    def test_admin_requesting_admin_is_same_position(self, org, services):
        with pytest.raises(ValidationError):
            services.positions.request(org.admin, "admin")


class TestAvailability:
    def test_check_availability(self, org, services, a3):
        assert services.positions.check_availability("area_supervisor", org.a1.id)["available"] is False
        assert services.positions.check_availability("area_supervisor", a3.id)["available"] is True
        assert services.positions.check_availability("cith_centre", org.c1.id)["available"] is True
        assert services.positions.check_availability("admin", None)["available"] is True

    def test_centre_capacity(self, org, services):
        services.positions.request(org.area_a2, "cith_centre", org.c1.id)
        services.positions.review(
            services.positions.list_all(org.admin, status="pending")[0].id, org.admin, "approve",
        )
        assert services.positions.check_availability("cith_centre", org.c1.id)["available"] is False

    def test_string_target_coerced(self, org, services, a3):
        assert services.positions.check_availability("area_supervisor", str(a3.id))["target_id"] == a3.id


class TestReview:
    def test_approve_moves_user(self, org, services, session, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        reviewed = services.positions.review(change.id, org.admin, "approve")

        assert reviewed.status == "approved"
        assert reviewed.reviewed_by_id == org.admin.id
        user = services.repos.actors.get(org.leader_c1.id)
        assert user.role == "area_supervisor"
        assert user.area_supervisor_id == a3.id
        assert user.cith_centre_id is None
        assert user.assignment_consistent()

        notes = session.execute(
            select(Notification).where(Notification.recipient_id == org.leader_c1.id)
        ).scalars().all()
        assert [n.type for n in notes] == ["system"]

    def test_reject_keeps_user(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        reviewed = services.positions.review(change.id, org.admin, "rejected", "  Not this term ")
        assert reviewed.status == "rejected"
        assert reviewed.rejection_reason == "Not this term"
        assert services.repos.actors.get(org.leader_c1.id).role == "cith_centre"

    def test_non_admin_cannot_review(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        with pytest.raises(AuthorizationError):
            services.positions.review(change.id, org.pastor_d1, "approve")

    def test_review_twice(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        services.positions.review(change.id, org.admin, "approve")
        with pytest.raises(StateConflictError) as exc:
            services.positions.review(change.id, org.admin, "reject")
        assert exc.value.current_status == "approved"

    def test_invalid_decision(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        with pytest.raises(ValidationError):
            services.positions.review(change.id, org.admin, "maybe")

    def test_position_taken_before_approval(self, org, services, a3):
        first = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        second = services.positions.request(org.leader_c2, "area_supervisor", a3.id)
        services.positions.review(first.id, org.admin, "approve")

        with pytest.raises(StateConflictError):
            services.positions.review(second.id, org.admin, "approve")
        assert services.repos.position_requests.get(second.id).status == "pending"
        assert services.repos.actors.get(org.leader_c2.id).role == "cith_centre"

    def test_concurrent_approvals_fill_position_once(self, org, services, monkeypatch, a3):
        first = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        second = services.positions.request(org.leader_c2, "area_supervisor", a3.id)
        services.positions.review(first.id, org.admin, "approve")

        # Second reviewer's availability read happened before the first commit
        monkeypatch.setattr(services.positions, "is_position_available", lambda *a, **kw: True)
        with pytest.raises(StateConflictError) as exc:
            services.positions.review(second.id, org.admin, "approve")
        assert exc.value.current_status == "pending"

        assert services.repos.actors.count_holders("area_supervisor", a3.id) == 1
        assert services.repos.position_requests.get(second.id).status == "pending"
        assert services.repos.actors.get(org.leader_c2.id).role == "cith_centre"

    def test_user_changed_since_request(self, org, services, session, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        org.leader_c1.cith_centre_id = org.c2.id
        session.commit()

        with pytest.raises(StateConflictError) as exc:
            services.positions.review(change.id, org.admin, "approve")
        assert exc.value.resource == "User"
        assert services.repos.position_requests.get(change.id).status == "pending"
        assert services.repos.actors.get(org.leader_c1.id).role == "cith_centre"

    def test_missing_request(self, org, services):
        with pytest.raises(NotFoundError):
            services.positions.review(9999, org.admin, "approve")


class TestCancelAndList:
    def test_cancel_own_pending(self, org, services, session, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        change_id = change.id
        services.positions.cancel(change_id, org.leader_c1)
        assert session.get(PositionChangeRequest, change_id) is None
        # A new request is allowed once the old one is gone
        assert services.positions.request(org.leader_c1, "area_supervisor", a3.id).status == "pending"

    def test_cannot_cancel_someone_elses(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        with pytest.raises(NotFoundError):
            services.positions.cancel(change.id, org.leader_c2)

    def test_cannot_cancel_reviewed(self, org, services, a3):
        change = services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        services.positions.review(change.id, org.admin, "reject")
        with pytest.raises(StateConflictError):
            services.positions.cancel(change.id, org.leader_c1)

    def test_list_mine(self, org, services, a3):
        services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        assert len(services.positions.list_for_user(org.leader_c1)) == 1
        assert services.positions.list_for_user(org.leader_c2) == []

    def test_list_all_admin_only(self, org, services, a3):
        services.positions.request(org.leader_c1, "area_supervisor", a3.id)
        assert len(services.positions.list_all(org.admin)) == 1
        with pytest.raises(AuthorizationError):
            services.positions.list_all(org.area_a1)
        with pytest.raises(ValidationError):
            services.positions.list_all(org.admin, status="archived")
