"""
CITH Weekly Report Tracker
Position-Change Workflow — request / review / cancel a user's role reassignment.

    pending ──review(approved)──► approved   (user role + assignment mutated)
       │
       ├──review(rejected)──► rejected
       └──cancel (owner)────► deleted

A user has at most one pending request (service check plus a partial unique
index). Approval re-checks availability, then compare-and-sets both the
request (pending → approved) and the user (role/assignment still equal to
the request's snapshot) in one transaction. Single-holder positions are
also guarded by partial unique indexes on ``users``, so two approvals racing
for the same area lose at the write rather than after it.

Availability:
    district_pastor   one per district
    area_supervisor   one per area
    zonal_supervisor  one per zonal zone
    cith_centre       up to MAX_CENTRE_LEADERS per centre
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from cith.core.exceptions import NotFoundError, StateConflictError, ValidationError
from cith.models.auth import (
    ROLE_ADMIN,
    ROLE_ASSIGNMENT_FIELD,
    ROLE_CENTRE,
    ROLE_ENTITY_KIND,
    ROLES,
    assignment_values,
)
from cith.models.position_change import (
    REQUEST_APPROVED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
    REQUEST_STATUSES,
    PositionChangeRequest,
)
from cith.services.authorization import Action, Resource

logger = logging.getLogger(__name__)

_DECISION_ALIASES = {
    "approve": REQUEST_APPROVED,
    "approved": REQUEST_APPROVED,
    "reject": REQUEST_REJECTED,
    "rejected": REQUEST_REJECTED,
}


def _utcnow():
    return datetime.now(timezone.utc)


class PositionChangeWorkflow:
    """The only writer of ``User.role`` and the user assignment columns."""

    def __init__(self, repos, gate, notifier, *, max_centre_leaders=2, clock=None):
        self.repos = repos
        self.gate = gate
        self.notifier = notifier
        self.max_centre_leaders = max_centre_leaders
        self._clock = clock or _utcnow

    # ── Request ───────────────────────────────────────────────────────────

    def request(self, actor, new_role, target_id=None) -> PositionChangeRequest:
        """Open a pending request for ``actor`` to become ``new_role`` at ``target_id``."""
        self.gate.require(actor, Action.REQUEST_POSITION_CHANGE, Resource.for_user(actor.id))

        new_role, target_id = self._validate_target(new_role, target_id)
        if actor.role == new_role and actor.assigned_entity_id == target_id:
            raise ValidationError(
                "You already hold this position", details={"target_id": "same as current position"},
            )

        if self.repos.position_requests.pending_for_user(actor.id) is not None:
            raise StateConflictError(
                "PositionChangeRequest", None, REQUEST_PENDING,
                "You already have a pending position change request",
            )

        if not self.is_position_available(new_role, target_id, exclude_user_id=actor.id):
            raise ValidationError("This position is not available", details={"target_id": "not available"})

        change = PositionChangeRequest(
            user_id=actor.id,
            current_role=actor.role,
            current_target_id=actor.assigned_entity_id,
            new_role=new_role,
            target_id=target_id,
            status=REQUEST_PENDING,
        )
        self.repos.position_requests.add(change)
        try:
            self.repos.commit()
        except IntegrityError:
            self.repos.rollback()
            raise StateConflictError(
                "PositionChangeRequest", None, REQUEST_PENDING,
                "You already have a pending position change request",
            ) from None

        logger.info(
            "Position change %s requested: user %s %s -> %s:%s",
            change.id, actor.id, actor.role, new_role, target_id,
            extra={"actor_id": actor.id, "event_type": "position_change_requested"},
        )
        return change

    # ── Review ────────────────────────────────────────────────────────────

    def review(self, request_id, reviewer, decision, rejection_reason=None) -> PositionChangeRequest:
        """Approve or reject a pending request (admin only)."""
        change = self.repos.position_requests.require(request_id)
        self.gate.require(
            reviewer, Action.REVIEW_POSITION_CHANGE,
            Resource.for_user(change.user_id, kind="position_change_request", resource_id=change.id),
        )
        if change.status != REQUEST_PENDING:
            raise StateConflictError(
                "PositionChangeRequest", change.id, change.status, "Request has already been processed",
            )

        outcome = _DECISION_ALIASES.get(decision)
        if outcome is None:
            raise ValidationError(
                f"Invalid decision '{decision}'", details={"decision": f"must be one of {sorted(_DECISION_ALIASES)}"},
            )

        now = self._clock()
        review_values = {"status": outcome, "reviewed_by_id": reviewer.id, "reviewed_at": now, "updated_at": now}
        if outcome == REQUEST_APPROVED:
            user = self._approve(change, review_values)
        else:
            reason = rejection_reason.strip() if isinstance(rejection_reason, str) else None
            review_values["rejection_reason"] = reason or None
            if not self.repos.position_requests.compare_and_set(change.id, {"status": REQUEST_PENDING}, review_values):
                self._lost_race(change.id)
            user = None

        self.repos.commit()
        self.repos.expire(change)
        if user is not None:
            self.repos.expire(user)

        logger.info(
            "Position change %s %s by %s", change.id, outcome, reviewer.id,
            extra={"actor_id": reviewer.id, "event_type": f"position_change_{outcome}"},
        )
        self.notifier.position_change_reviewed(change, reviewer.id)
        return change

    def _approve(self, change, review_values):
        user = self.repos.actors.require(change.user_id)

        if change.new_role != ROLE_ADMIN and self.repos.orgs.entity(ROLE_ENTITY_KIND[change.new_role], change.target_id) is None:
            raise StateConflictError(
                "PositionChangeRequest", change.id, change.status, "The requested position no longer exists",
            )
        if not self.is_position_available(change.new_role, change.target_id, exclude_user_id=user.id):
            raise StateConflictError(
                "PositionChangeRequest", change.id, change.status, "Position is no longer available",
            )

        if not self.repos.position_requests.compare_and_set(change.id, {"status": REQUEST_PENDING}, review_values):
            self._lost_race(change.id)

        snapshot = {"role": change.current_role}
        current_field = ROLE_ASSIGNMENT_FIELD.get(change.current_role)
        if current_field:
            snapshot[current_field] = change.current_target_id
        values = {"role": change.new_role, **assignment_values(change.new_role, change.target_id)}
        values["updated_at"] = review_values["updated_at"]
        try:
            moved = self.repos.actors.compare_and_set(user.id, snapshot, values)
        except IntegrityError:
            # Another approval filled the position after the availability read
            self.repos.rollback()
            raise StateConflictError(
                "PositionChangeRequest", change.id, REQUEST_PENDING, "Position is no longer available",
            ) from None
        if not moved:
            self.repos.rollback()
            raise StateConflictError(
                "User", change.user_id, None,
                "The user's position changed since the request was made; reject and resubmit",
            )
        return user

    # ── Cancel ────────────────────────────────────────────────────────────

    def cancel(self, request_id, actor) -> None:
        """Delete the actor's own pending request."""
        change = self.repos.position_requests.get(request_id)
        if change is None or change.user_id != actor.id:
            raise NotFoundError(resource="PositionChangeRequest", resource_id=request_id)
        if change.status != REQUEST_PENDING:
            raise StateConflictError(
                "PositionChangeRequest", change.id, change.status, "Only pending requests can be cancelled",
            )
        if not self.repos.position_requests.delete_if(change.id, {"status": REQUEST_PENDING, "user_id": actor.id}):
            self._lost_race(change.id)
        self.repos.session.expunge(change)
        self.repos.commit()

        logger.info(
            "Position change %s cancelled by %s", request_id, actor.id,
            extra={"actor_id": actor.id, "event_type": "position_change_cancelled"},
        )

    # ── Read side ─────────────────────────────────────────────────────────

    def list_for_user(self, actor):
        return self.repos.position_requests.for_user(actor.id)

    def list_all(self, reviewer, status=None):
        self.gate.require(reviewer, Action.REVIEW_POSITION_CHANGE, Resource(kind="position_change_request"))
        if status and status not in REQUEST_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'", details={"status": f"must be one of {list(REQUEST_STATUSES)}"},
            )
        return self.repos.position_requests.all(status)

    def check_availability(self, role, target_id) -> dict:
        role, target_id = self._validate_target(role, target_id)
        return {"role": role, "target_id": target_id, "available": self.is_position_available(role, target_id)}

    def is_position_available(self, role, target_id, *, exclude_user_id=None) -> bool:
        if role == ROLE_ADMIN:
            return True
        holders = self.repos.actors.count_holders(role, target_id, exclude_user_id=exclude_user_id)
        if role == ROLE_CENTRE:
            return holders < self.max_centre_leaders
        return holders == 0

    # ── Internals ─────────────────────────────────────────────────────────

    def _validate_target(self, role, target_id):
        """Return (role, target_id) once the target exists in the table for ``role``."""
        if role not in ROLES:
            raise ValidationError(f"Invalid role '{role}'", details={"new_role": f"must be one of {list(ROLES)}"})
        if role == ROLE_ADMIN:
            return role, None

        if target_id is None or isinstance(target_id, bool):
            raise ValidationError("target_id is required", details={"target_id": "required"})
        try:
            target_id = int(target_id)
        except (TypeError, ValueError):
            raise ValidationError("target_id must be an integer", details={"target_id": "must be an integer"}) from None

        kind = ROLE_ENTITY_KIND[role]
        if self.repos.orgs.entity(kind, target_id) is None:
            raise ValidationError(
                f"No {kind} with id {target_id} for role '{role}'",
                details={"target_id": f"must reference an existing {kind}"},
            )
        return role, target_id

    def _lost_race(self, request_id):
        self.repos.rollback()
        fresh = self.repos.position_requests.get(request_id)
        raise StateConflictError(
            "PositionChangeRequest", request_id, fresh.status if fresh is not None else None,
            "Request was changed by another reviewer; refresh and retry",
        )
