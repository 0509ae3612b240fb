"""
Authorization Gate — role policy + hierarchy scope.

Two axes decide every action:
  1. Role eligibility: ``ROLE_POLICY`` maps each ``Action`` to the roles that
     may attempt it. Admin may attempt every action.
  2. Scope membership: for non-admin roles, the actor's assigned entity must
     dominate the resource's centre in the resolved hierarchy chain, or, for
     user-owned resources, the actor must be the owner.

The gate never writes and keeps no cache, so a decision is a pure function of
(hierarchy state, actor, resource).

Usage:
    from cith.services.authorization import Action, AuthorizationGate, Resource

    gate = AuthorizationGate(directory, zonal_area_approval=True)
    decision = gate.can_act(actor, Action.AREA_APPROVE, Resource.for_report(report))
    if not decision:
        ...

    # Raising form, used before every mutation
    gate.require(actor, Action.SUBMIT, Resource.for_centre(centre_id))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from cith.core.exceptions import AuthorizationError
from cith.models.auth import ROLE_ADMIN, ROLE_AREA, ROLE_CENTRE, ROLE_ENTITY_KIND, ROLE_PASTOR, ROLE_ZONAL, ROLES

logger = logging.getLogger(__name__)


class Action(str, Enum):
    SUBMIT = "submit"
    AREA_APPROVE = "area-approve"
    DISTRICT_APPROVE = "district-approve"
    REJECT = "reject"
    EDIT = "edit"
    VIEW = "view"
    REQUEST_POSITION_CHANGE = "request-position-change"
    REVIEW_POSITION_CHANGE = "review-position-change"


# Roles allowed to *attempt* each action (admin is implicit everywhere)
ROLE_POLICY: dict[Action, frozenset[str]] = {
    Action.SUBMIT: frozenset({ROLE_CENTRE}),
    Action.AREA_APPROVE: frozenset({ROLE_AREA, ROLE_ZONAL}),
    Action.DISTRICT_APPROVE: frozenset({ROLE_PASTOR}),
    Action.REJECT: frozenset({ROLE_AREA, ROLE_ZONAL, ROLE_PASTOR}),
    Action.EDIT: frozenset({ROLE_CENTRE}),
    Action.VIEW: frozenset({ROLE_CENTRE, ROLE_AREA, ROLE_ZONAL, ROLE_PASTOR}),
    Action.REQUEST_POSITION_CHANGE: frozenset({ROLE_CENTRE, ROLE_AREA, ROLE_ZONAL, ROLE_PASTOR}),
    Action.REVIEW_POSITION_CHANGE: frozenset(),
}

# Deny reasons: logged, never returned to the caller
DENY_ROLE = "role"
DENY_SCOPE = "scope"
DENY_INACTIVE = "inactive"
DENY_UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class Resource:
    """What an action targets: a centre's data, or something owned by a user."""

    kind: str
    centre_id: int | None = None
    owner_user_id: int | None = None
    resource_id: int | None = None

    @classmethod
    def for_centre(cls, centre_id):
        return cls(kind="cith_centre", centre_id=centre_id, resource_id=centre_id)

    @classmethod
    def for_report(cls, report):
        return cls(kind="weekly_report", centre_id=report.cith_centre_id, resource_id=report.id)

    @classmethod
    def for_user(cls, user_id, *, kind="user", resource_id=None):
        return cls(kind=kind, owner_user_id=user_id, resource_id=resource_id)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


class AuthorizationGate:
    """Combines ``ROLE_POLICY`` with hierarchy-chain scope checks."""

    def __init__(self, directory, *, zonal_area_approval: bool = True):
        self.directory = directory
        self.zonal_area_approval = zonal_area_approval

    # ── Role axis ─────────────────────────────────────────────────────────

    def role_allows(self, role: str, action: Action) -> bool:
        if role == ROLE_ADMIN:
            return True
        if role == ROLE_ZONAL and action == Action.AREA_APPROVE and not self.zonal_area_approval:
            return False
        return role in ROLE_POLICY[action]

    # ── Decision ──────────────────────────────────────────────────────────

    def can_act(self, actor, action: Action, resource: Resource) -> Decision:
        action = Action(action)
        if actor is None or not actor.is_active:
            return Decision(False, DENY_INACTIVE)
        if actor.role not in ROLES or not self.role_allows(actor.role, action):
            return Decision(False, DENY_ROLE)
        if actor.role == ROLE_ADMIN:
            return ALLOW

        if resource.owner_user_id is not None:
            return ALLOW if resource.owner_user_id == actor.id else Decision(False, DENY_SCOPE)

        if actor.assigned_entity_id is None:
            return Decision(False, DENY_UNASSIGNED)
        if resource.centre_id is None:
            return Decision(False, DENY_SCOPE)
        return ALLOW if self._centre_in_scope(actor, resource.centre_id) else Decision(False, DENY_SCOPE)

    def require(self, actor, action: Action, resource: Resource) -> None:
        """Raise ``AuthorizationError`` unless ``can_act`` allows."""
        decision = self.can_act(actor, action, resource)
        if decision:
            return
        action = Action(action)
        logger.warning(
            "Authorization denied: actor=%s action=%s resource=%s:%s reason=%s",
            getattr(actor, "id", None), action.value, resource.kind, resource.resource_id, decision.reason,
            extra={
                "actor_id": getattr(actor, "id", None),
                "event_type": "authorization_denied",
                "deny_reason": decision.reason,
            },
        )
        raise AuthorizationError(action.value, decision.reason)

    # ── Scope axis ────────────────────────────────────────────────────────

    def _centre_in_scope(self, actor, centre_id) -> bool:
        if actor.role == ROLE_CENTRE:
            return actor.cith_centre_id == centre_id

        chain = self.directory.resolve_centre_chain(centre_id)
        if actor.role == ROLE_AREA:
            return chain.area.id == actor.area_supervisor_id
        if actor.role == ROLE_ZONAL:
            return chain.area.id in self.directory.zonal_area_ids(actor.zonal_supervisor_id)
        if actor.role == ROLE_PASTOR:
            return chain.district.id == actor.district_id
        return False

    def visible_centre_ids(self, actor) -> set[int] | None:
        """Centres whose reports ``actor`` may view; None means unrestricted (admin)."""
        if actor.role == ROLE_ADMIN:
            return None
        if actor.role not in ROLE_ENTITY_KIND or actor.assigned_entity_id is None or not actor.is_active:
            return set()
        return self.directory.members_of(ROLE_ENTITY_KIND[actor.role], actor.assigned_entity_id)
