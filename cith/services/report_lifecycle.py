"""
CITH Weekly Report Tracker
Report Lifecycle Engine — submit / approve / reject / edit for weekly reports.

    pending ──approve_area──► area_approved ──approve_district──► district_approved
       │                           │
       └──────────reject───────────┴──► rejected

Every mutating call runs the same checks in order:
    1. existence      (NotFoundError)
    2. authorization  (AuthorizationError, via AuthorizationGate)
    3. status         (StateConflictError)
    4. validation     (ValidationError)
    5. conditional update — UPDATE ... WHERE status = <status read in 3>;
       zero rows changed means another actor won the race (StateConflictError)

Notifications are sent only after the transition has committed, and a
failed fan-out never undoes it.

Usage:
    engine = ReportLifecycle(repos, gate, notifier)
    report = engine.submit(actor, centre_id, "2024-W10", payload)
    engine.approve(report.id, supervisor, stage="area")
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from cith.core.exceptions import ConflictError, StateConflictError, ValidationError
from cith.models.auth import ROLE_ADMIN, ROLE_AREA, ROLE_PASTOR, ROLE_ZONAL
from cith.models.report import (
    REPORT_STATUSES,
    REPORT_TRANSITIONS,
    STATUS_AREA_APPROVED,
    STATUS_DISTRICT_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    WeeklyReport,
)
from cith.services.authorization import Action, Resource
from cith.services.report_payload import parse_payload, normalize_week

logger = logging.getLogger(__name__)

APPROVAL_STAGES = ("area", "district")

# Statuses each reviewer role may reject from
_REJECT_FROM = {
    ROLE_AREA: (STATUS_PENDING,),
    ROLE_ZONAL: (STATUS_PENDING,),
    ROLE_PASTOR: (STATUS_AREA_APPROVED,),
    ROLE_ADMIN: tuple(REPORT_TRANSITIONS["reject"]["from"]),
}


def _utcnow():
    return datetime.now(timezone.utc)


class ReportLifecycle:
    """The only writer of ``WeeklyReport.status`` and its audit columns."""

    def __init__(self, repos, gate, notifier, *, clock=None):
        self.repos = repos
        self.gate = gate
        self.notifier = notifier
        self._clock = clock or _utcnow

    # ── Submit ────────────────────────────────────────────────────────────

    def submit(self, actor, centre_id, week, data) -> WeeklyReport:
        """Create a ``pending`` report for (centre, week).

        A rejected report for the same week is superseded (deleted) in the same
        transaction; any other existing report raises ConflictError.
        """
        if centre_id is None:
            centre_id = getattr(actor, "cith_centre_id", None)
        if centre_id is None:
            raise ValidationError("cith_centre_id is required", details={"cith_centre_id": "required"})

        self.gate.directory.resolve_centre_chain(centre_id)
        self.gate.require(actor, Action.SUBMIT, Resource.for_centre(centre_id))

        week_key = normalize_week(week)
        payload = parse_payload(data)

        superseded_id = None
        existing = self.repos.reports.find_for_week(centre_id, week_key)
        if existing is not None:
            if existing.status != STATUS_REJECTED:
                raise ConflictError("WeeklyReport", "cith_centre_id+week", f"{centre_id}/{week_key}")
            superseded_id = existing.id
            if not self.repos.reports.delete_if(existing.id, {"status": STATUS_REJECTED}):
                self.repos.rollback()
                raise StateConflictError(
                    "WeeklyReport", superseded_id, None,
                    "The rejected report for this week changed; refresh and retry",
                )
            self.repos.session.expunge(existing)

        now = self._clock()
        report = WeeklyReport(
            cith_centre_id=centre_id,
            week=week_key,
            status=STATUS_PENDING,
            submitted_by_id=actor.id,
            submitted_at=now,
            **payload.to_columns(),
        )
        self.repos.reports.add(report)
        try:
            self.repos.commit()
        except IntegrityError:
            self.repos.rollback()
            raise ConflictError("WeeklyReport", "cith_centre_id+week", f"{centre_id}/{week_key}") from None

        logger.info(
            "Report %s submitted for centre %s week %s%s",
            report.id, centre_id, week_key,
            f" (supersedes rejected report {superseded_id})" if superseded_id else "",
            extra={"report_id": report.id, "actor_id": actor.id, "event_type": "report_submitted"},
        )
        self.notifier.report_submitted(report, actor.id)
        return report

    # ── Approvals ─────────────────────────────────────────────────────────

    def approve(self, report_id, actor, stage) -> WeeklyReport:
        if stage == "area":
            return self.approve_area(report_id, actor)
        if stage == "district":
            return self.approve_district(report_id, actor)
        raise ValidationError(
            f"Invalid approval stage '{stage}'", details={"stage": f"must be one of {list(APPROVAL_STAGES)}"},
        )

    def approve_area(self, report_id, actor) -> WeeklyReport:
        report = self._transition(
            report_id, actor, Action.AREA_APPROVE, "approve_area",
            audit=("area_approved_by_id", "area_approved_at"),
        )
        self.notifier.report_approved(report, actor.id, "area")
        return report

    def approve_district(self, report_id, actor) -> WeeklyReport:
        report = self._transition(
            report_id, actor, Action.DISTRICT_APPROVE, "approve_district",
            audit=("district_approved_by_id", "district_approved_at"),
        )
        self.notifier.report_approved(report, actor.id, "district")
        return report

    # ── Reject ────────────────────────────────────────────────────────────

    def reject(self, report_id, actor, reason) -> WeeklyReport:
        """Reject a report. Area-stage reviewers reject ``pending`` reports,
        district pastors reject ``area_approved`` ones, admin either.
        """
        report = self._transition(
            report_id, actor, Action.REJECT, "reject",
            audit=("rejected_by_id", "rejected_at"),
            allowed_from=_REJECT_FROM.get(actor.role, ()) if actor is not None else (),
            reason=reason,
        )
        self.notifier.report_rejected(report, actor.id)
        return report

    # ── Edit ──────────────────────────────────────────────────────────────

    def edit(self, report_id, actor, data) -> WeeklyReport:
        """Replace the payload. Centre leaders only while ``pending``; admin at
        any status, without touching the status.
        """
        report = self.repos.reports.require(report_id)
        self.gate.require(actor, Action.EDIT, Resource.for_report(report))

        current = report.status
        if actor.role != ROLE_ADMIN and current != STATUS_PENDING:
            raise StateConflictError(
                "WeeklyReport", report.id, current, "Only pending reports can be edited",
            )

        payload = parse_payload(data)

        values = payload.to_columns()
        values["updated_at"] = self._clock()
        if not self.repos.reports.compare_and_set(report.id, {"status": current}, values):
            self._lost_race(report, current)
        self.repos.commit()
        self.repos.expire(report)

        logger.info(
            "Report %s edited by %s (status=%s)", report.id, actor.id, current,
            extra={"report_id": report.id, "actor_id": actor.id, "event_type": "report_edited"},
        )
        return report

    # ── Read side ─────────────────────────────────────────────────────────

    def get(self, report_id, actor) -> WeeklyReport:
        report = self.repos.reports.require(report_id)
        self.gate.require(actor, Action.VIEW, Resource.for_report(report))
        return report

    def list_for(self, actor, *, status=None, week=None, limit=20, offset=0):
        """Reports visible to ``actor``, newest week first. Returns (items, total)."""
        if status and status not in REPORT_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'", details={"status": f"must be one of {list(REPORT_STATUSES)}"},
            )
        week_key = normalize_week(week) if week else None
        centre_ids = self.gate.visible_centre_ids(actor)
        stmt = self.repos.reports.scoped(centre_ids, status=status, week=week_key)
        return self.repos.reports.page(stmt, limit=limit, offset=offset)

    def summary(self, actor, *, start_week=None, end_week=None) -> dict:
        """Totals over ``district_approved`` reports in the actor's scope."""
        start = normalize_week(start_week) if start_week else None
        end = normalize_week(end_week) if end_week else None
        if start and end and start > end:
            raise ValidationError("start_week must not be after end_week", details={"start_week": "after end_week"})

        centre_ids = self.gate.visible_centre_ids(actor)
        totals = self.repos.reports.totals(
            centre_ids, status=STATUS_DISTRICT_APPROVED, start_week=start, end_week=end,
        )
        return {"start_week": start, "end_week": end, "totals": totals}

    # ── Internals ─────────────────────────────────────────────────────────

    def _transition(self, report_id, actor, action, transition, *, audit, allowed_from=None, reason=None):
        report = self.repos.reports.require(report_id)
        self.gate.require(actor, action, Resource.for_report(report))

        rule = REPORT_TRANSITIONS[transition]
        current = report.status
        permitted = rule["from"] if allowed_from is None else [s for s in rule["from"] if s in allowed_from]
        if current not in permitted:
            raise StateConflictError("WeeklyReport", report.id, current)

        values = {}
        if transition == "reject":
            if not isinstance(reason, str) or not reason.strip():
                raise ValidationError("A rejection reason is required", details={"reason": "required"})
            values["rejection_reason"] = reason.strip()

        now = self._clock()
        by_column, at_column = audit
        values.update({"status": rule["to"], by_column: actor.id, at_column: now, "updated_at": now})

        if not self.repos.reports.compare_and_set(report.id, {"status": current}, values):
            self._lost_race(report, current)
        self.repos.commit()
        self.repos.expire(report)

        logger.info(
            "Report %s: %s → %s by %s", report.id, current, rule["to"], actor.id,
            extra={"report_id": report.id, "actor_id": actor.id, "event_type": f"report_{transition}"},
        )
        return report

    def _lost_race(self, report, expected):
        report_id = report.id
        self.repos.rollback()
        fresh = self.repos.reports.get(report_id)
        current = fresh.status if fresh is not None else None
        logger.info(
            "Report %s changed concurrently (expected %s, now %s)", report_id, expected, current,
            extra={"report_id": report_id, "event_type": "report_state_conflict"},
        )
        raise StateConflictError(
            "WeeklyReport", report_id, current,
            f"Report {report_id} was changed by another actor (now {current}); refresh and retry",
        )
