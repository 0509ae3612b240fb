"""
CITH Weekly Report Tracker
Notification Service — fan-out side-channel and per-user read ledger.

Fan-out runs after the primary transition has committed and is best-effort:
it commits on its own, and any failure is logged and rolled back without
touching the report/request that triggered it.

Recipients:
    report submitted      → area supervisors, covering zonal supervisors, district pastors
    report area approved  → submitter, district pastors
    report district approved / rejected → submitter
    message sent          → message recipient
    position change reviewed → requester
The sender is never notified of their own action.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from cith.core.exceptions import NotFoundError
from cith.models.auth import ROLE_AREA, ROLE_PASTOR, ROLE_ZONAL
from cith.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates notifications for lifecycle events and serves read-state queries."""

    def __init__(self, repos, directory, *, enabled: bool = True):
        self.repos = repos
        self.directory = directory
        self.enabled = enabled

    # ── Fan-out ───────────────────────────────────────────────────────────

    def report_submitted(self, report, sender_id):
        def build():
            chain = self.directory.resolve_centre_chain(report.cith_centre_id)
            actors = self.repos.actors
            recipients = (
                actors.holders(ROLE_AREA, {chain.area.id})
                + actors.holders(ROLE_ZONAL, self.repos.orgs.zonal_ids_covering_area(chain.area.id))
                + actors.holders(ROLE_PASTOR, {chain.district.id})
            )
            return [
                self._notification(
                    user.id, sender_id,
                    title="New Report Submitted",
                    message=f"A weekly report for {report.week} has been submitted from "
                            f"{chain.centre.name} and is awaiting review.",
                    type="report_submitted",
                    report_id=report.id,
                )
                for user in recipients
            ]

        return self._deliver("report_submitted", build, sender_id)

    def report_approved(self, report, sender_id, stage):
        def build():
            items = [
                self._notification(
                    report.submitted_by_id, sender_id,
                    title="Report Approved",
                    message=f"Your weekly report for {report.week} has been {stage} approved.",
                    type="report_approved",
                    report_id=report.id,
                ),
            ]
            if stage == "area":
                chain = self.directory.resolve_centre_chain(report.cith_centre_id)
                for pastor in self.repos.actors.holders(ROLE_PASTOR, {chain.district.id}):
                    items.append(self._notification(
                        pastor.id, sender_id,
                        title="Report Pending District Approval",
                        message=f"A report from {chain.centre.name} for {report.week} has been "
                                f"area approved and is pending your final approval.",
                        type="report_submitted",
                        report_id=report.id,
                    ))
            return items

        return self._deliver(f"report_{stage}_approved", build, sender_id)

    def report_rejected(self, report, sender_id):
        def build():
            return [
                self._notification(
                    report.submitted_by_id, sender_id,
                    title="Report Rejected",
                    message=f"Your weekly report for {report.week} has been rejected. "
                            f"Reason: {report.rejection_reason}",
                    type="report_rejected",
                    report_id=report.id,
                ),
            ]

        return self._deliver("report_rejected", build, sender_id)

    def message_sent(self, message):
        def build():
            return [
                self._notification(
                    message.to_id, message.from_id,
                    title="New Message",
                    message=message.subject,
                    type="message",
                    message_id=message.id,
                    action_url=f"/messages/{message.id}",
                ),
            ]

        return self._deliver("message_sent", build, message.from_id)

    def position_change_reviewed(self, change_request, reviewer_id):
        def build():
            if change_request.status == "approved":
                text = f"Your request to become {change_request.new_role} has been approved."
            else:
                text = f"Your request to become {change_request.new_role} has been rejected."
                if change_request.rejection_reason:
                    text += f" Reason: {change_request.rejection_reason}"
            return [
                self._notification(
                    change_request.user_id, reviewer_id,
                    title="Position Change Reviewed",
                    message=text,
                    type="system",
                    action_url="/position-requests/mine",
                ),
            ]

        return self._deliver("position_change_reviewed", build, reviewer_id)

    # ── Query ─────────────────────────────────────────────────────────────

    def list_for_recipient(self, recipient_id, *, unread_only=False, limit=20, offset=0):
        """Notifications for a recipient, newest first. Returns (items, total)."""
        return self.repos.notifications.for_recipient(
            recipient_id, unread_only=unread_only, limit=limit, offset=offset,
        )

    def unread_count(self, recipient_id) -> int:
        return self.repos.notifications.unread_count(recipient_id)

    # ── Actions ───────────────────────────────────────────────────────────

    def mark_read(self, notification_id, recipient_id):
        """Mark one of the recipient's notifications read. Already-read is a no-op."""
        notif = self.repos.notifications.get(notification_id)
        if notif is None or notif.recipient_id != recipient_id:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        if notif.is_read:
            return notif

        changed = self.repos.notifications.compare_and_set(
            notification_id,
            {"recipient_id": recipient_id, "is_read": False},
            {"is_read": True, "read_at": _utcnow()},
        )
        self.repos.commit()
        if changed:
            self.repos.notifications.refresh(notif)
        return notif

    def mark_all_read(self, recipient_id) -> int:
        """Mark every unread notification of the recipient read; returns how many changed."""
        count = self.repos.notifications.mark_all_read(recipient_id, _utcnow())
        self.repos.commit()
        return count

    # ── Internals ─────────────────────────────────────────────────────────

    @staticmethod
    def _notification(recipient_id, sender_id, *, title, message, type,
                      report_id=None, message_id=None, action_url=None):
        if action_url is None and report_id is not None:
            action_url = f"/reports/{report_id}"
        return Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            title=title,
            message=message,
            type=type,
            report_id=report_id,
            message_id=message_id,
            action_url=action_url,
        )

    def _deliver(self, event_type, build, sender_id):
        """Build, persist and commit one event's notifications; never raises."""
        if not self.enabled:
            logger.debug("Notifications disabled, dropping %s", event_type)
            return []
        try:
            seen = set()
            created = []
            for notif in build():
                if notif.recipient_id is None or notif.recipient_id == sender_id:
                    continue
                if notif.recipient_id in seen:
                    continue
                seen.add(notif.recipient_id)
                self.repos.notifications.add(notif)
                created.append(notif)
            self.repos.commit()
        except Exception:
            self.repos.rollback()
            logger.exception(
                "Notification fan-out failed for %s; dropped", event_type,
                extra={"event_type": event_type, "actor_id": sender_id},
            )
            return []

        logger.info(
            "Fan-out %s: %d notification(s)", event_type, len(created),
            extra={"event_type": event_type, "actor_id": sender_id},
        )
        return created


def _utcnow():
    return datetime.now(timezone.utc)
