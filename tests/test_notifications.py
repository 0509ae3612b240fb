"""
Notification fan-out, read ledger, and hierarchy-restricted messaging.
"""

import pytest
from sqlalchemy import select

from cith.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from cith.models.notification import Notification


def _recipients(session, **filters):
    rows = session.execute(select(Notification).filter_by(**filters)).scalars()
    return sorted(n.recipient_id for n in rows)


class TestFanOut:
    def test_submit_notifies_reviewers_up_the_chain(self, org, services, session, payload):
        report = services.reports.submit(org.leader_c1, org.c1.id, "2024-W10", payload)
        assert _recipients(session, report_id=report.id, type="report_submitted") == sorted(
            [org.area_a1.id, org.zonal_z1.id, org.pastor_d1.id]
        )

    def test_submit_in_uncovered_area_skips_zonal(self, org, services, session, payload):
        report = services.reports.submit(org.leader_c2, org.c2.id, "2024-W10", payload)
        assert _recipients(session, report_id=report.id) == sorted([org.area_a2.id, org.pastor_d1.id])

    def test_area_approval_notifies_submitter_and_pastor(self, org, services, session, payload):
        report = services.reports.submit(org.leader_c1, org.c1.id, "2024-W10", payload)
        services.reports.approve_area(report.id, org.area_a1)

        assert _recipients(session, report_id=report.id, type="report_approved") == [org.leader_c1.id]
        pastor_notes = session.execute(
            select(Notification).where(
                Notification.recipient_id == org.pastor_d1.id, Notification.report_id == report.id,
            )
        ).scalars().all()
        assert len(pastor_notes) == 2
        assert all(n.action_url == f"/reports/{report.id}" for n in pastor_notes)

    def test_district_approval_notifies_submitter_only(self, org, services, session, payload):
        report = services.reports.submit(org.leader_c1, org.c1.id, "2024-W10", payload)
        services.reports.approve_area(report.id, org.area_a1)
        before = len(session.execute(select(Notification)).scalars().all())
        services.reports.approve_district(report.id, org.pastor_d1)

        rows = session.execute(select(Notification).order_by(Notification.id)).scalars().all()
        assert len(rows) == before + 1
        assert rows[-1].recipient_id == org.leader_c1.id

    def test_actor_never_notified_of_own_action(self, org, services, session, payload):
        report = services.reports.submit(org.admin, org.c1.id, "2024-W10", payload)
        services.reports.reject(report.id, org.admin, "Test data")
        assert org.admin.id not in _recipients(session, report_id=report.id)

    def test_inactive_reviewers_skipped(self, org, services, session, payload):
        org.area_a1.is_active = False
        session.commit()
        report = services.reports.submit(org.leader_c1, org.c1.id, "2024-W10", payload)
        assert org.area_a1.id not in _recipients(session, report_id=report.id)


class TestReadLedger:
    @pytest.fixture()
    def inbox(self, org, services, payload):
        services.reports.submit(org.leader_c1, org.c1.id, "2024-W10", payload)
        services.reports.submit(org.leader_c2, org.c2.id, "2024-W10", payload)
        items, _ = services.notifier.list_for_recipient(org.pastor_d1.id)
        return items

    def test_list_and_unread_count(self, org, services, inbox):
        assert len(inbox) == 2
        assert services.notifier.unread_count(org.pastor_d1.id) == 2
        items, total = services.notifier.list_for_recipient(org.pastor_d1.id, limit=1)
        assert total == 2
        assert len(items) == 1

    def test_mark_read_is_idempotent(self, org, services, inbox):
        first = services.notifier.mark_read(inbox[0].id, org.pastor_d1.id)
        read_at = first.read_at
        assert first.is_read is True
        again = services.notifier.mark_read(inbox[0].id, org.pastor_d1.id)
        assert again.read_at == read_at
        assert services.notifier.unread_count(org.pastor_d1.id) == 1
        _, total = services.notifier.list_for_recipient(org.pastor_d1.id, unread_only=True)
        assert total == 1

    def test_cannot_mark_someone_elses(self, org, services, inbox):
        with pytest.raises(NotFoundError):
            services.notifier.mark_read(inbox[0].id, org.pastor_d2.id)
        with pytest.raises(NotFoundError):
            services.notifier.mark_read(9999, org.pastor_d1.id)

    def test_mark_all_read(self, org, services, inbox):
        assert services.notifier.mark_all_read(org.pastor_d1.id) == 2
        assert services.notifier.mark_all_read(org.pastor_d1.id) == 0
        assert services.notifier.unread_count(org.pastor_d1.id) == 0


class TestMessagingRules:
    @pytest.mark.parametrize(
        "sender, recipient, allowed",
        [
            ("leader_c1", "area_a1", True),
            ("leader_c1", "area_a2", False),
            ("leader_c1", "leader_c2", False),
            ("leader_c1", "admin", True),
            ("area_a1", "leader_c1", True),
            ("area_a1", "leader_c2", False),
            ("area_a1", "pastor_d1", True),
            ("area_a1", "pastor_d2", False),
            ("pastor_d1", "leader_c2", True),
            ("pastor_d1", "area_b1", False),
            ("pastor_d1", "zonal_z1", False),
            ("zonal_z1", "leader_c1", False),
            ("admin", "leader_c3", True),
        ],
    )
    def test_can_message(self, org, services, sender, recipient, allowed):
        assert services.messaging.can_message(getattr(org, sender), getattr(org, recipient)) is allowed


class TestMessaging:
    def test_send_notifies_recipient(self, org, services, session):
        message = services.messaging.send(org.leader_c1, org.area_a1.id, "Attendance", "We grew this week")
        assert message.priority == "normal"
        notes = session.execute(
            select(Notification).where(Notification.message_id == message.id)
        ).scalars().all()
        assert [(n.recipient_id, n.type) for n in notes] == [(org.area_a1.id, "message")]
        assert notes[0].action_url == f"/messages/{message.id}"

    def test_send_outside_hierarchy_denied(self, org, services):
        with pytest.raises(AuthorizationError):
            services.messaging.send(org.leader_c1, org.pastor_d2.id, "Hi", "Hello")

    def test_send_to_missing_user(self, org, services):
        with pytest.raises(NotFoundError):
            services.messaging.send(org.admin, 9999, "Hi", "Hello")

    def test_send_validates_fields(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.messaging.send(org.admin, org.leader_c1.id, "  ", "", priority="shouting")
        assert set(exc.value.details) == {"subject", "content", "priority"}

    def test_reply_must_belong_to_conversation(self, org, services):
        original = services.messaging.send(org.leader_c1, org.area_a1.id, "Q", "Question")
        reply = services.messaging.send(org.area_a1, org.leader_c1.id, "Re: Q", "Answer", reply_to_id=original.id)
        assert reply.reply_to_id == original.id
        with pytest.raises(ValidationError):
            services.messaging.send(org.admin, org.leader_c2.id, "Re: Q", "Hijack", reply_to_id=original.id)

    def test_reading_marks_read(self, org, services):
        message = services.messaging.send(org.leader_c1, org.area_a1.id, "Attendance", "Details")
        assert services.messaging.unread_count(org.area_a1) == 1

        # The sender reading it does not mark it read
        assert services.messaging.get_message(message.id, org.leader_c1).is_read is False
        assert services.messaging.get_message(message.id, org.area_a1).is_read is True
        assert services.messaging.unread_count(org.area_a1) == 0

    def test_outsider_cannot_read(self, org, services):
        message = services.messaging.send(org.leader_c1, org.area_a1.id, "Attendance", "Details")
        with pytest.raises(AuthorizationError):
            services.messaging.get_message(message.id, org.area_a2)

    def test_boxes_and_bulk_mark_read(self, org, services):
        ids = [
            services.messaging.send(org.leader_c1, org.area_a1.id, f"Week {n}", "Numbers").id
            for n in range(3)
        ]
        _, inbox_total = services.messaging.list_messages(org.area_a1)
        _, sent_total = services.messaging.list_messages(org.leader_c1, box="sent")
        assert inbox_total == sent_total == 3

        # Only the recipient's own unread messages count
        assert services.messaging.mark_read(org.leader_c1, ids) == 0
        assert services.messaging.mark_read(org.area_a1, ids[:2]) == 2
        _, unread = services.messaging.list_messages(org.area_a1, is_read=False)
        assert unread == 1

        with pytest.raises(ValidationError):
            services.messaging.mark_read(org.area_a1, "all")
        with pytest.raises(ValidationError):
            services.messaging.list_messages(org.area_a1, box="trash")
