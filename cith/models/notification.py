"""
CITH Weekly Report Tracker
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from datetime import datetime, timezone

from cith.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {"report_submitted", "report_approved", "report_rejected", "system", "message"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event. Created only by the notification
    side-channel; afterwards only the read state changes.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    type = db.Column(db.String(30), default="system")
    action_url = db.Column(db.String(300), nullable=True)

    # Link to source entity
    report_id = db.Column(
        db.Integer, db.ForeignKey("weekly_reports.id", ondelete="SET NULL"), nullable=True,
    )
    message_id = db.Column(
        db.Integer, db.ForeignKey("messages.id", ondelete="SET NULL"), nullable=True,
    )

    # Read tracking
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "action_url": self.action_url,
            "metadata": {"report_id": self.report_id, "message_id": self.message_id},
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
