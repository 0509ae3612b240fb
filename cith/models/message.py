"""
CITH Weekly Report Tracker
Direct message model (user-to-user, hierarchy-restricted).
"""

from datetime import datetime, timezone

from cith.models import db


MESSAGE_PRIORITIES = {"low", "normal", "high", "urgent"}
MESSAGE_CATEGORIES = {"general", "report", "announcement", "prayer_request", "administrative"}


class Message(db.Model):
    __tablename__ = "messages"
    __table_args__ = (
        db.Index("ix_messages_to_read", "to_id", "is_read"),
    )

    id = db.Column(db.Integer, primary_key=True)
    from_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    to_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = db.Column(db.String(300), nullable=False)
    content = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(20), default="normal")
    category = db.Column(db.String(30), default="general")
    reply_to_id = db.Column(db.Integer, db.ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)

    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "subject": self.subject,
            "content": self.content,
            "priority": self.priority,
            "category": self.category,
            "reply_to_id": self.reply_to_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Message {self.id}: {self.from_id}->{self.to_id} {self.subject[:30]}>"
