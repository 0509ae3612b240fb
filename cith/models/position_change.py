"""
CITH Weekly Report Tracker
Position-change request model.

Lifecycle: pending → approved | rejected (both terminal).
The request snapshots the user's role/assignment at submission time so an
approval can be checked against it, and so reviewers see what is changing.
"""

from datetime import datetime, timezone

from cith.models import db


REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"

REQUEST_STATUSES = (REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED)


class PositionChangeRequest(db.Model):
    __tablename__ = "position_change_requests"
    __table_args__ = (
        # One open request per user; closes the double-submit race at the DB level
        db.Index(
            "uq_position_change_one_pending",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    current_role = db.Column(db.String(30), nullable=False)
    current_target_id = db.Column(db.Integer, nullable=True)
    new_role = db.Column(db.String(30), nullable=False)
    target_id = db.Column(db.Integer, nullable=True, comment="Entity id in the table matching new_role")
    status = db.Column(db.String(20), nullable=False, default=REQUEST_PENDING)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "current_role": self.current_role,
            "current_target_id": self.current_target_id,
            "new_role": self.new_role,
            "target_id": self.target_id,
            "status": self.status,
            "reviewed_by": self.reviewed_by_id,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "rejection_reason": self.rejection_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<PositionChangeRequest {self.id}: user={self.user_id} {self.current_role}->{self.new_role} [{self.status}]>"
