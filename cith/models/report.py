"""
CITH Weekly Report Tracker
Weekly report domain model.

One report per (centre, ISO week). Lifecycle:
    pending → area_approved → district_approved   (terminal success)
    pending | area_approved → rejected            (terminal failure)

Status only moves through ``REPORT_TRANSITIONS``; the lifecycle engine
(``cith.services.report_lifecycle``) is the only writer of ``status`` and
the approval/rejection audit columns.
"""

from datetime import datetime, timezone

from cith.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_PENDING = "pending"
STATUS_AREA_APPROVED = "area_approved"
STATUS_DISTRICT_APPROVED = "district_approved"
STATUS_REJECTED = "rejected"

REPORT_STATUSES = (STATUS_PENDING, STATUS_AREA_APPROVED, STATUS_DISTRICT_APPROVED, STATUS_REJECTED)

MEETING_MODES = ("physical", "virtual", "hybrid")

REPORT_TRANSITIONS = {
    "approve_area": {"from": [STATUS_PENDING], "to": STATUS_AREA_APPROVED},
    "approve_district": {"from": [STATUS_AREA_APPROVED], "to": STATUS_DISTRICT_APPROVED},
    "reject": {"from": [STATUS_PENDING, STATUS_AREA_APPROVED], "to": STATUS_REJECTED},
}

# camelCase payload key -> column name
PAYLOAD_COLUMNS = {
    "male": "male",
    "female": "female",
    "children": "children",
    "offerings": "offerings",
    "numberOfTestimonies": "number_of_testimonies",
    "numberOfFirstTimers": "number_of_first_timers",
    "firstTimersFollowedUp": "first_timers_followed_up",
    "firstTimersConvertedToCITH": "first_timers_converted_to_cith",
    "modeOfMeeting": "mode_of_meeting",
    "remarks": "remarks",
}


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class WeeklyReport(db.Model):
    __tablename__ = "weekly_reports"
    __table_args__ = (
        db.UniqueConstraint("cith_centre_id", "week", name="uq_weekly_report_centre_week"),
        db.Index("ix_weekly_reports_status_week", "status", "week"),
    )

    id = db.Column(db.Integer, primary_key=True)
    cith_centre_id = db.Column(
        db.Integer, db.ForeignKey("cith_centres.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    week = db.Column(db.String(8), nullable=False, comment="ISO week, e.g. 2024-W10")

    # Payload
    male = db.Column(db.Integer, nullable=False, default=0)
    female = db.Column(db.Integer, nullable=False, default=0)
    children = db.Column(db.Integer, nullable=False, default=0)
    offerings = db.Column(db.Integer, nullable=False, default=0)
    number_of_testimonies = db.Column(db.Integer, nullable=False, default=0)
    number_of_first_timers = db.Column(db.Integer, nullable=False, default=0)
    first_timers_followed_up = db.Column(db.Integer, nullable=False, default=0)
    first_timers_converted_to_cith = db.Column(db.Integer, nullable=False, default=0)
    mode_of_meeting = db.Column(db.String(20), nullable=False)
    remarks = db.Column(db.Text, default="")

    # Lifecycle
    status = db.Column(db.String(30), nullable=False, default=STATUS_PENDING)
    submitted_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    area_approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    area_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    district_approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    district_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def payload_dict(self):
        return {key: getattr(self, column) for key, column in PAYLOAD_COLUMNS.items()}

    def to_dict(self):
        return {
            "id": self.id,
            "cith_centre_id": self.cith_centre_id,
            "week": self.week,
            "data": self.payload_dict(),
            "status": self.status,
            "submitted_by": self.submitted_by_id,
            "submitted_at": _iso(self.submitted_at),
            "area_approved_by": self.area_approved_by_id,
            "area_approved_at": _iso(self.area_approved_at),
            "district_approved_by": self.district_approved_by_id,
            "district_approved_at": _iso(self.district_approved_at),
            "rejected_by": self.rejected_by_id,
            "rejected_at": _iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<WeeklyReport {self.id}: centre={self.cith_centre_id} {self.week} [{self.status}]>"
