"""
CITH Weekly Report Tracker
Organisational hierarchy models.

Models:
    - District: root of the hierarchy, numbered 1..6
    - AreaSupervisor: owned by exactly one District
    - ZonalSupervisor: spans a set of AreaSupervisors within one District
    - CithCentre: owned by exactly one AreaSupervisor; originates weekly reports

Chain resolution lives in ``cith.services.hierarchy``; the models only carry
the upward foreign keys and never rely on lazy joins for scope decisions.
"""

from datetime import datetime, timezone

from cith.models import db


# ── Constants ────────────────────────────────────────────────────────────────

DISTRICT_NUMBER_MIN = 1
DISTRICT_NUMBER_MAX = 6

ENTITY_KINDS = {"district", "area_supervisor", "zonal_supervisor", "cith_centre"}


def _utcnow():
    return datetime.now(timezone.utc)


zonal_supervisor_areas = db.Table(
    "zonal_supervisor_areas",
    db.Column(
        "zonal_supervisor_id", db.Integer,
        db.ForeignKey("zonal_supervisors.id", ondelete="CASCADE"), primary_key=True,
    ),
    db.Column(
        "area_supervisor_id", db.Integer,
        db.ForeignKey("area_supervisors.id", ondelete="CASCADE"), primary_key=True,
    ),
)


class District(db.Model):
    __tablename__ = "districts"
    __table_args__ = (
        db.CheckConstraint(
            f"district_number BETWEEN {DISTRICT_NUMBER_MIN} AND {DISTRICT_NUMBER_MAX}",
            name="ck_district_number_range",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    district_number = db.Column(db.Integer, nullable=False, unique=True)
    pastor_name = db.Column(db.String(200), default="Unassigned")
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "district_number": self.district_number,
            "pastor_name": self.pastor_name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<District {self.district_number}: {self.name}>"


class AreaSupervisor(db.Model):
    __tablename__ = "area_supervisors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    district_id = db.Column(
        db.Integer, db.ForeignKey("districts.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    supervisor_name = db.Column(db.String(200), default="Unassigned")
    contact_email = db.Column(db.String(200), nullable=True)
    contact_phone = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "district_id": self.district_id,
            "supervisor_name": self.supervisor_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AreaSupervisor {self.id}: {self.name}>"


class ZonalSupervisor(db.Model):
    __tablename__ = "zonal_supervisors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    district_id = db.Column(
        db.Integer, db.ForeignKey("districts.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    supervisor_name = db.Column(db.String(200), default="Unassigned")
    contact_email = db.Column(db.String(200), nullable=True)
    contact_phone = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    area_supervisors = db.relationship(
        "AreaSupervisor", secondary=zonal_supervisor_areas, lazy="selectin",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "district_id": self.district_id,
            "area_supervisor_ids": sorted(a.id for a in self.area_supervisors),
            "supervisor_name": self.supervisor_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ZonalSupervisor {self.id}: {self.name}>"


class CithCentre(db.Model):
    __tablename__ = "cith_centres"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    area_supervisor_id = db.Column(
        db.Integer, db.ForeignKey("area_supervisors.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    location = db.Column(db.String(300), nullable=False)
    leader_name = db.Column(db.String(200), default="Unassigned")
    contact_email = db.Column(db.String(200), nullable=True)
    contact_phone = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "area_supervisor_id": self.area_supervisor_id,
            "location": self.location,
            "leader_name": self.leader_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<CithCentre {self.id}: {self.name}>"
