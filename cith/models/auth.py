"""
Auth Models — users (actors) and their organisational assignment.

A user holds exactly one role and at most one owning-entity reference, and
the reference column must match the role (a ``cith_centre`` leader points at
a CithCentre, an ``area_supervisor`` at an AreaSupervisor, ...). Admins carry
no assignment.

Only the position-change workflow mutates ``role`` and the assignment
columns once a user exists.
"""

from datetime import datetime, timezone

from cith.models import db


# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_CENTRE = "cith_centre"
ROLE_AREA = "area_supervisor"
ROLE_ZONAL = "zonal_supervisor"
ROLE_PASTOR = "district_pastor"
ROLE_ADMIN = "admin"

ROLES = (ROLE_CENTRE, ROLE_AREA, ROLE_ZONAL, ROLE_PASTOR, ROLE_ADMIN)

# role -> assignment column on User (None = no assignment)
ROLE_ASSIGNMENT_FIELD = {
    ROLE_CENTRE: "cith_centre_id",
    ROLE_AREA: "area_supervisor_id",
    ROLE_ZONAL: "zonal_supervisor_id",
    ROLE_PASTOR: "district_id",
    ROLE_ADMIN: None,
}

ASSIGNMENT_FIELDS = tuple(f for f in ROLE_ASSIGNMENT_FIELD.values() if f)

# Roles whose position admits a single holder, enforced by a partial unique index
SINGLE_HOLDER_FIELDS = {
    role: field for role, field in ROLE_ASSIGNMENT_FIELD.items() if role not in (ROLE_CENTRE, ROLE_ADMIN)
}

# role -> org entity kind its assignment points at
ROLE_ENTITY_KIND = {
    ROLE_CENTRE: "cith_centre",
    ROLE_AREA: "area_supervisor",
    ROLE_ZONAL: "zonal_supervisor",
    ROLE_PASTOR: "district",
}


def assignment_values(role, target_id):
    """Return the full assignment column mapping for ``role`` bound to ``target_id``.

    Every assignment column is present; all but the role's own are None.
    """
    values = {field: None for field in ASSIGNMENT_FIELDS}
    field = ROLE_ASSIGNMENT_FIELD[role]
    if field:
        values[field] = target_id
    return values


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('cith_centre', 'area_supervisor', 'zonal_supervisor', 'district_pastor', 'admin')",
            name="ck_users_role",
        ),
        # One holder per district, area and zone; centres take several leaders
        *(
            db.Index(
                f"uq_users_one_{role}",
                field,
                unique=True,
                sqlite_where=db.text(f"role = '{role}'"),
                postgresql_where=db.text(f"role = '{role}'"),
            )
            for role, field in SINGLE_HOLDER_FIELDS.items()
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(50), default="")
    role = db.Column(db.String(30), nullable=False, index=True)

    cith_centre_id = db.Column(
        db.Integer, db.ForeignKey("cith_centres.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    area_supervisor_id = db.Column(
        db.Integer, db.ForeignKey("area_supervisors.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    zonal_supervisor_id = db.Column(
        db.Integer, db.ForeignKey("zonal_supervisors.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    district_id = db.Column(
        db.Integer, db.ForeignKey("districts.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def assigned_entity_id(self):
        """The id of the entity this user's role points at, or None."""
        field = ROLE_ASSIGNMENT_FIELD.get(self.role)
        return getattr(self, field) if field else None

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def assignment_consistent(self):
        """True when no assignment column other than the role's own is set."""
        own = ROLE_ASSIGNMENT_FIELD.get(self.role)
        return all(getattr(self, f) is None for f in ASSIGNMENT_FIELDS if f != own)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "role": self.role,
            "cith_centre_id": self.cith_centre_id,
            "area_supervisor_id": self.area_supervisor_id,
            "zonal_supervisor_id": self.zonal_supervisor_id,
            "district_id": self.district_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
