"""
Per-entity repositories over an injected SQLAlchemy session.

Services receive a ``Repositories`` bundle instead of reaching for a global
session, so a unit of work is exactly "one bundle, one commit".

Conditional writes:
    ``compare_and_set(pk, expected, values)`` issues

        UPDATE <table> SET <values> WHERE id = :pk AND <col> = :expected ...

    and returns True only when exactly one row changed. A False return means
    the row moved on since it was read (or vanished); callers translate that
    into ``StateConflictError``. The session identity map is deliberately not
    synchronised: callers expire or re-read what they need after commit.

Usage:
    repos = Repositories.for_session(db.session)
    report = repos.reports.require(report_id)
    if not repos.reports.compare_and_set(report.id, {"status": "pending"}, {"status": "area_approved"}):
        ...
    repos.commit()
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import delete, func, select, update

from cith.core.exceptions import NotFoundError
from cith.models.auth import ROLE_ASSIGNMENT_FIELD, User
from cith.models.hierarchy import AreaSupervisor, CithCentre, District, ZonalSupervisor, zonal_supervisor_areas
from cith.models.message import Message
from cith.models.notification import Notification
from cith.models.position_change import REQUEST_PENDING, PositionChangeRequest
from cith.models.report import WeeklyReport


class _Repository:
    """Base: get / require / add / delete / compare_and_set for one model."""

    model = None

    def __init__(self, session):
        self.session = session

    def get(self, pk):
        if pk is None:
            return None
        return self.session.get(self.model, pk)

    def require(self, pk):
        obj = self.get(pk)
        if obj is None:
            raise NotFoundError(resource=self.model.__name__, resource_id=pk)
        return obj

    def add(self, obj):
        self.session.add(obj)
        return obj

    def delete(self, obj):
        self.session.delete(obj)

    def compare_and_set(self, pk, expected: dict, values: dict) -> bool:
        stmt = update(self.model).where(self.model.id == pk)
        for column, value in expected.items():
            col = getattr(self.model, column)
            stmt = stmt.where(col.is_(None) if value is None else col == value)
        result = self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_if(self, pk, expected: dict) -> bool:
        stmt = delete(self.model).where(self.model.id == pk)
        for column, value in expected.items():
            stmt = stmt.where(getattr(self.model, column) == value)
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1

    def refresh(self, obj):
        self.session.refresh(obj)
        return obj


# ── Organisation graph ──────────────────────────────────────────────────────


class OrgEntityRepository:
    """Read access to the District / Area / Zonal / Centre graph."""

    _MODELS = {
        "district": District,
        "area_supervisor": AreaSupervisor,
        "zonal_supervisor": ZonalSupervisor,
        "cith_centre": CithCentre,
    }

    def __init__(self, session):
        self.session = session

    def entity(self, kind, pk):
        if pk is None:
            return None
        return self.session.get(self._MODELS[kind], pk)

    def district(self, pk):
        return self.entity("district", pk)

    def area(self, pk):
        return self.entity("area_supervisor", pk)

    def zonal(self, pk):
        return self.entity("zonal_supervisor", pk)

    def centre(self, pk):
        return self.entity("cith_centre", pk)

    def add(self, obj):
        self.session.add(obj)
        return obj

    def list(self, kind, **filters):
        model = self._MODELS[kind]
        stmt = select(model).filter_by(**filters).order_by(model.id)
        return list(self.session.execute(stmt).scalars())

    def district_by_number(self, number):
        return self.session.execute(
            select(District).where(District.district_number == number)
        ).scalar_one_or_none()

    def area_ids_in_district(self, district_id) -> set[int]:
        rows = self.session.execute(
            select(AreaSupervisor.id).where(AreaSupervisor.district_id == district_id)
        ).scalars()
        return set(rows)

    def centre_ids_under_areas(self, area_ids) -> set[int]:
        if not area_ids:
            return set()
        rows = self.session.execute(
            select(CithCentre.id).where(CithCentre.area_supervisor_id.in_(list(area_ids)))
        ).scalars()
        return set(rows)

    def zonal_area_ids(self, zonal_id) -> set[int]:
        rows = self.session.execute(
            select(zonal_supervisor_areas.c.area_supervisor_id)
            .where(zonal_supervisor_areas.c.zonal_supervisor_id == zonal_id)
        ).scalars()
        return set(rows)

    def zonal_ids_covering_area(self, area_id) -> set[int]:
        rows = self.session.execute(
            select(zonal_supervisor_areas.c.zonal_supervisor_id)
            .where(zonal_supervisor_areas.c.area_supervisor_id == area_id)
        ).scalars()
        return set(rows)


# ── Actors ──────────────────────────────────────────────────────────────────


class ActorRepository(_Repository):
    model = User

    def holders(self, role, entity_ids, *, active_only=True) -> list[User]:
        """Users holding ``role`` assigned to any of ``entity_ids``."""
        field = ROLE_ASSIGNMENT_FIELD[role]
        if not field or not entity_ids:
            return []
        stmt = select(User).where(User.role == role, getattr(User, field).in_(list(entity_ids)))
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        return list(self.session.execute(stmt.order_by(User.id)).scalars())

    def count_holders(self, role, entity_id, *, exclude_user_id=None) -> int:
        field = ROLE_ASSIGNMENT_FIELD[role]
        stmt = select(func.count(User.id)).where(User.role == role)
        if field:
            stmt = stmt.where(getattr(User, field) == entity_id)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return self.session.execute(stmt).scalar_one()


# ── Reports ─────────────────────────────────────────────────────────────────


class ReportRepository(_Repository):
    model = WeeklyReport

    def find_for_week(self, centre_id, week):
        return self.session.execute(
            select(WeeklyReport).where(
                WeeklyReport.cith_centre_id == centre_id,
                WeeklyReport.week == week,
            )
        ).scalar_one_or_none()

    def scoped(self, centre_ids=None, *, status=None, week=None):
        """Select for reports in ``centre_ids`` (None = unrestricted), newest week first."""
        stmt = select(WeeklyReport)
        if centre_ids is not None:
            stmt = stmt.where(WeeklyReport.cith_centre_id.in_(list(centre_ids)))
        if status:
            stmt = stmt.where(WeeklyReport.status == status)
        if week:
            stmt = stmt.where(WeeklyReport.week == week)
        return stmt.order_by(WeeklyReport.week.desc(), WeeklyReport.id.desc())

    def page(self, stmt, *, limit, offset):
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        items = list(self.session.execute(stmt.limit(limit).offset(offset)).scalars())
        return items, total

    def totals(self, centre_ids=None, *, status, start_week=None, end_week=None):
        stmt = select(
            func.coalesce(func.sum(WeeklyReport.male), 0).label("totalMale"),
            func.coalesce(func.sum(WeeklyReport.female), 0).label("totalFemale"),
            func.coalesce(func.sum(WeeklyReport.children), 0).label("totalChildren"),
            func.coalesce(func.sum(WeeklyReport.offerings), 0).label("totalOfferings"),
            func.coalesce(func.sum(WeeklyReport.number_of_testimonies), 0).label("totalTestimonies"),
            func.coalesce(func.sum(WeeklyReport.number_of_first_timers), 0).label("totalFirstTimers"),
            func.coalesce(func.sum(WeeklyReport.first_timers_followed_up), 0).label("totalFirstTimersFollowedUp"),
            func.coalesce(func.sum(WeeklyReport.first_timers_converted_to_cith), 0).label("totalFirstTimersConverted"),
            func.count(WeeklyReport.id).label("totalReports"),
        ).where(WeeklyReport.status == status)
        if centre_ids is not None:
            stmt = stmt.where(WeeklyReport.cith_centre_id.in_(list(centre_ids)))
        if start_week:
            stmt = stmt.where(WeeklyReport.week >= start_week)
        if end_week:
            stmt = stmt.where(WeeklyReport.week <= end_week)
        return dict(self.session.execute(stmt).one()._mapping)


# ── Position-change requests ────────────────────────────────────────────────


class PositionRequestRepository(_Repository):
    model = PositionChangeRequest

    def pending_for_user(self, user_id):
        return self.session.execute(
            select(PositionChangeRequest).where(
                PositionChangeRequest.user_id == user_id,
                PositionChangeRequest.status == REQUEST_PENDING,
            )
        ).scalar_one_or_none()

    def for_user(self, user_id):
        stmt = (
            select(PositionChangeRequest)
            .where(PositionChangeRequest.user_id == user_id)
            .order_by(PositionChangeRequest.created_at.desc(), PositionChangeRequest.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def all(self, status=None):
        stmt = select(PositionChangeRequest)
        if status:
            stmt = stmt.where(PositionChangeRequest.status == status)
        stmt = stmt.order_by(PositionChangeRequest.created_at.desc(), PositionChangeRequest.id.desc())
        return list(self.session.execute(stmt).scalars())


# ── Notifications & messages ────────────────────────────────────────────────


class NotificationRepository(_Repository):
    model = Notification

    def for_recipient(self, recipient_id, *, unread_only=False, limit=20, offset=0):
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        total = self.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        items = list(self.session.execute(stmt.limit(limit).offset(offset)).scalars())
        return items, total

    def unread_count(self, recipient_id) -> int:
        return self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
        ).scalar_one()

    def mark_all_read(self, recipient_id, read_at) -> int:
        result = self.session.execute(
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class MessageRepository(_Repository):
    model = Message

    def inbox(self, user_id, *, is_read=None, limit=20, offset=0):
        stmt = select(Message).where(Message.to_id == user_id)
        if is_read is not None:
            stmt = stmt.where(Message.is_read.is_(is_read))
        return self._page(stmt, limit, offset)

    def sent(self, user_id, *, limit=20, offset=0):
        return self._page(select(Message).where(Message.from_id == user_id), limit, offset)

    def _page(self, stmt, limit, offset):
        total = self.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc())
        return list(self.session.execute(stmt.limit(limit).offset(offset)).scalars()), total

    def unread_count(self, user_id) -> int:
        return self.session.execute(
            select(func.count(Message.id)).where(Message.to_id == user_id, Message.is_read.is_(False))
        ).scalar_one()

    def mark_read(self, message_ids, recipient_id, read_at) -> int:
        if not message_ids:
            return 0
        result = self.session.execute(
            update(Message)
            .where(
                Message.id.in_(list(message_ids)),
                Message.to_id == recipient_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


# ── Bundle ──────────────────────────────────────────────────────────────────


@dataclass
class Repositories:
    """All repositories bound to one session (one unit of work)."""

    session: object
    orgs: OrgEntityRepository
    actors: ActorRepository
    reports: ReportRepository
    position_requests: PositionRequestRepository
    notifications: NotificationRepository
    messages: MessageRepository

    @classmethod
    def for_session(cls, session) -> "Repositories":
        return cls(
            session=session,
            orgs=OrgEntityRepository(session),
            actors=ActorRepository(session),
            reports=ReportRepository(session),
            position_requests=PositionRequestRepository(session),
            notifications=NotificationRepository(session),
            messages=MessageRepository(session),
        )

    def flush(self):
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def expire(self, obj):
        self.session.expire(obj)
