"""
Per-request service wiring.

Builds the repository bundle on the Flask-SQLAlchemy scoped session and
composes the services from it, using the app config for policy switches.
The result is cached on ``flask.g`` so one request shares one unit of work.

Usage:
    svc = get_services()
    report = svc.reports.submit(actor, centre_id, week, data)
"""

from dataclasses import dataclass

from flask import current_app, g

from cith.models import db
from cith.repositories import Repositories
from cith.services.authorization import AuthorizationGate
from cith.services.hierarchy import HierarchyDirectory
from cith.services.messaging import MessagingService
from cith.services.notification import NotificationService
from cith.services.org_registry import OrgRegistry
from cith.services.position_change import PositionChangeWorkflow
from cith.services.report_lifecycle import ReportLifecycle


@dataclass
class Services:
    repos: Repositories
    directory: HierarchyDirectory
    gate: AuthorizationGate
    notifier: NotificationService
    reports: ReportLifecycle
    positions: PositionChangeWorkflow
    messaging: MessagingService
    registry: OrgRegistry


def build_services(session, config) -> Services:
    """Compose every service over ``session`` using ``config`` (a mapping)."""
    repos = Repositories.for_session(session)
    directory = HierarchyDirectory(repos.orgs)
    gate = AuthorizationGate(directory, zonal_area_approval=config.get("ZONAL_CAN_AREA_APPROVE", True))
    notifier = NotificationService(repos, directory, enabled=config.get("NOTIFICATIONS_ENABLED", True))
    return Services(
        repos=repos,
        directory=directory,
        gate=gate,
        notifier=notifier,
        reports=ReportLifecycle(repos, gate, notifier),
        positions=PositionChangeWorkflow(
            repos, gate, notifier, max_centre_leaders=config.get("MAX_CENTRE_LEADERS", 2),
        ),
        messaging=MessagingService(repos, directory, notifier),
        registry=OrgRegistry(repos, directory),
    )


def get_services() -> Services:
    services = getattr(g, "_cith_services", None)
    if services is None:
        services = build_services(db.session, current_app.config)
        g._cith_services = services
    return services
