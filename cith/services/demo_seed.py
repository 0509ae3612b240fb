"""
Demo hierarchy seed for local development (``flask seed-demo``).

Layout:
    District 1 "Central"
        Area A1 ── Centre C1
        Area A2 ── Centre C2
        Zonal Z1 covers A1
    District 2 "North"
        Area B1 ── Centre C3

One user per role: leader_c1, leader_c2, leader_c3, area_a1, area_a2,
area_b1, zonal_z1, pastor_d1, pastor_d2, admin.
"""

import logging

from cith.models.auth import (
    ROLE_ADMIN,
    ROLE_AREA,
    ROLE_CENTRE,
    ROLE_PASTOR,
    ROLE_ZONAL,
    User,
    assignment_values,
)
from cith.models.hierarchy import AreaSupervisor, CithCentre, District, ZonalSupervisor

logger = logging.getLogger(__name__)

DEMO_EMAIL_DOMAIN = "demo.cith.local"


def seed_demo_hierarchy(session) -> dict:
    """Create the demo graph and users; returns every object keyed by its demo name.

    The caller owns the transaction: objects are flushed, not committed.
    """
    d1 = District(name="Central", district_number=1, pastor_name="Pastor One")
    d2 = District(name="North", district_number=2, pastor_name="Pastor Two")
    session.add_all([d1, d2])
    session.flush()

    a1 = AreaSupervisor(name="Area A1", district_id=d1.id)
    a2 = AreaSupervisor(name="Area A2", district_id=d1.id)
    b1 = AreaSupervisor(name="Area B1", district_id=d2.id)
    session.add_all([a1, a2, b1])
    session.flush()

    z1 = ZonalSupervisor(name="Zone Z1", district_id=d1.id, area_supervisors=[a1])
    c1 = CithCentre(name="Centre C1", location="Market Road", area_supervisor_id=a1.id)
    c2 = CithCentre(name="Centre C2", location="Church Street", area_supervisor_id=a2.id)
    c3 = CithCentre(name="Centre C3", location="Hill View", area_supervisor_id=b1.id)
    session.add_all([z1, c1, c2, c3])
    session.flush()

    people = {
        "leader_c1": (ROLE_CENTRE, c1.id),
        "leader_c2": (ROLE_CENTRE, c2.id),
        "leader_c3": (ROLE_CENTRE, c3.id),
        "area_a1": (ROLE_AREA, a1.id),
        "area_a2": (ROLE_AREA, a2.id),
        "area_b1": (ROLE_AREA, b1.id),
        "zonal_z1": (ROLE_ZONAL, z1.id),
        "pastor_d1": (ROLE_PASTOR, d1.id),
        "pastor_d2": (ROLE_PASTOR, d2.id),
        "admin": (ROLE_ADMIN, None),
    }
    users = {}
    for name, (role, target_id) in people.items():
        user = User(
            email=f"{name}@{DEMO_EMAIL_DOMAIN}",
            name=name.replace("_", " ").title(),
            role=role,
            **assignment_values(role, target_id),
        )
        session.add(user)
        users[name] = user
    session.flush()

    logger.info("Seeded demo hierarchy: 2 districts, 3 areas, 1 zone, 3 centres, %d users", len(users))
    return {
        "d1": d1, "d2": d2,
        "a1": a1, "a2": a2, "b1": b1,
        "z1": z1,
        "c1": c1, "c2": c2, "c3": c3,
        **users,
    }
