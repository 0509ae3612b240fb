"""
Org entity registry — create / list / get for districts, area supervisors,
zonal supervisors and centres.

Creation is admin-only and enforces the graph invariants before anything is
written:
    - district_number in 1..6 and unique
    - an area's district exists
    - a centre's area exists
    - a zonal supervisor's areas exist and all belong to its district
"""

import logging

from sqlalchemy.exc import IntegrityError

from cith.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from cith.models.hierarchy import (
    DISTRICT_NUMBER_MAX,
    DISTRICT_NUMBER_MIN,
    ENTITY_KINDS,
    AreaSupervisor,
    CithCentre,
    District,
    ZonalSupervisor,
)

logger = logging.getLogger(__name__)

_RESOURCE_NAMES = {
    "district": "District",
    "area_supervisor": "AreaSupervisor",
    "zonal_supervisor": "ZonalSupervisor",
    "cith_centre": "CithCentre",
}


def _text(data, field, errors, *, required=True, max_length=200):
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors[field] = "required"
        return None
    if not isinstance(value, str):
        errors[field] = "must be a string"
        return None
    value = value.strip()
    if len(value) > max_length:
        errors[field] = f"must be at most {max_length} characters"
    return value


def _int(data, field, errors):
    value = data.get(field)
    if value is None:
        errors[field] = "required"
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        errors[field] = "must be an integer"
        return None
    return value


class OrgRegistry:
    """Admin-side maintenance of the hierarchy graph."""

    def __init__(self, repos, directory):
        self.repos = repos
        self.directory = directory

    # ── Read ──────────────────────────────────────────────────────────────

    def list(self, kind, **filters):
        self._check_kind(kind)
        return self.repos.orgs.list(kind, **{k: v for k, v in filters.items() if v is not None})

    def get(self, kind, entity_id):
        self._check_kind(kind)
        entity = self.repos.orgs.entity(kind, entity_id)
        if entity is None:
            raise NotFoundError(resource=_RESOURCE_NAMES[kind], resource_id=entity_id)
        return entity

    def centre_chain(self, centre_id):
        return self.directory.resolve_centre_chain(centre_id)

    # ── Create ────────────────────────────────────────────────────────────

    def create_district(self, actor, data):
        self._require_admin(actor, "create-district")
        errors = {}
        name = _text(data, "name", errors)
        number = _int(data, "district_number", errors)
        if number is not None and not DISTRICT_NUMBER_MIN <= number <= DISTRICT_NUMBER_MAX:
            errors["district_number"] = f"must be between {DISTRICT_NUMBER_MIN} and {DISTRICT_NUMBER_MAX}"
        pastor_name = _text(data, "pastor_name", errors, required=False)
        description = _text(data, "description", errors, required=False, max_length=2000)
        if errors:
            raise ValidationError("Invalid district", details=errors)

        if self.repos.orgs.district_by_number(number) is not None:
            raise ConflictError("District", "district_number", str(number))

        district = District(
            name=name,
            district_number=number,
            pastor_name=pastor_name or "Unassigned",
            description=description or "",
        )
        return self._save(district, actor, conflict=("District", "district_number", str(number)))

    def create_area_supervisor(self, actor, data):
        self._require_admin(actor, "create-area-supervisor")
        errors = {}
        name = _text(data, "name", errors)
        district_id = _int(data, "district_id", errors)
        fields = self._contact_fields(data, errors)
        if district_id is not None and self.repos.orgs.district(district_id) is None:
            errors["district_id"] = "must reference an existing district"
        if errors:
            raise ValidationError("Invalid area supervisor", details=errors)

        area = AreaSupervisor(name=name, district_id=district_id, **fields)
        return self._save(area, actor)

    def create_zonal_supervisor(self, actor, data):
        self._require_admin(actor, "create-zonal-supervisor")
        errors = {}
        name = _text(data, "name", errors)
        district_id = _int(data, "district_id", errors)
        fields = self._contact_fields(data, errors)
        if district_id is not None and self.repos.orgs.district(district_id) is None:
            errors["district_id"] = "must reference an existing district"

        area_ids = data.get("area_supervisor_ids") or []
        areas = []
        if not isinstance(area_ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in area_ids):
            errors["area_supervisor_ids"] = "must be a list of integers"
        else:
            for area_id in sorted(set(area_ids)):
                area = self.repos.orgs.area(area_id)
                if area is None:
                    errors["area_supervisor_ids"] = f"area supervisor {area_id} does not exist"
                    break
                if district_id is not None and area.district_id != district_id:
                    errors["area_supervisor_ids"] = f"area supervisor {area_id} is not in district {district_id}"
                    break
                areas.append(area)
        if errors:
            raise ValidationError("Invalid zonal supervisor", details=errors)

        zonal = ZonalSupervisor(name=name, district_id=district_id, area_supervisors=areas, **fields)
        return self._save(zonal, actor)

    def create_centre(self, actor, data):
        self._require_admin(actor, "create-centre")
        errors = {}
        name = _text(data, "name", errors)
        location = _text(data, "location", errors, max_length=300)
        area_id = _int(data, "area_supervisor_id", errors)
        fields = self._contact_fields(data, errors)
        leader_name = _text(data, "leader_name", errors, required=False)
        if area_id is not None and self.repos.orgs.area(area_id) is None:
            errors["area_supervisor_id"] = "must reference an existing area supervisor"
        if errors:
            raise ValidationError("Invalid centre", details=errors)

        centre = CithCentre(
            name=name,
            location=location,
            area_supervisor_id=area_id,
            leader_name=leader_name or "Unassigned",
            **fields,
        )
        return self._save(centre, actor)

    # ── Internals ─────────────────────────────────────────────────────────

    @staticmethod
    def _check_kind(kind):
        if kind not in ENTITY_KINDS:
            raise ValidationError(f"Unknown entity kind '{kind}'", details={"kind": sorted(ENTITY_KINDS)})

    @staticmethod
    def _contact_fields(data, errors):
        return {
            "contact_email": _text(data, "contact_email", errors, required=False),
            "contact_phone": _text(data, "contact_phone", errors, required=False, max_length=50),
        }

    @staticmethod
    def _require_admin(actor, action):
        if actor is None or not actor.is_active or not actor.is_admin:
            logger.warning(
                "Hierarchy change denied: actor=%s action=%s", getattr(actor, "id", None), action,
                extra={"actor_id": getattr(actor, "id", None), "event_type": "authorization_denied",
                       "deny_reason": "role"},
            )
            raise AuthorizationError(action, "role")

    def _save(self, entity, actor, conflict=None):
        self.repos.orgs.add(entity)
        try:
            self.repos.commit()
        except IntegrityError:
            self.repos.rollback()
            if conflict:
                raise ConflictError(*conflict) from None
            raise
        logger.info(
            "Created %r", entity,
            extra={"actor_id": actor.id, "event_type": "hierarchy_created"},
        )
        return entity
