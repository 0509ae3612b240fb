"""
Hierarchy Directory — resolves ownership chains over the org graph.

Every scope decision goes through an explicit chain value returned from
here (centre → area → district); nothing downstream relies on lazy
relationship loading to walk the graph.

Usage:
    directory = HierarchyDirectory(repos.orgs)
    chain = directory.resolve_centre_chain(centre_id)
    chain.area.id, chain.district.id

    directory.members_of("district", district_id)   # -> set of centre ids

Raises:
    NotFoundError when the starting entity or any upward link is missing
    (including dangling references left behind by out-of-band deletes).
"""

from __future__ import annotations

from dataclasses import dataclass

from cith.core.exceptions import NotFoundError, ValidationError
from cith.models.hierarchy import ENTITY_KINDS, AreaSupervisor, CithCentre, District


@dataclass(frozen=True)
class AreaChain:
    area: AreaSupervisor
    district: District


@dataclass(frozen=True)
class CentreChain:
    centre: CithCentre
    area: AreaSupervisor
    district: District

    @property
    def ids(self) -> dict:
        return {
            "cith_centre_id": self.centre.id,
            "area_supervisor_id": self.area.id,
            "district_id": self.district.id,
        }


class HierarchyDirectory:
    """Read-only view of the District / Area / Zonal / Centre graph."""

    def __init__(self, orgs):
        self.orgs = orgs

    def resolve_area_chain(self, area_id) -> AreaChain:
        area = self.orgs.area(area_id)
        if area is None:
            raise NotFoundError(resource="AreaSupervisor", resource_id=area_id)
        district = self.orgs.district(area.district_id)
        if district is None:
            raise NotFoundError(resource="District", resource_id=area.district_id)
        return AreaChain(area=area, district=district)

    def resolve_centre_chain(self, centre_id) -> CentreChain:
        centre = self.orgs.centre(centre_id)
        if centre is None:
            raise NotFoundError(resource="CithCentre", resource_id=centre_id)
        area_chain = self.resolve_area_chain(centre.area_supervisor_id)
        return CentreChain(centre=centre, area=area_chain.area, district=area_chain.district)

    def zonal_area_ids(self, zonal_id) -> set[int]:
        if self.orgs.zonal(zonal_id) is None:
            raise NotFoundError(resource="ZonalSupervisor", resource_id=zonal_id)
        return self.orgs.zonal_area_ids(zonal_id)

    def members_of(self, kind: str, entity_id) -> set[int]:
        """Return the ids of every centre under the given entity, transitively."""
        if kind not in ENTITY_KINDS:
            raise ValidationError(f"Unknown entity kind '{kind}'", details={"kind": sorted(ENTITY_KINDS)})

        if kind == "cith_centre":
            self.resolve_centre_chain(entity_id)
            return {entity_id}
        if kind == "area_supervisor":
            self.resolve_area_chain(entity_id)
            return self.orgs.centre_ids_under_areas({entity_id})
        if kind == "zonal_supervisor":
            return self.orgs.centre_ids_under_areas(self.zonal_area_ids(entity_id))

        if self.orgs.district(entity_id) is None:
            raise NotFoundError(resource="District", resource_id=entity_id)
        return self.orgs.centre_ids_under_areas(self.orgs.area_ids_in_district(entity_id))
