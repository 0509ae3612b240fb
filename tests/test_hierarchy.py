"""
Hierarchy directory + org registry tests.

Covers chain resolution (centre → area → district), transitive membership,
dangling-link detection, and the invariants enforced when admins create
districts, areas, zonal supervisors and centres.
"""

import pytest

from cith.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from cith.models.hierarchy import AreaSupervisor, CithCentre
from cith.services.hierarchy import HierarchyDirectory


class TestChainResolution:
    def test_centre_chain_resolves_area_and_district(self, org, services):
        chain = services.directory.resolve_centre_chain(org.c1.id)
        assert chain.centre.id == org.c1.id
        assert chain.area.id == org.a1.id
        assert chain.district.id == org.d1.id
        assert chain.ids == {
            "cith_centre_id": org.c1.id,
            "area_supervisor_id": org.a1.id,
            "district_id": org.d1.id,
        }

    def test_area_chain(self, org, services):
        chain = services.directory.resolve_area_chain(org.b1.id)
        assert chain.district.id == org.d2.id

    def test_missing_centre_raises_not_found(self, org, services):
        with pytest.raises(NotFoundError):
            services.directory.resolve_centre_chain(9999)

    def test_dangling_area_link_raises_not_found(self):
        class _Orgs:
            def centre(self, pk):
                return CithCentre(id=pk, name="Orphan", location="Nowhere", area_supervisor_id=42)

            def area(self, pk):
                return None

        with pytest.raises(NotFoundError) as exc:
            HierarchyDirectory(_Orgs()).resolve_centre_chain(1)
        assert exc.value.resource == "AreaSupervisor"

    def test_dangling_district_link_raises_not_found(self):
        class _Orgs:
            def area(self, pk):
                return AreaSupervisor(id=pk, name="Orphan", district_id=7)

            def district(self, pk):
                return None

        with pytest.raises(NotFoundError) as exc:
            HierarchyDirectory(_Orgs()).resolve_area_chain(3)
        assert exc.value.resource == "District"


class TestMembership:
    def test_district_members_are_all_centres_under_its_areas(self, org, services):
        assert services.directory.members_of("district", org.d1.id) == {org.c1.id, org.c2.id}
        assert services.directory.members_of("district", org.d2.id) == {org.c3.id}

    def test_area_members(self, org, services):
        assert services.directory.members_of("area_supervisor", org.a2.id) == {org.c2.id}

    def test_zonal_members_follow_assigned_areas(self, org, services):
        assert services.directory.members_of("zonal_supervisor", org.z1.id) == {org.c1.id}

    def test_centre_is_its_own_member(self, org, services):
        assert services.directory.members_of("cith_centre", org.c3.id) == {org.c3.id}

    def test_unknown_kind_is_validation_error(self, org, services):
        with pytest.raises(ValidationError):
            services.directory.members_of("parish", org.d1.id)

    def test_missing_district_is_not_found(self, org, services):
        with pytest.raises(NotFoundError):
            services.directory.members_of("district", 9999)


class TestRegistryCreate:
    def test_admin_creates_district(self, org, services):
        district = services.registry.create_district(org.admin, {"name": "East", "district_number": 3})
        assert district.id is not None
        assert district.pastor_name == "Unassigned"

    def test_district_number_out_of_range(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.registry.create_district(org.admin, {"name": "Far", "district_number": 7})
        assert "district_number" in exc.value.details

    def test_duplicate_district_number_conflicts(self, org, services):
        with pytest.raises(ConflictError):
            services.registry.create_district(org.admin, {"name": "Dup", "district_number": 1})

    def test_non_admin_cannot_create(self, org, services):
        with pytest.raises(AuthorizationError):
            services.registry.create_district(org.pastor_d1, {"name": "East", "district_number": 3})

    def test_area_requires_existing_district(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.registry.create_area_supervisor(org.admin, {"name": "Lost", "district_id": 9999})
        assert "district_id" in exc.value.details

    def test_centre_requires_existing_area(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.registry.create_centre(
                org.admin, {"name": "C9", "location": "Somewhere", "area_supervisor_id": 9999},
            )
        assert "area_supervisor_id" in exc.value.details

    def test_centre_created_under_area(self, org, services):
        centre = services.registry.create_centre(
            org.admin, {"name": "C4", "location": "Lake Side", "area_supervisor_id": org.a2.id},
        )
        assert services.directory.resolve_centre_chain(centre.id).district.id == org.d1.id

    def test_zonal_areas_must_share_its_district(self, org, services):
        with pytest.raises(ValidationError) as exc:
            services.registry.create_zonal_supervisor(
                org.admin,
                {"name": "Z2", "district_id": org.d1.id, "area_supervisor_ids": [org.a2.id, org.b1.id]},
            )
        assert "area_supervisor_ids" in exc.value.details

    def test_zonal_created_with_areas(self, org, services):
        zonal = services.registry.create_zonal_supervisor(
            org.admin,
            {"name": "Z2", "district_id": org.d1.id, "area_supervisor_ids": [org.a1.id, org.a2.id]},
        )
        assert services.directory.zonal_area_ids(zonal.id) == {org.a1.id, org.a2.id}

    def test_get_missing_entity_is_not_found(self, org, services):
        with pytest.raises(NotFoundError):
            services.registry.get("district", 9999)
