"""
CITH Weekly Report Tracker
Hierarchy blueprint — districts, area supervisors, zonal supervisors, centres.

Reads are open to any authenticated user; creation is admin-only.

Endpoints:
    /api/v1/districts                   GET, POST
    /api/v1/districts/<id>              GET
    /api/v1/area-supervisors            GET (?district_id=), POST
    /api/v1/area-supervisors/<id>       GET
    /api/v1/zonal-supervisors           GET (?district_id=), POST
    /api/v1/zonal-supervisors/<id>      GET
    /api/v1/centres                     GET (?area_supervisor_id=), POST
    /api/v1/centres/<id>                GET
    /api/v1/centres/<id>/chain          GET  resolved centre → area → district
"""

from flask import Blueprint, jsonify, request

from cith.blueprints import current_actor, json_body
from cith.services.wiring import get_services

hierarchy_bp = Blueprint("hierarchy", __name__, url_prefix="/api/v1")

# url segment -> (entity kind, list filter param, registry create method)
_COLLECTIONS = {
    "districts": ("district", None, "create_district"),
    "area-supervisors": ("area_supervisor", "district_id", "create_area_supervisor"),
    "zonal-supervisors": ("zonal_supervisor", "district_id", "create_zonal_supervisor"),
    "centres": ("cith_centre", "area_supervisor_id", "create_centre"),
}


def _list(collection):
    current_actor()
    kind, filter_param, _ = _COLLECTIONS[collection]
    filters = {}
    if filter_param:
        filters[filter_param] = request.args.get(filter_param, type=int)
    items = get_services().registry.list(kind, **filters)
    return jsonify({"items": [e.to_dict() for e in items], "total": len(items)})


def _create(collection):
    actor = current_actor()
    _, _, create = _COLLECTIONS[collection]
    entity = getattr(get_services().registry, create)(actor, json_body())
    return jsonify(entity.to_dict()), 201


def _get(collection, entity_id):
    current_actor()
    kind, _, _ = _COLLECTIONS[collection]
    return jsonify(get_services().registry.get(kind, entity_id).to_dict())


@hierarchy_bp.route("/districts", methods=["GET"])
def list_districts():
    return _list("districts")


@hierarchy_bp.route("/districts", methods=["POST"])
def create_district():
    return _create("districts")


@hierarchy_bp.route("/districts/<int:entity_id>", methods=["GET"])
def get_district(entity_id):
    return _get("districts", entity_id)


@hierarchy_bp.route("/area-supervisors", methods=["GET"])
def list_area_supervisors():
    return _list("area-supervisors")


@hierarchy_bp.route("/area-supervisors", methods=["POST"])
def create_area_supervisor():
    return _create("area-supervisors")


@hierarchy_bp.route("/area-supervisors/<int:entity_id>", methods=["GET"])
def get_area_supervisor(entity_id):
    return _get("area-supervisors", entity_id)


@hierarchy_bp.route("/zonal-supervisors", methods=["GET"])
def list_zonal_supervisors():
    return _list("zonal-supervisors")


@hierarchy_bp.route("/zonal-supervisors", methods=["POST"])
def create_zonal_supervisor():
    return _create("zonal-supervisors")


@hierarchy_bp.route("/zonal-supervisors/<int:entity_id>", methods=["GET"])
def get_zonal_supervisor(entity_id):
    return _get("zonal-supervisors", entity_id)


@hierarchy_bp.route("/centres", methods=["GET"])
def list_centres():
    return _list("centres")


@hierarchy_bp.route("/centres", methods=["POST"])
def create_centre():
    return _create("centres")


@hierarchy_bp.route("/centres/<int:entity_id>", methods=["GET"])
def get_centre(entity_id):
    return _get("centres", entity_id)


@hierarchy_bp.route("/centres/<int:entity_id>/chain", methods=["GET"])
def get_centre_chain(entity_id):
    current_actor()
    chain = get_services().registry.centre_chain(entity_id)
    return jsonify({
        "centre": chain.centre.to_dict(),
        "area_supervisor": chain.area.to_dict(),
        "district": chain.district.to_dict(),
    })
