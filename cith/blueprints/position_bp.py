"""
CITH Weekly Report Tracker
Position-change blueprint.

Endpoints:
    POST   /api/v1/position-requests                 {new_role, target_id}
    GET    /api/v1/position-requests/mine
    GET    /api/v1/position-requests                 (admin)  ?status=
    POST   /api/v1/position-requests/<id>/review     (admin)  {decision, rejection_reason?}
    DELETE /api/v1/position-requests/<id>            cancel own pending request
    GET    /api/v1/position-requests/availability    ?role=&target_id=
"""

from flask import Blueprint, jsonify, request

from cith.blueprints import current_actor, json_body
from cith.services.wiring import get_services

position_bp = Blueprint("position_requests", __name__, url_prefix="/api/v1")


@position_bp.route("/position-requests", methods=["POST"])
def request_position_change():
    actor = current_actor()
    data = json_body()
    change = get_services().positions.request(actor, data.get("new_role"), data.get("target_id"))
    return jsonify(change.to_dict()), 201


@position_bp.route("/position-requests/mine", methods=["GET"])
def my_position_requests():
    actor = current_actor()
    items = get_services().positions.list_for_user(actor)
    return jsonify({"items": [c.to_dict() for c in items], "total": len(items)})


@position_bp.route("/position-requests", methods=["GET"])
def list_position_requests():
    actor = current_actor()
    items = get_services().positions.list_all(actor, request.args.get("status") or None)
    return jsonify({"items": [c.to_dict() for c in items], "total": len(items)})


@position_bp.route("/position-requests/<int:request_id>/review", methods=["POST"])
def review_position_request(request_id):
    actor = current_actor()
    data = json_body()
    change = get_services().positions.review(
        request_id, actor, data.get("decision"), data.get("rejection_reason"),
    )
    return jsonify(change.to_dict())


@position_bp.route("/position-requests/<int:request_id>", methods=["DELETE"])
def cancel_position_request(request_id):
    actor = current_actor()
    get_services().positions.cancel(request_id, actor)
    return jsonify({"message": "Position change request cancelled"})


@position_bp.route("/position-requests/availability", methods=["GET"])
def position_availability():
    current_actor()
    result = get_services().positions.check_availability(
        request.args.get("role"), request.args.get("target_id"),
    )
    return jsonify(result)
