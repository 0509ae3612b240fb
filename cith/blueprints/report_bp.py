"""
CITH Weekly Report Tracker
Report blueprint — weekly report submission and the approval chain.

Endpoints:
    POST   /api/v1/reports                  submit  {cith_centre_id?, week, data}
    GET    /api/v1/reports                  list in scope  ?status=&week=&limit=&offset=
    GET    /api/v1/reports/summary          totals of district-approved reports  ?start_week=&end_week=
    GET    /api/v1/reports/<id>             detail
    PUT    /api/v1/reports/<id>             edit payload  {data}
    POST   /api/v1/reports/<id>/approve     {stage: "area" | "district"}
    POST   /api/v1/reports/<id>/reject      {reason}
"""

from flask import Blueprint, jsonify, request

from cith.blueprints import current_actor, json_body, page_params, page_response
from cith.services.wiring import get_services

report_bp = Blueprint("reports", __name__, url_prefix="/api/v1")


@report_bp.route("/reports", methods=["POST"])
def submit_report():
    actor = current_actor()
    data = json_body()
    report = get_services().reports.submit(
        actor, data.get("cith_centre_id"), data.get("week"), data.get("data"),
    )
    return jsonify(report.to_dict()), 201


@report_bp.route("/reports", methods=["GET"])
def list_reports():
    actor = current_actor()
    limit, offset = page_params()
    items, total = get_services().reports.list_for(
        actor,
        status=request.args.get("status") or None,
        week=request.args.get("week") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify(page_response(items, total, limit, offset))


@report_bp.route("/reports/summary", methods=["GET"])
def report_summary():
    actor = current_actor()
    summary = get_services().reports.summary(
        actor,
        start_week=request.args.get("start_week") or None,
        end_week=request.args.get("end_week") or None,
    )
    return jsonify(summary)


@report_bp.route("/reports/<int:report_id>", methods=["GET"])
def get_report(report_id):
    actor = current_actor()
    return jsonify(get_services().reports.get(report_id, actor).to_dict())


@report_bp.route("/reports/<int:report_id>", methods=["PUT"])
def edit_report(report_id):
    actor = current_actor()
    data = json_body()
    report = get_services().reports.edit(report_id, actor, data.get("data"))
    return jsonify(report.to_dict())


@report_bp.route("/reports/<int:report_id>/approve", methods=["POST"])
def approve_report(report_id):
    actor = current_actor()
    data = json_body()
    report = get_services().reports.approve(report_id, actor, data.get("stage"))
    return jsonify(report.to_dict())


@report_bp.route("/reports/<int:report_id>/reject", methods=["POST"])
def reject_report(report_id):
    actor = current_actor()
    data = json_body()
    report = get_services().reports.reject(report_id, actor, data.get("reason"))
    return jsonify(report.to_dict())
