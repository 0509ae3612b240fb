"""
CITH Weekly Report Tracker
Notification + direct message blueprints.

Endpoints:
    NOTIF  /api/v1/notifications                   GET   ?unread_only=true&limit=&offset=
           /api/v1/notifications/unread-count      GET
           /api/v1/notifications/<id>/read         POST
           /api/v1/notifications/read-all          POST

    MSG    /api/v1/messages                        GET   ?box=inbox|sent&is_read=&limit=&offset=
           /api/v1/messages                        POST  {to_id, subject, content, priority?, category?, reply_to_id?}
           /api/v1/messages/<id>                   GET   (marks read for the recipient)
           /api/v1/messages/unread-count           GET
           /api/v1/messages/mark-read              POST  {message_ids: [...]}
"""

from flask import Blueprint, jsonify, request

from cith.blueprints import current_actor, json_body, page_params, page_response
from cith.services.wiring import get_services

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1")
message_bp = Blueprint("messages", __name__, url_prefix="/api/v1")


def _flag(name):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.lower() == "true"


# ═══════════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════════════════════

@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    actor = current_actor()
    limit, offset = page_params()
    items, total = get_services().notifier.list_for_recipient(
        actor.id, unread_only=bool(_flag("unread_only")), limit=limit, offset=offset,
    )
    return jsonify(page_response(items, total, limit, offset))


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def notification_unread_count():
    actor = current_actor()
    return jsonify({"unread_count": get_services().notifier.unread_count(actor.id)})


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
def mark_notification_read(notification_id):
    actor = current_actor()
    notif = get_services().notifier.mark_read(notification_id, actor.id)
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_notifications_read():
    actor = current_actor()
    count = get_services().notifier.mark_all_read(actor.id)
    return jsonify({"marked_read": count})


# ═══════════════════════════════════════════════════════════════════════════
#  MESSAGES
# ═══════════════════════════════════════════════════════════════════════════

@message_bp.route("/messages", methods=["POST"])
def send_message():
    actor = current_actor()
    data = json_body()
    message = get_services().messaging.send(
        actor,
        data.get("to_id"),
        data.get("subject"),
        data.get("content"),
        priority=data.get("priority"),
        category=data.get("category"),
        reply_to_id=data.get("reply_to_id"),
    )
    return jsonify(message.to_dict()), 201


@message_bp.route("/messages", methods=["GET"])
def list_messages():
    actor = current_actor()
    limit, offset = page_params()
    items, total = get_services().messaging.list_messages(
        actor,
        box=request.args.get("box", "inbox"),
        is_read=_flag("is_read"),
        limit=limit,
        offset=offset,
    )
    return jsonify(page_response(items, total, limit, offset))


@message_bp.route("/messages/unread-count", methods=["GET"])
def message_unread_count():
    actor = current_actor()
    return jsonify({"unread_count": get_services().messaging.unread_count(actor)})


@message_bp.route("/messages/<int:message_id>", methods=["GET"])
def get_message(message_id):
    actor = current_actor()
    return jsonify(get_services().messaging.get_message(message_id, actor).to_dict())


@message_bp.route("/messages/mark-read", methods=["POST"])
def mark_messages_read():
    actor = current_actor()
    data = json_body()
    count = get_services().messaging.mark_read(actor, data.get("message_ids"))
    return jsonify({"marked_read": count})
