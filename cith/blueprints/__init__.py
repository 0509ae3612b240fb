"""
CITH Weekly Report Tracker
Blueprint registry and shared request helpers.
"""

from flask import g, request
from werkzeug.exceptions import BadRequest

from cith.core.exceptions import AuthenticationError
from cith.services.wiring import get_services


def page_params(default_limit=20, max_limit=200):
    """Read limit/offset pagination from the query string.

    Query params:
        limit  — max items (default 20, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (limit, offset)
    """
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def json_body() -> dict:
    """Return the request's JSON object; an empty body reads as {}.

    Raises BadRequest (400) for a body that is not valid JSON or not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise BadRequest("Malformed JSON body")
        return {}
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def current_actor():
    """Load the calling user from g.actor_id, or raise AuthenticationError."""
    if getattr(g, "auth_error", None):
        raise AuthenticationError(g.auth_error)
    actor_id = getattr(g, "actor_id", None)
    if actor_id is None:
        raise AuthenticationError()
    actor = get_services().repos.actors.get(actor_id)
    if actor is None:
        raise AuthenticationError("Unknown user")
    return actor


def page_response(items, total, limit, offset):
    return {
        "items": [item.to_dict() for item in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
