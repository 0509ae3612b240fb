"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance is
created in cith/__init__.py with no default limits; this module applies
granular limits per route category.

Usage:
    from cith.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def rate_limit_key():
    """Key by authenticated actor when known, else remote IP."""
    actor_id = getattr(g, "actor_id", None)
    if actor_id:
        return f"actor:{actor_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per actor, falling back to remote IP):
        - Workflow endpoints (reports, position requests, messages, hierarchy): 60/minute
        - Notification endpoints (polled by the UI for unread counts):          200/minute
        - Health check: exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name in ("reports", "position_requests", "messages", "hierarchy"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("notifications")
    if bp:
        limiter.limit(READ_LIMIT, key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info("Rate limiter configured: workflow=%s, notifications=%s", WRITE_LIMIT, READ_LIMIT)
