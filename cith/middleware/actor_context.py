"""
Actor context middleware — establishes who is calling, sets g.actor_id.

Priority order:
  1. JWT (Authorization: Bearer <token>)         →  g.actor_id from the "sub" claim
  2. X-User-Id header, only when API_AUTH_ENABLED is "false" (dev / tests)

The middleware never rejects a request itself. Blueprints call
``cith.blueprints.current_actor()``, which raises AuthenticationError when
no valid identity was established.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from cith.services.jwt_service import decode_access_token, user_id_from_payload

logger = logging.getLogger(__name__)

# Paths that never carry an actor
SKIP_PREFIXES = (
    "/api/v1/health",
)


def _header_identity_allowed():
    return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() == "false"


def init_actor_context(app):
    """Register the actor-resolution before_request hook."""

    @app.before_request
    def _resolve_actor():
        g.actor_id = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            try:
                payload = decode_access_token(auth_header[7:])
                g.actor_id = user_id_from_payload(payload)
            except pyjwt.ExpiredSignatureError:
                g.auth_error = "Token has expired"
            except pyjwt.InvalidTokenError:
                g.auth_error = "Invalid token"
            if g.auth_error:
                logger.info(
                    "Rejected bearer token: %s", g.auth_error,
                    extra={"event_type": "auth_token_rejected", "path": path},
                )
            return

        if _header_identity_allowed():
            raw = request.headers.get("X-User-Id", "").strip()
            if raw:
                try:
                    g.actor_id = int(raw)
                except ValueError:
                    g.auth_error = "X-User-Id must be an integer"
