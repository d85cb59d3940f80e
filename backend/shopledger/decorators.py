# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def require_api_token(f):
    """
    Require the shared bearer token for callables and job endpoints.

    SECURITY: Returns 401 if FUNCTIONS_API_TOKEN is set and the request's
    Authorization header does not carry it. With no token configured the
    endpoints are open (local development and tests).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("FUNCTIONS_API_TOKEN")
        if not expected:
            return f(*args, **kwargs)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not hmac.compare_digest(token, expected):
            current_app.logger.warning(
                "Rejected API token for %s %s from %s",
                request.method, request.path, request.remote_addr,
            )
            return jsonify({"error": "Invalid token"}), 401

        return f(*args, **kwargs)

    return decorated_function


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
