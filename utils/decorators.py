from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from api import get_session_manager, request_deadline


def _access_token_from_request() -> str | None:
    """Bearer header first, then the access-token cookie set at login."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return request.cookies.get(current_app.config.get("ACCESS_COOKIE_NAME", "accessToken"))


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _access_token_from_request()
            if not token:
                abort(401, description="Missing or invalid Authorization header")

            manager = get_session_manager()
            # TokenExpired / TokenMalformed propagate to the 401 error handler
            claims = manager.authenticate(token)

            g.deadline = request_deadline()
            user = manager.current_user(claims, deadline=g.deadline)
            if not user:
                abort(401, description="User not found")
            g.current_user = user
            g.current_user_id = user.id
            g.access_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator
