from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from services.errors import MissingTokenError


def bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def jwt_required():
    """Require a valid access token; the user lands in g.current_user."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            if not token:
                raise MissingTokenError("Missing or invalid Authorization header")
            sessions = current_app.extensions["session_manager"]
            g.current_user = sessions.authenticate(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
