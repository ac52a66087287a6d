from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from services.errors import AuthRequired


def components():
    """The AuthComponents wired by create_app()."""
    return current_app.extensions["auth"]


def bearer_token() -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise AuthRequired("Access token required")
    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise AuthRequired("Access token required")
    return token


def jwt_required():
    """
    Require a valid access token for an account that is still active.
    The decoded claims land on g.current_claims and g.current_user_id.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            claims = components().issuer.validate_access_token(bearer_token())
            g.current_claims = claims
            g.current_user_id = claims["userId"]
            components().auth.require_active(g.current_user_id)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user currently holds ANY of the required roles.
    The role is re-read from the store so a demotion takes effect before the token expires.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            g.current_user = components().auth.require_role(g.current_user_id, req)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
