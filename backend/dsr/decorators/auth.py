from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from dsr.services.policy import current_actor


def require_roles(*roles: str):
    """Authenticated, active user; when roles are given the user's role must be one of them."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            actor = current_actor()
            if roles and actor.role not in roles:
                abort(403, description='Insufficient permissions')
            return fn(*args, **kwargs)
        return wrapper
    return outer


login_required = require_roles()
