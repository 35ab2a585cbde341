from functools import wraps
from flask import g, jsonify

def is_staff(user=None) -> bool:
    user = user if user is not None else getattr(g, "user", None)
    return bool(user) and user.has_role("STAFF")

def require_roles(*role_names: str):
    """
    Usage: @require_roles("STAFF")
    ADMIN passes every check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not user.has_role(*role_names):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
