from functools import wraps
from typing import Optional

from flask import g, jsonify
from security.session import get_session_from_request

def load_current_user():
    """Attach the logged-in user (or None) to g; token links work without one."""
    sess = get_session_from_request()
    g.session = sess
    g.user = sess.user if sess else None

def current_user_id() -> Optional[int]:
    user = g.get("user")
    return user.id if user is not None else None

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("user") is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
