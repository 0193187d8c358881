from functools import wraps
from flask import current_app, g, jsonify, request
from models import db
from models.user import User

def load_current_user():
    # The identity proxy in front of this service authenticates the caller
    header = current_app.config.get("IDENTITY_HEADER", "X-User-Id")
    raw = (request.headers.get(header) or "").strip()
    g.user = None
    if not raw.isdigit():
        return
    g.user = db.session.get(User, int(raw))

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

def is_staff(user) -> bool:
    return user is not None and user.has_any_role("KASIR", "ADMIN")
