from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.password import hash_password, verify_password, needs_rehash
from security.session import create_session, revoke_session
from security.csrf import issue_csrf_token
from utils.audit import log_event
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 8


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _user_payload(user: User):
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone_number": user.phone_number,
        "client_id": user.client_id,
        "roles": [r.name for r in user.roles],
    }


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip() or None
    phone_number = (data.get("phone_number") or "").strip() or None
    client_id = data.get("client_id")
    staff_code = data.get("staff_code")

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return jsonify(error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"), 400

    expected_code = current_app.config.get("STAFF_SIGNUP_CODE")
    as_staff = bool(staff_code) and bool(expected_code) and staff_code == expected_code
    if staff_code and not as_staff:
        log_event("REGISTER_FAIL_STAFF_CODE", metadata={"email": email})
        return jsonify(error="Invalid staff code"), 403

    if client_id is not None:
        try:
            client_id = int(client_id)
        except (TypeError, ValueError):
            return jsonify(error="client_id must be a number"), 400
    elif not as_staff:
        return jsonify(error="client_id required"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409
    if client_id is not None and User.query.filter_by(client_id=client_id).first():
        return jsonify(error="Client already registered"), 409

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        phone_number=phone_number,
        client_id=client_id,
    )
    db.session.add(user)
    db.session.flush()

    role = Role.query.filter_by(name="STAFF" if as_staff else "CLIENT").first()
    if role:
        user.roles.append(role)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"staff": as_staff})

    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.session.commit()

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "pantry_session")

    resp = jsonify(message="Login OK", user=_user_payload(user))
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_payload(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "pantry_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
