from datetime import datetime, timedelta

import bcrypt

from models import db
from models.session import Session
from models.user import User
from models.audit_log import AuditLog
from security.password import needs_rehash
from security.session import purge_dead_sessions

from conftest import PASSWORD, ApiClient, make_user


def _register(http, **fields):
    body = {"email": "new@example.com", "password": PASSWORD, "client_id": 321}
    body.update(fields)
    return http.post("/auth/register", json=body)


def test_register_and_login_as_client(app, anon):
    resp = _register(anon.http, full_name="New Client")
    assert resp.status_code == 201

    api = ApiClient(app)
    me = api.login("new@example.com").get_json()["user"]
    assert me["roles"] == ["CLIENT"]
    assert me["client_id"] == 321
    assert api.get("/auth/me").get_json()["email"] == "new@example.com"


def test_register_rules(app, anon):
    assert _register(anon.http, email="nope").status_code == 400
    assert _register(anon.http, password="short").status_code == 400
    assert _register(anon.http, client_id=None).status_code == 400
    assert _register(anon.http, client_id="abc").status_code == 400

    assert _register(anon.http).status_code == 201
    assert _register(anon.http).status_code == 409
    assert _register(anon.http, email="other@example.com").status_code == 409


def test_staff_signup_code(app, anon):
    assert _register(anon.http, client_id=None, staff_code="wrong").status_code == 403

    resp = _register(anon.http, email="desk@example.com", client_id=None, staff_code="staff-code")
    assert resp.status_code == 201

    api = ApiClient(app)
    assert api.login("desk@example.com").get_json()["user"]["roles"] == ["STAFF"]


def test_bad_password_is_401_and_audited(app):
    make_user(app, "client@example.com")
    resp = app.test_client().post("/auth/login", json={"email": "client@example.com", "password": "nope"})

    assert resp.status_code == 401
    with app.app_context():
        assert AuditLog.query.filter_by(action="LOGIN_FAIL").count() == 1


def test_logout_revokes_session(app, client_user):
    api, _ = client_user
    assert api.post("/auth/logout").status_code == 200
    assert api.get("/auth/me").status_code == 401


def test_state_changes_need_matching_csrf_header(app, client_user):
    api, _ = client_user
    assert api.http.post("/auth/logout").status_code == 403
    resp = api.http.post("/auth/logout", headers={"X-CSRF-Token": "forged"})
    assert resp.status_code == 403
    assert api.post("/auth/logout").status_code == 200


def test_health(app, anon):
    assert anon.get("/health").get_json() == {"status": "ok"}


def test_login_upgrades_hash_to_current_work_factor(app):
    user_id = make_user(app, "client@example.com")
    with app.app_context():
        user = db.session.get(User, user_id)
        user.password_hash = bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(rounds=5)).decode()
        db.session.commit()

    ApiClient(app).login("client@example.com")

    with app.app_context():
        stored = db.session.get(User, user_id).password_hash
        assert stored.split("$")[2] == "04"
        assert not needs_rehash(stored)


def test_purge_dead_sessions(app, client_user):
    api, _ = client_user
    other = ApiClient(app)
    other.login("client@example.com")
    assert other.post("/auth/logout").status_code == 200

    with app.app_context():
        assert purge_dead_sessions() == 1
        assert Session.query.count() == 1
        assert purge_dead_sessions(now=datetime.utcnow() + timedelta(days=1)) == 1

    assert api.get("/auth/me").status_code == 401
