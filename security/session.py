"""
Cookie-backed login sessions.

The browser holds a random token; the sessions table holds its SHA-256.
Every touch is a write, and on SQLite a write takes the database lock, so
last_seen_at is only refreshed once per SESSION_TOUCH_SECONDS.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app
from sqlalchemy import delete, or_

from models import db
from models.session import Session

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "pantry_session")

def create_session(user_id: int) -> str:
    """Store a new session for user_id and return the raw cookie token."""
    raw_token = secrets.token_urlsafe(32)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)
    db.session.add(Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
    ))
    db.session.commit()
    return raw_token

def get_session_from_request():
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return None

    now = datetime.utcnow()
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess or not sess.is_live(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200)):
        return None

    touch_after = timedelta(seconds=current_app.config.get("SESSION_TOUCH_SECONDS", 60))
    if sess.last_seen_at is None or now - sess.last_seen_at >= touch_after:
        sess.last_seen_at = now
        db.session.commit()
    return sess

def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True

def purge_dead_sessions(now=None) -> int:
    """Delete revoked and expired sessions; run from the cleanup job."""
    now = now or datetime.utcnow()
    result = db.session.execute(
        delete(Session).where(or_(Session.revoked.is_(True), Session.expires_at <= now))
    )
    db.session.commit()
    return result.rowcount
