from flask import Flask, jsonify
from sqlalchemy import event, inspect

from config import Config
from routes import health_bp, auth_bp, slots_bp, booking_bp

from models import db
from flask_migrate import Migrate
from utils.seed import seed_roles
from utils.auth_context import load_current_user
from utils.errors import BookingError
from security.csrf import csrf_protect


def _configure_sqlite(engine, busy_timeout_ms: int):
    """
    SQLite has no SELECT ... FOR UPDATE. Open every transaction with
    BEGIN IMMEDIATE instead so only one writer holds the database at a time;
    the others wait up to busy_timeout_ms.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # hand transaction control to the "begin" listener below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(slots_bp)
    app.register_blueprint(booking_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            _configure_sqlite(db.engine, app.config.get("SQLITE_BUSY_TIMEOUT_MS", 30000))

        # Seed default roles at startup once the schema exists
        if inspect(db.engine).has_table("roles"):
            seed_roles()
        db.session.remove()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf():
        return csrf_protect()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        return jsonify(error=exc.message), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, Role
from utils.seed import seed_slots
from utils.jobs import send_queued_emails, send_next_day_reminders, cleanup_old_bookings, mark_past_no_shows
from security.session import purge_dead_sessions

def _grant_role(email: str, role_name: str):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo("User not found")
        return

    role = Role.query.filter_by(name=role_name).first()
    if not role:
        role = Role(name=role_name)
        db.session.add(role)
        db.session.commit()

    if role not in user.roles:
        user.roles.append(role)
        db.session.commit()

    click.echo(f"{user.email} promoted to {role_name}")

def register_cli(app):
    @app.cli.command("make-staff")
    @click.argument("email")
    def make_staff(email):
        """Promote a user to STAFF by email."""
        _grant_role(email, "STAFF")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        _grant_role(email, "ADMIN")

    @app.cli.command("seed-slots")
    @click.option("--capacity", default=4, show_default=True, type=int)
    def seed_slots_cmd(capacity):
        """Create the default weekday slots."""
        added = seed_slots(max_capacity=capacity)
        click.echo(f"Added {added} slots")

    @app.cli.command("send-queued-emails")
    def send_queued_emails_cmd():
        """Deliver pending emails from the queue."""
        result = send_queued_emails()
        click.echo(f"Sent {result['sent']}, failed {result['failed']}")

    @app.cli.command("send-reminders")
    def send_reminders_cmd():
        """Queue reminder emails for tomorrow's bookings."""
        click.echo(f"Queued {send_next_day_reminders()} reminders")

    @app.cli.command("mark-no-shows")
    def mark_no_shows_cmd():
        """Mark approved bookings from earlier days as no_show."""
        click.echo(f"Marked {mark_past_no_shows()} no-shows")

    @app.cli.command("cleanup-bookings")
    def cleanup_bookings_cmd():
        """Delete bookings past the retention window and dead login sessions."""
        removed = cleanup_old_bookings()
        click.echo(f"Removed {removed} bookings, {purge_dead_sessions()} sessions")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
