"""Maintenance work run from the Flask CLI (see app.register_cli)."""
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import delete, select, update

from models import db
from models.booking import Booking, BookingStatus
from models.email_queue import EmailQueue
from utils import emailer
from utils.dates import pantry_today
from utils.notifications import build_booking_email, enqueue_email


def send_queued_emails(now=None, batch_size=100) -> dict:
    """Deliver due queue rows; failures back off exponentially until max retries."""
    now = now or datetime.utcnow()
    max_retries = current_app.config.get("EMAIL_QUEUE_MAX_RETRIES", 5)
    backoff = current_app.config.get("EMAIL_QUEUE_BACKOFF_SECONDS", 60)

    rows = db.session.execute(
        select(EmailQueue)
        .where(
            EmailQueue.sent_at.is_(None),
            EmailQueue.attempts < max_retries,
            EmailQueue.next_attempt_at <= now,
        )
        .order_by(EmailQueue.id)
        .limit(batch_size)
    ).scalars().all()

    sent = failed = 0
    for row in rows:
        ok, error = emailer.send_email(row.to_email, row.subject, row.body)
        row.attempts += 1
        if ok:
            row.sent_at = now
            row.last_error = None
            sent += 1
        else:
            row.last_error = (error or "unknown error")[:255]
            row.next_attempt_at = now + timedelta(seconds=backoff * 2 ** (row.attempts - 1))
            failed += 1
            current_app.logger.warning("Email %s to %s failed: %s", row.id, row.to_email, row.last_error)
    db.session.commit()

    return {"sent": sent, "failed": failed}


def send_next_day_reminders(today=None) -> int:
    today = today or pantry_today()
    tomorrow = today + timedelta(days=1)

    bookings = db.session.execute(
        select(Booking).where(
            Booking.date == tomorrow,
            Booking.status == BookingStatus.APPROVED.value,
            Booking.reminder_sent.is_(False),
        )
    ).scalars().all()

    queued = 0
    for booking in bookings:
        _, email = booking.contact()
        booking.reminder_sent = True
        if not email:
            continue
        subject, body = build_booking_email(booking, "reminder")
        enqueue_email(email, subject, body)
        queued += 1
    db.session.commit()

    current_app.logger.info("Queued %d booking reminders for %s", queued, tomorrow.isoformat())
    return queued


def mark_past_no_shows(today=None) -> int:
    """Close approved bookings whose date has passed without a recorded visit."""
    today = today or pantry_today()

    try:
        result = db.session.execute(
            update(Booking)
            .where(Booking.status == BookingStatus.APPROVED.value, Booking.date < today)
            .values(status=BookingStatus.NO_SHOW.value, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark past bookings as no-shows")
        raise

    current_app.logger.info("Marked %d bookings before %s as no_show", result.rowcount, today.isoformat())
    return result.rowcount


def retention_cutoff(reference):
    years = current_app.config.get("BOOKING_RETENTION_YEARS", 1)
    try:
        return reference.replace(year=reference.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return reference.replace(year=reference.year - years, day=28)


def cleanup_old_bookings(reference=None) -> int:
    reference = reference or pantry_today()
    cutoff = retention_cutoff(reference)

    try:
        result = db.session.execute(delete(Booking).where(Booking.date < cutoff))
        db.session.execute(delete(EmailQueue).where(EmailQueue.sent_at.is_not(None)))
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clean up old bookings")
        raise

    current_app.logger.info("Removed %d bookings older than %s", result.rowcount, cutoff.isoformat())
    return result.rowcount
