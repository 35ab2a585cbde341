from datetime import datetime
from urllib.parse import urlencode

from flask import current_app

from models import db
from models.booking import Booking
from models.email_queue import EmailQueue


def enqueue_email(to_email: str, subject: str, body: str) -> EmailQueue:
    row = EmailQueue(to_email=to_email, subject=subject, body=body, next_attempt_at=datetime.utcnow())
    db.session.add(row)
    db.session.commit()
    return row


def build_cancel_reschedule_links(token: str) -> tuple[str, str]:
    base = (current_app.config.get("FRONTEND_URL") or "").rstrip("/")
    return f"{base}/cancel/{token}", f"{base}/reschedule/{token}"


def build_google_calendar_link(booking: Booking) -> str:
    slot = booking.slot
    start = datetime.combine(booking.date, slot.start_time)
    end = datetime.combine(booking.date, slot.end_time)
    params = {
        "action": "TEMPLATE",
        "text": f"{current_app.config.get('PANTRY_NAME', 'Pantry')} appointment",
        "dates": f"{start:%Y%m%dT%H%M%S}/{end:%Y%m%dT%H%M%S}",
        "ctz": current_app.config.get("PANTRY_TIMEZONE", "America/Regina"),
        "details": "Your pantry booking",
    }
    return "https://calendar.google.com/calendar/render?" + urlencode(params)


def _describe(booking: Booking) -> str:
    slot = booking.slot
    when = booking.date.strftime("%A, %B %d, %Y")
    return f"{when} from {slot.start_time:%I:%M %p} to {slot.end_time:%I:%M %p}"


_SUBJECTS = {
    "confirmed": "Your pantry appointment is booked",
    "rescheduled": "Your pantry appointment was moved",
    "cancelled": "Your pantry appointment was cancelled",
    "reminder": "Reminder: pantry appointment tomorrow",
}


def build_booking_email(booking: Booking, kind: str) -> tuple[str, str]:
    name, _ = booking.contact()
    lines = [f"Hi {name or 'there'},", "", f"Date: {_describe(booking)}"]

    if kind != "cancelled":
        cancel_link, reschedule_link = build_cancel_reschedule_links(booking.reschedule_token)
        lines += [
            "",
            f"Need to change it? Reschedule: {reschedule_link}",
            f"Can't make it? Cancel: {cancel_link}",
            f"Add to Google Calendar: {build_google_calendar_link(booking)}",
        ]
    return _SUBJECTS[kind], "\n".join(lines)


def notify_booking(booking: Booking, kind: str) -> bool:
    """
    Queue the email for a booking event after its transaction committed.
    Never raises: a failed enqueue is logged and the booking stands.
    """
    try:
        _, email = booking.contact()
        if not email:
            return False
        subject, body = build_booking_email(booking, kind)
        enqueue_email(email, subject, body)
        return True
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to enqueue %s email for booking %s", kind, booking.id)
        return False
