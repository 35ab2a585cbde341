from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking, BookingStatus
from models.new_client import NewClient
from security.rbac import require_roles, is_staff
from utils.admission import admit_booking, reschedule_booking, cancel_booking, record_outcome
from utils.audit import log_event
from utils.auth_context import login_required, current_user_id
from utils.dates import pantry_today, parse_booking_date, is_within_booking_window, ensure_not_past
from utils.errors import BookingError, ValidationError, NotFoundError, ForbiddenError
from utils.notifications import notify_booking

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _int_field(data, key, required=True):
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{key} required")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")


def _client_date(value):
    """Date for a client-facing path: real, not past, inside the booking window."""
    day = parse_booking_date(value)
    today = pantry_today()
    ensure_not_past(day, today)
    if not is_within_booking_window(day, today):
        raise ValidationError("Bookings are open for the current month only (next month opens in the last week)")
    return day


def _staff_date(value):
    day = parse_booking_date(value)
    ensure_not_past(day, pantry_today())
    return day


def _text(data, key, limit):
    value = data.get(key)
    if value is None:
        return None
    return str(value).strip()[:limit] or None


def _booking_by_token(token: str) -> Booking:
    booking = Booking.query.filter_by(reschedule_token=token).first()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _audit_failure(action, exc, user_id=None, **meta):
    log_event(action, user_id=user_id, entity="booking", metadata=dict(meta, error=exc.message))


# ---------- CLIENTS: book a slot (capacity safe) ----------
@booking_bp.post("")
@require_roles("CLIENT")
def create_booking():
    data = request.get_json(silent=True) or {}
    slot_id = _int_field(data, "slot_id")
    day = _client_date(data.get("date"))

    try:
        booking = admit_booking(
            slot_id,
            day,
            user_id=g.user.id,
            note=_text(data, "note", 2000),
            monthly_limit=current_app.config.get("MONTHLY_BOOKING_LIMIT", 2),
        )
    except BookingError as exc:
        _audit_failure("BOOKING_FAIL", exc, user_id=g.user.id, slot_id=slot_id, date=day)
        raise

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id, "date": day})
    notify_booking(booking, "confirmed")
    return jsonify(booking.to_dict(include_token=True)), 201


# ---------- STAFF: book for an existing or walk-in client ----------
@booking_bp.post("/staff")
@require_roles("STAFF")
def create_staff_booking():
    data = request.get_json(silent=True) or {}
    slot_id = _int_field(data, "slot_id")
    day = _staff_date(data.get("date"))
    user_id = _int_field(data, "user_id", required=False)
    new_client_id = _int_field(data, "new_client_id", required=False)
    walk_in = data.get("new_client")

    if walk_in is not None:
        if user_id is not None or new_client_id is not None:
            raise ValidationError("Give either user_id, new_client_id or new_client")
        if not isinstance(walk_in, dict):
            raise ValidationError("new_client must be an object")
        name = _text(walk_in, "name", 120)
        if not name:
            raise ValidationError("new_client.name required")
        client = NewClient(name=name, email=_text(walk_in, "email", 255), phone=_text(walk_in, "phone", 30))
        db.session.add(client)
        # flushed, not committed: a rejected admission rolls the walk-in back too
        db.session.flush()
        new_client_id = client.id

    try:
        booking = admit_booking(
            slot_id,
            day,
            user_id=user_id,
            new_client_id=new_client_id,
            note=_text(data, "note", 2000),
            is_staff_booking=True,
        )
    except BookingError as exc:
        _audit_failure("BOOKING_FAIL", exc, user_id=g.user.id, slot_id=slot_id, date=day, staff=True)
        raise

    log_event("STAFF_BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id, "date": day})
    notify_booking(booking, "confirmed")
    return jsonify(booking.to_dict(include_token=True)), 201


# ---------- STAFF: list bookings ----------
@booking_bp.get("")
@require_roles("STAFF")
def list_bookings():
    q = Booking.query
    status = request.args.get("status")
    if status:
        if status not in BookingStatus.values():
            raise ValidationError("Unknown status")
        q = q.filter_by(status=status)
    if request.args.get("date"):
        q = q.filter_by(date=parse_booking_date(request.args.get("date")))

    rows = q.order_by(Booking.date.asc(), Booking.slot_id.asc()).limit(200).all()
    return jsonify([b.to_dict() for b in rows]), 200


# ---------- CLIENTS: my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    q = Booking.query.filter_by(user_id=g.user.id)
    status = request.args.get("status")
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.date.desc()).all()
    return jsonify([b.to_dict(include_token=True) for b in rows]), 200


def _reschedule(booking: Booking, data, day, actor_id=None, monthly_limit=None):
    slot_id = _int_field(data, "slot_id")
    old = {"slot_id": booking.slot_id, "date": booking.date}
    booking_id = booking.id

    try:
        booking = reschedule_booking(booking_id, slot_id, day, monthly_limit=monthly_limit)
    except BookingError as exc:
        _audit_failure("BOOKING_RESCHEDULE_FAIL", exc, user_id=actor_id,
                       booking_id=booking_id, slot_id=slot_id, date=day)
        raise

    log_event("BOOKING_RESCHEDULE", user_id=actor_id, entity="booking", entity_id=booking.id,
              metadata={"from": old, "to": {"slot_id": slot_id, "date": day}})
    notify_booking(booking, "rescheduled")
    return jsonify(dict(booking.to_dict(include_token=True), message="Booking updated")), 200


# ---------- PUBLIC: reschedule through the emailed token ----------
@booking_bp.post("/reschedule/<token>")
def reschedule_by_token(token: str):
    data = request.get_json(silent=True) or {}
    booking = _booking_by_token(token)
    if is_staff():
        return _reschedule(booking, data, _staff_date(data.get("date")), actor_id=current_user_id())
    return _reschedule(
        booking,
        data,
        _client_date(data.get("date")),
        actor_id=current_user_id(),
        monthly_limit=current_app.config.get("MONTHLY_BOOKING_LIMIT", 2),
    )


# ---------- STAFF: reschedule by id ----------
@booking_bp.post("/<int:booking_id>/reschedule")
@require_roles("STAFF")
def reschedule_by_id(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return _reschedule(booking, data, _staff_date(data.get("date")), actor_id=g.user.id)


def _cancel(booking_id: int, reason, actor_id=None):
    booking = cancel_booking(booking_id, reason=reason)
    log_event("BOOKING_CANCEL", user_id=actor_id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason})
    notify_booking(booking, "cancelled")
    return jsonify(message="Booking cancelled"), 200


# ---------- CLIENT (owner) or STAFF: cancel ----------
@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_by_id(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.user_id != g.user.id and not is_staff():
        raise ForbiddenError("Forbidden")
    return _cancel(booking_id, _text(data, "reason", 255), actor_id=g.user.id)


# ---------- PUBLIC: cancel through the emailed token ----------
@booking_bp.post("/cancel/<token>")
def cancel_by_token(token: str):
    data = request.get_json(silent=True) or {}
    booking = _booking_by_token(token)
    return _cancel(booking.id, _text(data, "reason", 255), actor_id=current_user_id())


# ---------- STAFF: record the appointment outcome ----------
def _outcome(booking_id: int, status: BookingStatus):
    data = request.get_json(silent=True) or {}
    reason = _text(data, "reason", 255)
    booking = record_outcome(booking_id, status, reason=reason)
    log_event("BOOKING_" + status.name, user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason})
    return jsonify(message=f"Booking marked as {status.value}", status=booking.status), 200


@booking_bp.post("/<int:booking_id>/no-show")
@require_roles("STAFF")
def mark_no_show(booking_id: int):
    return _outcome(booking_id, BookingStatus.NO_SHOW)


@booking_bp.post("/<int:booking_id>/visited")
@require_roles("STAFF")
def mark_visited(booking_id: int):
    return _outcome(booking_id, BookingStatus.VISITED)
