"""
Slot-capacity admission control.

Every booking-mutating path goes through here. The (slot, date) seat count is
never cached: each call re-reads it inside the same transaction that writes
the row, after taking a lock on the slot.

Locking:
- PostgreSQL: ``SELECT ... FOR UPDATE`` on the slot row serializes every
  admission and reschedule into that slot.
- SQLite ignores FOR UPDATE; app.py opens every SQLite transaction with
  ``BEGIN IMMEDIATE`` so the database itself allows one writer at a time.

The partial unique index on (user_id, date) and a post-insert re-count back
this up, so a lost race surfaces as a 409 and never as an oversold slot.
"""
import secrets
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, BookingStatus
from models.new_client import NewClient
from models.slot import Slot
from models.user import User
from utils.dates import month_range, pantry_today
from utils.errors import (
    CapacityExceededError,
    DuplicateBookingError,
    NotFoundError,
    ValidationError,
)

LIMIT_MESSAGE = (
    "You've already booked the pantry the maximum number of times this month. "
    "Please return at the end of the month to book your appointment for next month. "
    "You can only book for next month during the last week of this month."
)

# statuses whose rows occupy a seat in (slot, date)
SEAT_HOLDING_STATUSES = [s.value for s in BookingStatus if s.holds_capacity]

_DUPLICATE_MARKERS = (
    "bookings_user_date_unique_active",
    "bookings_new_client_date_unique_active",
    "bookings.user_id, bookings.date",
    "bookings.new_client_id, bookings.date",
)


def new_reschedule_token() -> str:
    return secrets.token_urlsafe(24)


def _is_duplicate_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None) or ""
    text = constraint or str(orig or exc)
    return any(marker in text for marker in _DUPLICATE_MARKERS)


def lock_slot(slot_id: int) -> Slot:
    slot = db.session.execute(
        select(Slot)
        .where(Slot.id == slot_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if slot is None or not slot.is_active:
        raise NotFoundError("Slot not found")
    return slot


def lock_booking(booking_id: int) -> Booking:
    booking = db.session.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def count_active(slot_id: int, day: date, exclude_booking_id: Optional[int] = None) -> int:
    """Seats taken in (slot, day): every row that is not cancelled."""
    q = select(func.count(Booking.id)).where(
        Booking.slot_id == slot_id,
        Booking.date == day,
        Booking.status.in_(SEAT_HOLDING_STATUSES),
    )
    if exclude_booking_id is not None:
        q = q.where(Booking.id != exclude_booking_id)
    return db.session.execute(q).scalar_one()


def _holds_active_booking(user_id, new_client_id, day: date, exclude_booking_id=None) -> bool:
    q = select(Booking.id).where(
        Booking.date == day,
        Booking.status.in_(SEAT_HOLDING_STATUSES),
    )
    if user_id is not None:
        q = q.where(Booking.user_id == user_id)
    else:
        q = q.where(Booking.new_client_id == new_client_id)
    if exclude_booking_id is not None:
        q = q.where(Booking.id != exclude_booking_id)
    return db.session.execute(q.limit(1)).first() is not None


def count_month_bookings(user_id: int, day: date, exclude_booking_id: Optional[int] = None) -> int:
    start, end = month_range(day)
    q = select(func.count(Booking.id)).where(
        Booking.user_id == user_id,
        Booking.date.between(start, end),
        Booking.status.in_([BookingStatus.APPROVED.value, BookingStatus.VISITED.value]),
    )
    if exclude_booking_id is not None:
        q = q.where(Booking.id != exclude_booking_id)
    return db.session.execute(q).scalar_one()


def _ensure_client_exists(user_id, new_client_id):
    if (user_id is None) == (new_client_id is None):
        raise ValidationError("Exactly one of userId or newClientId is required")
    if user_id is not None and db.session.get(User, user_id) is None:
        raise NotFoundError("User not found")
    if new_client_id is not None and db.session.get(NewClient, new_client_id) is None:
        raise NotFoundError("Client not found")


def admit_booking(
    slot_id: int,
    booking_date: date,
    user_id: Optional[int] = None,
    new_client_id: Optional[int] = None,
    status: BookingStatus = BookingStatus.APPROVED,
    note: Optional[str] = None,
    is_staff_booking: bool = False,
    monthly_limit: Optional[int] = None,
) -> Booking:
    """
    Admit one booking for (slot_id, booking_date) and commit it.

    Raises NotFoundError, ValidationError, DuplicateBookingError or
    CapacityExceededError; the session is rolled back before any of them
    propagates, so a rejected request leaves no row behind.
    """
    try:
        slot = lock_slot(slot_id)
        _ensure_client_exists(user_id, new_client_id)

        if status is not BookingStatus.APPROVED:
            raise ValidationError("New bookings must be approved")

        if _holds_active_booking(user_id, new_client_id, booking_date):
            raise DuplicateBookingError("Client already has a booking on this date")

        if monthly_limit is not None and user_id is not None:
            if count_month_bookings(user_id, booking_date) >= monthly_limit:
                raise ValidationError(LIMIT_MESSAGE)

        if count_active(slot.id, booking_date) >= slot.max_capacity:
            raise CapacityExceededError("Slot full on selected date")

        booking = Booking(
            user_id=user_id,
            new_client_id=new_client_id,
            slot_id=slot.id,
            date=booking_date,
            status=status.value,
            note=note,
            is_staff_booking=is_staff_booking,
            reschedule_token=new_reschedule_token(),
        )
        db.session.add(booking)
        try:
            db.session.flush()
        except IntegrityError as exc:
            if _is_duplicate_violation(exc):
                raise DuplicateBookingError("Client already has a booking on this date") from exc
            raise

        # Re-count with our row in place; only trips if the store let a race through
        if count_active(slot.id, booking_date) > slot.max_capacity:
            raise CapacityExceededError("Slot full on selected date")

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return booking


def reschedule_booking(
    booking_id: int,
    slot_id: int,
    booking_date: date,
    monthly_limit: Optional[int] = None,
) -> Booking:
    """
    Move an approved booking to (slot_id, booking_date) in one transaction.

    The destination count excludes the booking's own row. A move that keeps
    the booking's own (slot, date) only rotates the token, even after staff
    lowered the capacity below the seats already taken. When monthly_limit
    is given and the move changes month, the client's bookings in the
    destination month are checked against it. On any error the booking
    keeps its slot, date and token.
    """
    try:
        booking = lock_booking(booking_id)
        if booking.status_enum.is_terminal:
            raise ValidationError("Booking cannot be rescheduled")

        slot = lock_slot(slot_id)
        stays_put = slot.id == booking.slot_id and booking_date == booking.date

        if _holds_active_booking(
            booking.user_id, booking.new_client_id, booking_date, exclude_booking_id=booking.id
        ):
            raise DuplicateBookingError("Client already has a booking on this date")

        changes_month = (booking_date.year, booking_date.month) != (booking.date.year, booking.date.month)
        if monthly_limit is not None and booking.user_id is not None and changes_month:
            held = count_month_bookings(booking.user_id, booking_date, exclude_booking_id=booking.id)
            if held >= monthly_limit:
                raise ValidationError(LIMIT_MESSAGE)

        taken = count_active(slot.id, booking_date, exclude_booking_id=booking.id)
        if not stays_put and taken >= slot.max_capacity:
            raise CapacityExceededError("Slot full on selected date")

        booking.slot_id = slot.id
        booking.date = booking_date
        booking.reschedule_token = new_reschedule_token()
        booking.reminder_sent = False
        try:
            db.session.flush()
        except IntegrityError as exc:
            if _is_duplicate_violation(exc):
                raise DuplicateBookingError("Client already has a booking on this date") from exc
            raise

        if not stays_put and count_active(slot.id, booking_date) > slot.max_capacity:
            raise CapacityExceededError("Slot full on selected date")

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return booking


def cancel_booking(booking_id: int, reason: Optional[str] = None) -> Booking:
    """Cancel an approved booking; its seat and the client's day free up at commit."""
    try:
        booking = lock_booking(booking_id)
        if booking.status_enum.is_terminal:
            raise ValidationError("Booking not cancellable")

        booking.status = BookingStatus.CANCELLED.value
        booking.reason = reason
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return booking


def record_outcome(booking_id: int, status: BookingStatus, reason: Optional[str] = None) -> Booking:
    """Close an approved booking as no_show or visited once its date has arrived."""
    if status not in (BookingStatus.NO_SHOW, BookingStatus.VISITED):
        raise ValidationError("Outcome must be no_show or visited")

    try:
        booking = lock_booking(booking_id)
        if booking.status_enum.is_terminal:
            raise ValidationError("Booking already closed")
        if booking.date > pantry_today():
            raise ValidationError("Cannot record an outcome before the booking date")

        booking.status = status.value
        if reason is not None:
            booking.reason = reason
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return booking
