from datetime import time

from flask import Blueprint, request, jsonify, g
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.slot import Slot
from models.booking import Booking, BookingStatus
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required
from utils.dates import parse_booking_date

slots_bp = Blueprint("slots", __name__, url_prefix="/slots")


def _parse_time(value) -> time:
    # Expect "HH:MM" or "HH:MM:SS"
    return time.fromisoformat(value)


def _parse_capacity(value):
    try:
        capacity = int(value)
    except (TypeError, ValueError):
        return None
    return capacity if capacity >= 1 else None


# ---------- CLIENTS: slots with seats left on a date ----------
@slots_bp.get("")
@login_required
def list_slots():
    day = parse_booking_date(request.args.get("date"))

    slots = Slot.query.filter_by(is_active=True).order_by(Slot.start_time.asc()).all()

    taken = dict(
        db.session.query(Booking.slot_id, func.count(Booking.id))
        .filter(Booking.date == day, Booking.status != BookingStatus.CANCELLED.value)
        .group_by(Booking.slot_id)
        .all()
    )

    return jsonify([
        dict(s.to_dict(), available=max(s.max_capacity - taken.get(s.id, 0), 0))
        for s in slots
    ]), 200


# ---------- STAFF: every slot ----------
@slots_bp.get("/all")
@require_roles("STAFF")
def list_all_slots():
    slots = Slot.query.order_by(Slot.start_time.asc()).all()
    return jsonify([s.to_dict() for s in slots]), 200


@slots_bp.post("")
@require_roles("STAFF")
def create_slot():
    data = request.get_json(silent=True) or {}
    start_time = data.get("start_time")
    end_time = data.get("end_time")

    if not start_time or not end_time:
        return jsonify(error="start_time, end_time are required"), 400

    try:
        st = _parse_time(start_time)
        et = _parse_time(end_time)
    except (TypeError, ValueError):
        return jsonify(error="Invalid time format. Use HH:MM e.g. 09:30"), 400

    if et <= st:
        return jsonify(error="end_time must be after start_time"), 400

    capacity = _parse_capacity(data.get("max_capacity", 1))
    if capacity is None:
        return jsonify(error="max_capacity must be a positive integer"), 400

    slot = Slot(start_time=st, end_time=et, max_capacity=capacity)
    db.session.add(slot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Slot already exists for that time"), 409

    log_event("SLOT_CREATE", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(slot.to_dict()), 201


@slots_bp.post("/<int:slot_id>/capacity")
@require_roles("STAFF")
def update_capacity(slot_id: int):
    data = request.get_json(silent=True) or {}
    capacity = _parse_capacity(data.get("max_capacity"))
    if capacity is None:
        return jsonify(error="max_capacity must be a positive integer"), 400

    slot = db.session.get(Slot, slot_id)
    if not slot:
        return jsonify(error="Slot not found"), 404

    # Lowering capacity never cancels bookings already admitted
    slot.max_capacity = capacity
    db.session.commit()

    log_event("SLOT_CAPACITY_UPDATE", user_id=g.user.id, entity="slot", entity_id=slot_id,
              metadata={"max_capacity": capacity})
    return jsonify(slot.to_dict()), 200


@slots_bp.post("/<int:slot_id>/deactivate")
@require_roles("STAFF")
def deactivate_slot(slot_id: int):
    slot = db.session.get(Slot, slot_id)
    if not slot:
        return jsonify(error="Slot not found"), 404

    slot.is_active = False
    db.session.commit()

    log_event("SLOT_DEACTIVATE", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(message="Slot deactivated"), 200
