from models.booking import BookingStatus

from conftest import FUTURE, make_booking, make_slot, make_user


def test_available_seats_per_date(app, client_user):
    api, _ = client_user
    busy = make_slot(app, "09:00", "09:30", capacity=3)
    quiet = make_slot(app, "10:00", "10:30", capacity=2)
    make_slot(app, "11:00", "11:30", capacity=2, active=False)
    a = make_user(app, "a@example.com", client_id=1)
    b = make_user(app, "b@example.com", client_id=2)
    c = make_user(app, "c@example.com", client_id=3)
    make_booking(app, a, busy, FUTURE)
    make_booking(app, b, busy, FUTURE, status=BookingStatus.NO_SHOW)
    make_booking(app, c, busy, FUTURE, status=BookingStatus.CANCELLED)

    rows = api.get(f"/slots?date={FUTURE.isoformat()}").get_json()

    available = {r["id"]: r["available"] for r in rows}
    assert available == {busy: 1, quiet: 2}


def test_listing_needs_a_valid_date(app, client_user):
    api, _ = client_user
    assert api.get("/slots").status_code == 400
    assert api.get("/slots?date=2024-13-01").status_code == 400


def test_listing_needs_login(app, anon):
    assert anon.get(f"/slots?date={FUTURE.isoformat()}").status_code == 401


def test_staff_creates_slot(app, staff):
    resp = staff.post("/slots", {"start_time": "13:00", "end_time": "13:30", "max_capacity": 4})

    assert resp.status_code == 201
    assert resp.get_json()["max_capacity"] == 4
    assert staff.post("/slots", {"start_time": "13:00", "end_time": "13:30"}).status_code == 409


def test_create_slot_validation(app, staff):
    assert staff.post("/slots", {"start_time": "13:00"}).status_code == 400
    assert staff.post("/slots", {"start_time": "1pm", "end_time": "2pm"}).status_code == 400
    assert staff.post("/slots", {"start_time": "14:00", "end_time": "13:00"}).status_code == 400
    resp = staff.post("/slots", {"start_time": "13:00", "end_time": "13:30", "max_capacity": 0})
    assert resp.status_code == 400


def test_lowering_capacity_keeps_existing_bookings(app, staff):
    slot_id = make_slot(app, capacity=2)
    a = make_user(app, "a@example.com", client_id=1)
    b = make_user(app, "b@example.com", client_id=2)
    make_booking(app, a, slot_id, FUTURE)
    make_booking(app, b, slot_id, FUTURE)

    resp = staff.post(f"/slots/{slot_id}/capacity", {"max_capacity": 1})
    assert resp.status_code == 200

    rows = staff.get(f"/slots?date={FUTURE.isoformat()}").get_json()
    assert rows[0]["available"] == 0
    assert len(staff.get("/bookings?status=approved").get_json()) == 2

    c = make_user(app, "c@example.com", client_id=3)
    resp = staff.post("/bookings/staff", {"user_id": c, "slot_id": slot_id, "date": FUTURE.isoformat()})
    assert resp.status_code == 409


def test_capacity_update_validation(app, staff):
    slot_id = make_slot(app, capacity=2)
    assert staff.post(f"/slots/{slot_id}/capacity", {"max_capacity": "lots"}).status_code == 400
    assert staff.post("/slots/999/capacity", {"max_capacity": 3}).status_code == 404


def test_deactivated_slot_refuses_bookings(app, staff):
    slot_id = make_slot(app, capacity=2)
    user_id = make_user(app, "a@example.com", client_id=1)

    assert staff.post(f"/slots/{slot_id}/deactivate").status_code == 200

    resp = staff.post("/bookings/staff", {"user_id": user_id, "slot_id": slot_id, "date": FUTURE.isoformat()})
    assert resp.status_code == 404
    assert [s["is_active"] for s in staff.get("/slots/all").get_json()] == [False]


def test_clients_cannot_manage_slots(app, client_user):
    api, _ = client_user
    assert api.post("/slots", {"start_time": "13:00", "end_time": "13:30"}).status_code == 403
    assert api.get("/slots/all").status_code == 403
