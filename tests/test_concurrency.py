"""
Concurrent requests against one capacity-limited slot.

Each request runs on its own thread with its own test client, app context
and database connection; only the store coordinates them.
"""
from concurrent.futures import ThreadPoolExecutor

from models import db
from models.booking import Booking, BookingStatus

from conftest import FUTURE, ApiClient, active_count, make_booking, make_slot, make_user


def _fire(requests):
    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        futures = [pool.submit(fn) for fn in requests]
        return [f.result() for f in futures]


def _staff_clients(app, n):
    make_user(app, "desk@example.com", roles=("STAFF",))
    clients = []
    for _ in range(n):
        api = ApiClient(app)
        api.login("desk@example.com")
        clients.append(api)
    return clients


def test_two_staff_bookings_for_last_seat(app):
    slot_id = make_slot(app, capacity=1)
    user_ids = [make_user(app, f"c{i}@example.com", client_id=10 + i) for i in range(2)]
    clients = _staff_clients(app, 2)

    responses = _fire([
        lambda api=api, uid=uid: api.post(
            "/bookings/staff", {"user_id": uid, "slot_id": slot_id, "date": FUTURE.isoformat()}
        )
        for api, uid in zip(clients, user_ids)
    ])

    assert sorted(r.status_code for r in responses) == [201, 409]
    with app.app_context():
        assert Booking.query.filter_by(slot_id=slot_id, date=FUTURE).count() == 1


def test_many_attempts_admit_exactly_capacity(app):
    capacity, attempts = 3, 5
    slot_id = make_slot(app, capacity=capacity)
    user_ids = [make_user(app, f"m{i}@example.com", client_id=100 + i) for i in range(attempts)]
    clients = _staff_clients(app, attempts)

    responses = _fire([
        lambda api=api, uid=uid: api.post(
            "/bookings/staff", {"user_id": uid, "slot_id": slot_id, "date": FUTURE.isoformat()}
        )
        for api, uid in zip(clients, user_ids)
    ])

    codes = [r.status_code for r in responses]
    assert codes.count(201) == capacity
    assert codes.count(409) == attempts - capacity
    assert active_count(app, slot_id, FUTURE) == capacity


def test_same_user_twice_at_once_gets_one_booking(app):
    slot_a = make_slot(app, "09:00", "09:30", capacity=5)
    slot_b = make_slot(app, "10:00", "10:30", capacity=5)
    user_id = make_user(app, "twice@example.com", client_id=77)
    clients = _staff_clients(app, 2)

    responses = _fire([
        lambda api=api, sid=sid: api.post(
            "/bookings/staff", {"user_id": user_id, "slot_id": sid, "date": FUTURE.isoformat()}
        )
        for api, sid in zip(clients, (slot_a, slot_b))
    ])

    assert sorted(r.status_code for r in responses) == [201, 409]
    with app.app_context():
        rows = Booking.query.filter(
            Booking.user_id == user_id, Booking.status != BookingStatus.CANCELLED.value
        ).all()
        assert len(rows) == 1


def test_three_reschedules_into_two_seats(app, today):
    source = make_slot(app, "09:00", "09:30", capacity=3)
    dest = make_slot(app, "10:00", "10:30", capacity=2)
    tokens = []
    for i in range(3):
        uid = make_user(app, f"r{i}@example.com", client_id=200 + i)
        _, token = make_booking(app, uid, source, today)
        tokens.append(token)

    clients = [ApiClient(app) for _ in tokens]
    responses = _fire([
        lambda api=api, tok=tok: api.post(
            f"/bookings/reschedule/{tok}", {"slot_id": dest, "date": today.isoformat()}
        )
        for api, tok in zip(clients, tokens)
    ])

    codes = sorted(r.status_code for r in responses)
    assert codes == [200, 200, 409]
    assert active_count(app, dest, today) == 2
    assert active_count(app, source, today) == 1

    # the loser still holds its original seat and token
    loser = next(tok for tok, r in zip(tokens, responses) if r.status_code == 409)
    with app.app_context():
        booking = Booking.query.filter_by(reschedule_token=loser).one()
        assert booking.slot_id == source


def test_cancel_and_book_race_never_oversells(app):
    slot_id = make_slot(app, capacity=1)
    holder = make_user(app, "holder@example.com", client_id=300)
    newcomer = make_user(app, "newcomer@example.com", client_id=301)
    booking_id, token = make_booking(app, holder, slot_id, FUTURE)
    clients = _staff_clients(app, 1) + [ApiClient(app)]

    responses = _fire([
        lambda: clients[0].post(
            "/bookings/staff", {"user_id": newcomer, "slot_id": slot_id, "date": FUTURE.isoformat()}
        ),
        lambda: clients[1].post(f"/bookings/cancel/{token}"),
    ])

    assert responses[1].status_code == 200
    assert responses[0].status_code in (201, 409)
    assert active_count(app, slot_id, FUTURE) <= 1
    with app.app_context():
        assert db.session.get(Booking, booking_id).status == "cancelled"
