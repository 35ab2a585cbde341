from datetime import time

from models import db
from models.slot import Slot
from models.user import Role

DEFAULT_ROLES = ["CLIENT", "STAFF", "ADMIN"]

# Weekday pantry hours in half-hour slots
DEFAULT_SLOT_TIMES = [
    (time(9, 30), time(10, 0)),
    (time(10, 0), time(10, 30)),
    (time(10, 30), time(11, 0)),
    (time(11, 0), time(11, 30)),
    (time(11, 30), time(12, 0)),
    (time(12, 30), time(13, 0)),
    (time(13, 0), time(13, 30)),
    (time(13, 30), time(14, 0)),
    (time(14, 0), time(14, 30)),
    (time(14, 30), time(15, 0)),
]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_slots(max_capacity: int = 4) -> int:
    existing = {(s.start_time, s.end_time) for s in Slot.query.all()}
    added = 0
    for start, end in DEFAULT_SLOT_TIMES:
        if (start, end) not in existing:
            db.session.add(Slot(start_time=start, end_time=end, max_capacity=max_capacity))
            added += 1
    db.session.commit()
    return added
