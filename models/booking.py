import enum
from datetime import datetime
from models.db import db


class BookingStatus(str, enum.Enum):
    """Every status a pantry booking can hold.

    ``approved`` is the only active state. The other three are terminal:
    ``cancelled`` releases the seat, ``no_show`` and ``visited`` close an
    appointment whose date has passed and keep counting toward capacity.
    """

    APPROVED = "approved"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    VISITED = "visited"

    @classmethod
    def values(cls):
        return [s.value for s in cls]

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.APPROVED

    @property
    def holds_capacity(self) -> bool:
        return self is not BookingStatus.CANCELLED


STATUS_CHECK_SQL = "status IN ({})".format(
    ", ".join("'{}'".format(v) for v in BookingStatus.values())
)
ACTIVE_ROW_SQL = "status <> '{}'".format(BookingStatus.CANCELLED.value)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    # exactly one of these identifies who the booking is for
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    new_client_id = db.Column(db.Integer, db.ForeignKey("new_clients.id"), nullable=True, index=True)

    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.APPROVED.value)

    reschedule_token = db.Column(db.String(64), unique=True, nullable=False)
    note = db.Column(db.Text, nullable=True)      # client's note at booking time
    reason = db.Column(db.String(255), nullable=True)  # staff note on cancel/outcome
    is_staff_booking = db.Column(db.Boolean, default=False, nullable=False)
    reminder_sent = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    slot = db.relationship("Slot")
    user = db.relationship("User")
    new_client = db.relationship("NewClient")

    __table_args__ = (
        db.CheckConstraint(STATUS_CHECK_SQL, name="bookings_status_check"),
        db.CheckConstraint(
            "(user_id IS NULL) <> (new_client_id IS NULL)",
            name="bookings_one_client_check",
        ),
        # One live appointment per person per day; cancelled rows never block a rebook
        db.Index(
            "bookings_user_date_unique_active",
            "user_id", "date",
            unique=True,
            postgresql_where=db.text(ACTIVE_ROW_SQL),
            sqlite_where=db.text(ACTIVE_ROW_SQL),
        ),
        db.Index(
            "bookings_new_client_date_unique_active",
            "new_client_id", "date",
            unique=True,
            postgresql_where=db.text(ACTIVE_ROW_SQL),
            sqlite_where=db.text(ACTIVE_ROW_SQL),
        ),
        db.Index("ix_bookings_slot_date_status", "slot_id", "date", "status"),
    )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    def contact(self):
        """(name, email) of whoever the booking is for."""
        if self.user is not None:
            return self.user.display_name, self.user.email
        if self.new_client is not None:
            return self.new_client.name, self.new_client.email
        return None, None

    def to_dict(self, include_token=False):
        out = {
            "id": self.id,
            "user_id": self.user_id,
            "new_client_id": self.new_client_id,
            "slot_id": self.slot_id,
            "date": self.date.isoformat(),
            "status": self.status,
            "note": self.note,
            "reason": self.reason,
            "is_staff_booking": self.is_staff_booking,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if self.slot is not None:
            out["start_time"] = self.slot.start_time.strftime("%H:%M:%S")
            out["end_time"] = self.slot.end_time.strftime("%H:%M:%S")
        if include_token:
            out["reschedule_token"] = self.reschedule_token
        return out
