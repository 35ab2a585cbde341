from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .new_client import NewClient
from .slot import Slot
from .booking import Booking, BookingStatus
from .email_queue import EmailQueue
