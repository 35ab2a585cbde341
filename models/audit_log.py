import json
from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    """Append-only record of booking, slot and account actions."""
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # null for emailed-token links and CLI jobs
    action = db.Column(db.String(80), nullable=False)  # e.g. BOOKING_CREATE, BOOKING_FAIL
    entity = db.Column(db.String(80), nullable=True)   # booking, slot
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
    )

    @property
    def details(self) -> dict:
        return json.loads(self.metadata_json) if self.metadata_json else {}
