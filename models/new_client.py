from datetime import datetime
from models.db import db

class NewClient(db.Model):
    """Walk-in client entered by staff, without a login."""
    __tablename__ = "new_clients"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
