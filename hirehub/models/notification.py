from ..extensions import db
from .base import TimestampMixin


class Notification(db.Model, TimestampMixin):
    """One row per outbound email attempt."""
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    introduction_id = db.Column(db.Integer, db.ForeignKey("candidate_introductions.id"), index=True)
    kind = db.Column(db.String(50))
    sent_to = db.Column(db.String(255))
    subject = db.Column(db.String(255))
    status = db.Column(db.String(20))  # sent / failed
    error = db.Column(db.Text)
    provider_message_id = db.Column(db.String(255))
    sent_at = db.Column(db.DateTime)
