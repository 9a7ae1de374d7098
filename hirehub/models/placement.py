import enum
from datetime import timedelta

from ..extensions import db
from .base import TimestampMixin, enum_type


class PlacementStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Placement(db.Model, TimestampMixin):
    __tablename__ = "placements"

    id = db.Column(db.Integer, primary_key=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey("candidates.id"), nullable=False, index=True)
    employer_id = db.Column(db.Integer, db.ForeignKey("employers.id"), index=True)
    job_title = db.Column(db.String(200), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(enum_type(PlacementStatus), nullable=False, default=PlacementStatus.PENDING, index=True)
    placement_fee = db.Column(db.Integer)  # cents
    guarantee_period_days = db.Column(db.Integer, nullable=False, default=90)
    guarantee_end_date = db.Column(db.DateTime, index=True)
    guarantee_warning_sent_at = db.Column(db.DateTime)

    candidate = db.relationship("Candidate", lazy="joined")
    employer = db.relationship("Employer", lazy="joined")

    def set_guarantee_end(self):
        self.guarantee_end_date = self.start_date + timedelta(days=self.guarantee_period_days or 90)
        return self.guarantee_end_date

    def __repr__(self) -> str:
        return f"<Placement id={self.id} status={self.status}>"
