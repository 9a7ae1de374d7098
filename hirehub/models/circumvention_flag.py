import enum
from decimal import Decimal

from ..extensions import db
from .base import TimestampMixin, enum_type


class FlagStatus(str, enum.Enum):
    OPEN = "OPEN"
    INVOICE_SENT = "INVOICE_SENT"
    PAID = "PAID"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    WROTE_OFF = "WROTE_OFF"


class DetectionMethod(str, enum.Enum):
    CHECK_IN_RESPONSE = "check_in_response"
    EMAIL_REPLY_PARSING = "email_reply_parsing"
    MANUAL = "manual"


RESOLVED_STATUSES = frozenset({FlagStatus.PAID, FlagStatus.FALSE_POSITIVE, FlagStatus.WROTE_OFF})
ACTIVE_STATUSES = frozenset({FlagStatus.OPEN, FlagStatus.INVOICE_SENT})

FLAG_TRANSITIONS = {
    FlagStatus.OPEN: {FlagStatus.INVOICE_SENT, FlagStatus.FALSE_POSITIVE, FlagStatus.WROTE_OFF},
    FlagStatus.INVOICE_SENT: {FlagStatus.PAID, FlagStatus.FALSE_POSITIVE, FlagStatus.WROTE_OFF},
}

CENTS = Decimal("0.01")


def compute_fee(salary, percentage):
    """salary x percentage / 100, rounded to cents; None if either is missing."""
    if salary is None or percentage is None:
        return None
    return (Decimal(salary) * Decimal(percentage) / Decimal(100)).quantize(CENTS)


def _money(val):
    return str(val) if val is not None else None


class CircumventionFlag(db.Model, TimestampMixin):
    __tablename__ = "circumvention_flags"

    id = db.Column(db.Integer, primary_key=True)
    introduction_id = db.Column(db.Integer, db.ForeignKey("candidate_introductions.id"), nullable=False, index=True)
    detection_method = db.Column(enum_type(DetectionMethod), nullable=False)
    evidence = db.Column(db.JSON, nullable=False)
    status = db.Column(enum_type(FlagStatus), nullable=False, default=FlagStatus.OPEN, index=True)
    detected_at = db.Column(db.DateTime, nullable=False)

    estimated_salary = db.Column(db.Numeric(12, 2))
    fee_percentage = db.Column(db.Numeric(5, 2))
    estimated_fee_owed = db.Column(db.Numeric(12, 2))

    resolved_at = db.Column(db.DateTime)
    resolution = db.Column(db.String(255))
    resolution_notes = db.Column(db.Text)

    invoice_number = db.Column(db.String(40))
    invoice_sent_at = db.Column(db.DateTime)
    invoice_amount = db.Column(db.Numeric(12, 2))
    invoice_due_date = db.Column(db.DateTime)
    invoice_paid_at = db.Column(db.DateTime)

    introduction = db.relationship("Introduction", back_populates="flags")

    @property
    def is_resolved(self):
        return self.status in RESOLVED_STATUSES

    def can_transition_to(self, status):
        return status == self.status or status in FLAG_TRANSITIONS.get(self.status, ())

    def to_dict(self):
        return {
            "id": self.id,
            "introduction_id": self.introduction_id,
            "status": self.status.value,
            "detection_method": self.detection_method.value,
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
            "evidence": self.evidence,
            "estimated_salary": _money(self.estimated_salary),
            "fee_percentage": _money(self.fee_percentage),
            "estimated_fee_owed": _money(self.estimated_fee_owed),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution": self.resolution,
            "resolution_notes": self.resolution_notes,
            "invoice_number": self.invoice_number,
            "invoice_sent_at": self.invoice_sent_at.isoformat() if self.invoice_sent_at else None,
            "invoice_amount": _money(self.invoice_amount),
            "invoice_due_date": self.invoice_due_date.isoformat() if self.invoice_due_date else None,
            "invoice_paid_at": self.invoice_paid_at.isoformat() if self.invoice_paid_at else None,
        }

    def __repr__(self) -> str:
        return f"<CircumventionFlag id={self.id} introduction_id={self.introduction_id} status={self.status}>"
