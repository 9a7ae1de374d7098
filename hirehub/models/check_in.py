from ..extensions import db
from .base import TimestampMixin, enum_type
from ..services.risk import RiskLevel

RESPONSE_CLICKED_BUTTON = "clicked_button"
RESPONSE_FREE_TEXT = "free_text"


class CheckIn(db.Model, TimestampMixin):
    __tablename__ = "candidate_check_ins"

    id = db.Column(db.Integer, primary_key=True)
    introduction_id = db.Column(db.Integer, db.ForeignKey("candidate_introductions.id"), nullable=False, index=True)
    check_in_number = db.Column(db.Integer, nullable=False)
    scheduled_for = db.Column(db.DateTime, nullable=False)

    sent_at = db.Column(db.DateTime)
    send_attempts = db.Column(db.Integer, nullable=False, default=0)
    last_send_error = db.Column(db.Text)

    response_token = db.Column(db.String(128), unique=True, index=True)
    response_token_expiry = db.Column(db.DateTime)

    responded_at = db.Column(db.DateTime)
    response_type = db.Column(db.String(20))  # clicked_button / free_text
    response_raw = db.Column(db.Text)
    response_parsed = db.Column(db.JSON(none_as_null=True))
    previous_response_parsed = db.Column(db.JSON(none_as_null=True))  # prior AI parse, kept on re-parse
    risk_level = db.Column(enum_type(RiskLevel))
    risk_reason = db.Column(db.Text)
    flagged_for_review = db.Column(db.Boolean, nullable=False, default=False)

    introduction = db.relationship("Introduction", back_populates="check_ins")

    __table_args__ = (
        db.UniqueConstraint('introduction_id', 'check_in_number', name='uq_check_ins_intro_number'),
    )

    def token_expired(self, now):
        return self.response_token_expiry is not None and self.response_token_expiry < now

    def to_dict(self):
        return {
            "id": self.id,
            "introduction_id": self.introduction_id,
            "check_in_number": self.check_in_number,
            "scheduled_for": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "response_type": self.response_type,
            "response_raw": self.response_raw,
            "response_parsed": self.response_parsed,
            "previous_response_parsed": self.previous_response_parsed,
            "risk_level": self.risk_level.value if self.risk_level else None,
            "risk_reason": self.risk_reason,
            "flagged_for_review": self.flagged_for_review,
        }

    def __repr__(self) -> str:
        return f"<CheckIn id={self.id} introduction_id={self.introduction_id} number={self.check_in_number}>"
