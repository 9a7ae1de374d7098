import enum

from dateutil.relativedelta import relativedelta

from ..extensions import db
from ..errors import ConflictError
from .base import TimestampMixin, enum_type


class IntroductionStatus(str, enum.Enum):
    PROFILE_VIEWED = "PROFILE_VIEWED"
    INTRO_REQUESTED = "INTRO_REQUESTED"
    INTRODUCED = "INTRODUCED"
    HIRED = "HIRED"
    CANDIDATE_DECLINED = "CANDIDATE_DECLINED"
    CLOSED_NO_HIRE = "CLOSED_NO_HIRE"
    EXPIRED = "EXPIRED"


class CandidateResponse(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    QUESTIONS = "QUESTIONS"


TERMINAL_STATUSES = frozenset({
    IntroductionStatus.HIRED,
    IntroductionStatus.CANDIDATE_DECLINED,
    IntroductionStatus.CLOSED_NO_HIRE,
    IntroductionStatus.EXPIRED,
})

ALLOWED_TRANSITIONS = {
    IntroductionStatus.PROFILE_VIEWED: {
        IntroductionStatus.INTRO_REQUESTED,
        IntroductionStatus.HIRED,
        IntroductionStatus.CLOSED_NO_HIRE,
        IntroductionStatus.EXPIRED,
    },
    IntroductionStatus.INTRO_REQUESTED: {
        IntroductionStatus.INTRODUCED,
        IntroductionStatus.CANDIDATE_DECLINED,
        IntroductionStatus.HIRED,
        IntroductionStatus.CLOSED_NO_HIRE,
        IntroductionStatus.EXPIRED,
    },
    IntroductionStatus.INTRODUCED: {
        IntroductionStatus.HIRED,
        IntroductionStatus.CLOSED_NO_HIRE,
        IntroductionStatus.EXPIRED,
    },
}


def protection_end(starts_at, months=12):
    return starts_at + relativedelta(months=months)


class Introduction(db.Model, TimestampMixin):
    __tablename__ = "candidate_introductions"

    id = db.Column(db.Integer, primary_key=True)
    employer_id = db.Column(db.Integer, db.ForeignKey("employers.id"), nullable=False, index=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey("candidates.id"), nullable=False, index=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id"))

    status = db.Column(enum_type(IntroductionStatus), nullable=False, default=IntroductionStatus.PROFILE_VIEWED, index=True)

    profile_viewed_at = db.Column(db.DateTime)
    intro_requested_at = db.Column(db.DateTime)
    candidate_responded_at = db.Column(db.DateTime)
    candidate_response = db.Column(enum_type(CandidateResponse), default=CandidateResponse.PENDING)
    introduced_at = db.Column(db.DateTime)

    # fixed at creation, never recomputed
    protection_starts_at = db.Column(db.DateTime, nullable=False)
    protection_ends_at = db.Column(db.DateTime, nullable=False, index=True)

    profile_views = db.Column(db.Integer, nullable=False, default=0)
    resume_downloads = db.Column(db.Integer, nullable=False, default=0)

    response_token = db.Column(db.String(128), unique=True, index=True)
    response_token_expiry = db.Column(db.DateTime)
    last_email_sent_at = db.Column(db.DateTime)
    email_resend_count = db.Column(db.Integer, nullable=False, default=0)

    candidate_message = db.Column(db.Text)
    expiry_warning_sent_at = db.Column(db.DateTime)
    admin_notes = db.Column(db.Text)

    employer = db.relationship("Employer", lazy="joined")
    candidate = db.relationship("Candidate", lazy="joined")
    job = db.relationship("Job")
    check_ins = db.relationship(
        "CheckIn", back_populates="introduction", order_by="CheckIn.check_in_number",
        cascade="all, delete-orphan",
    )
    flags = db.relationship("CircumventionFlag", back_populates="introduction", cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint('employer_id', 'candidate_id', name='uq_introductions_employer_candidate'),
    )

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def job_title(self):
        return self.job.title if self.job else None

    def can_transition_to(self, status):
        return status in ALLOWED_TRANSITIONS.get(self.status, ())

    def transition_to(self, status):
        if self.status == status:
            return
        if not self.can_transition_to(status):
            raise ConflictError(
                f"Introduction {self.id} cannot move from {self.status.value} to {status.value}",
                code="INVALID_TRANSITION",
            )
        self.status = status

    def latest_check_in(self):
        return self.check_ins[-1] if self.check_ins else None

    def append_note(self, note, now, author="ADMIN"):
        entry = f"[{now.isoformat()}] {author}: {note}"
        self.admin_notes = f"{self.admin_notes}\n{entry}" if self.admin_notes else entry

    def to_dict(self):
        last = self.latest_check_in()
        return {
            "id": self.id,
            "status": self.status.value,
            "employer_id": self.employer_id,
            "company_name": self.employer.company_name if self.employer else None,
            "candidate_id": self.candidate_id,
            "candidate_name": self.candidate.name if self.candidate else None,
            "candidate_email": self.candidate.email if self.candidate else None,
            "job_id": self.job_id,
            "job_title": self.job_title,
            "candidate_response": self.candidate_response.value if self.candidate_response else None,
            "introduced_at": self.introduced_at.isoformat() if self.introduced_at else None,
            "protection_ends_at": self.protection_ends_at.isoformat() if self.protection_ends_at else None,
            "check_ins": {
                "total": len(self.check_ins),
                "responded": sum(1 for c in self.check_ins if c.responded_at is not None),
            },
            "last_check_in": last.to_dict() if last else None,
        }

    def __repr__(self) -> str:
        return f"<Introduction id={self.id} employer_id={self.employer_id} candidate_id={self.candidate_id} status={self.status}>"
