"""Risk classification for structured check-in answers.

The table is fixed; AI parses of free text bring their own risk level and
never pass through here.
"""
import enum


class RiskLevel(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    CLEAR = "CLEAR"


class CheckInStatus(str, enum.Enum):
    HIRED_THERE = "hired_there"
    HIRED_ELSEWHERE = "hired_elsewhere"
    INTERVIEWING = "interviewing"
    OFFER = "offer"
    REJECTED = "rejected"
    WITHDREW = "withdrew"
    NO_RESPONSE = "no_response"
    STILL_LOOKING = "still_looking"


VALID_STATUSES = tuple(s.value for s in CheckInStatus)

# risk levels that mark a check-in for admin review
REVIEW_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.MEDIUM})

_TABLE = {
    CheckInStatus.HIRED_THERE: (
        RiskLevel.HIGH, "Candidate reported being hired at {employer} - potential fee circumvention"),
    CheckInStatus.OFFER: (
        RiskLevel.MEDIUM, "Candidate received offer from {employer} - monitor for hire"),
    CheckInStatus.INTERVIEWING: (
        RiskLevel.MEDIUM, "Candidate actively interviewing with {employer}"),
    CheckInStatus.HIRED_ELSEWHERE: (
        RiskLevel.CLEAR, "Candidate was hired elsewhere - no fee applicable"),
    CheckInStatus.REJECTED: (
        RiskLevel.CLEAR, "{employer} did not move forward with candidate"),
    CheckInStatus.WITHDREW: (
        RiskLevel.CLEAR, "Candidate withdrew from consideration"),
    CheckInStatus.NO_RESPONSE: (
        RiskLevel.CLEAR, "Candidate never heard back from {employer}"),
    CheckInStatus.STILL_LOOKING: (
        RiskLevel.LOW, "Candidate still looking / waiting to hear back"),
}


def classify(status, employer_name=None):
    """Return ``(RiskLevel, reason)`` for a structured answer.

    Raises ``ValueError`` for anything outside :class:`CheckInStatus`.
    """
    try:
        key = CheckInStatus(status)
    except ValueError:
        raise ValueError(f"Unknown check-in status: {status!r}") from None
    level, template = _TABLE[key]
    return level, template.format(employer=employer_name or "the employer")


def needs_review(level) -> bool:
    return level in REVIEW_LEVELS
