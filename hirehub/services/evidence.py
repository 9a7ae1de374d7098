"""Value types stored as JSON on check-ins and circumvention flags.

``ParsedResponse`` is the normalized form of any candidate answer, whether it
came from a button click or from an AI parse of free text. Flag evidence is a
tagged union keyed by ``kind``.
"""
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

from .risk import RiskLevel

SOURCE_CLICKED_BUTTON = "clicked_button"
SOURCE_FREE_TEXT = "free_text"

CONFIDENCE_LEVELS = ("low", "medium", "high")


def _iso(dt):
    return dt.isoformat() if dt is not None else None


def _known(cls, data):
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in names}


@dataclass
class ParsedResponse:
    status: str
    risk_level: RiskLevel
    risk_reason: str
    source: str
    summary: Optional[str] = None
    suggested_action: Optional[str] = None
    confidence: Optional[str] = None
    message: Optional[str] = None
    submitted_at: Optional[str] = None
    start_date_mentioned: Optional[str] = None
    role_title_mentioned: Optional[str] = None
    salary_mentioned: Optional[str] = None
    company_mentioned: Optional[str] = None
    is_introduced_company: Optional[bool] = None
    employment_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = RiskLevel(self.risk_level).value
        return data

    @classmethod
    def from_dict(cls, data):
        kwargs = _known(cls, data)
        kwargs["risk_level"] = RiskLevel(kwargs["risk_level"])
        return cls(**kwargs)


@dataclass
class CheckInResponseEvidence:
    check_in_id: int
    check_in_number: int
    candidate_response: str
    reported_at: str
    start_date: Optional[str] = None
    role_title: Optional[str] = None
    message: Optional[str] = None
    kind: str = field(default="check_in_response", init=False)


@dataclass
class EmailReplyEvidence:
    check_in_id: int
    check_in_number: int
    parsed_response: Dict[str, Any]
    original_email: str
    detected_at: str
    ai_confidence: Optional[str] = None
    kind: str = field(default="email_reply_parsing", init=False)


@dataclass
class ManualEvidence:
    notes: str
    reported_by: Optional[str]
    reported_at: str
    kind: str = field(default="manual", init=False)


EVIDENCE_TYPES = {
    "check_in_response": CheckInResponseEvidence,
    "email_reply_parsing": EmailReplyEvidence,
    "manual": ManualEvidence,
}


def evidence_to_dict(evidence) -> Dict[str, Any]:
    return asdict(evidence)


def evidence_from_dict(data):
    """Rebuild an evidence object; unknown kinds raise ``ValueError``."""
    kind = (data or {}).get("kind")
    cls = EVIDENCE_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown evidence kind: {kind!r}")
    return cls(**{k: v for k, v in _known(cls, data).items() if k != "kind"})


def structured_evidence(check_in, status, now, message=None, start_date=None, role_title=None):
    return CheckInResponseEvidence(
        check_in_id=check_in.id,
        check_in_number=check_in.check_in_number,
        candidate_response=status,
        reported_at=_iso(now),
        start_date=start_date,
        role_title=role_title,
        message=message,
    )


def email_reply_evidence(check_in, parsed: ParsedResponse, raw_text, now):
    return EmailReplyEvidence(
        check_in_id=check_in.id,
        check_in_number=check_in.check_in_number,
        parsed_response=parsed.to_dict(),
        original_email=raw_text,
        detected_at=_iso(now),
        ai_confidence=parsed.confidence,
    )


def manual_evidence(notes, reported_by, now):
    return ManualEvidence(notes=notes, reported_by=reported_by, reported_at=_iso(now))
