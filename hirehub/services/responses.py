"""Ingest candidate answers to check-ins.

Two entry points: the button/link form (structured answer, classified with
the fixed risk table) and an admin-pasted email reply (free text, parsed by
the AI). Both end in a ``ParsedResponse`` stored on the check-in.
"""
import json

from flask import current_app

from ..errors import ConflictError, NotFoundError, TokenExpiredError, ValidationError
from ..extensions import db
from ..models.check_in import CheckIn, RESPONSE_CLICKED_BUTTON, RESPONSE_FREE_TEXT
from ..models.circumvention_flag import DetectionMethod
from ..utils.timeutil import utcnow
from . import openai_wrap
from .circumvention import alert_admin_of_flag, open_flag
from .evidence import ParsedResponse, SOURCE_CLICKED_BUTTON, email_reply_evidence, structured_evidence
from .risk import RiskLevel, VALID_STATUSES, classify, needs_review

MIN_REPLY_LENGTH = 10
ALERT_EXCERPT_CHARS = 1000
REVIEW_PAGE_SIZE = 50


def _find_by_token(token):
    check_in = CheckIn.query.filter_by(response_token=token).first() if token else None
    if check_in is None:
        raise NotFoundError('Invalid or unknown check-in link', code='INVALID_TOKEN')
    return check_in


def get_check_in_context(token, now=None):
    """What the answer page needs to render for ``token``."""
    now = now or utcnow()
    check_in = _find_by_token(token)
    intro = check_in.introduction
    if check_in.responded_at is not None:
        state = 'responded'
    elif check_in.token_expired(now):
        state = 'expired'
    else:
        state = 'pending'
    return {
        'status': state,
        'check_in_number': check_in.check_in_number,
        'candidate_first_name': intro.candidate.first_name if intro.candidate else None,
        'company_name': intro.employer.company_name if intro.employer else None,
        'job_title': intro.job_title,
        'introduced_at': intro.introduced_at.isoformat() if intro.introduced_at else None,
        'responded_at': check_in.responded_at.isoformat() if check_in.responded_at else None,
        'valid_statuses': list(VALID_STATUSES),
    }


def submit_structured_response(token, status, message=None, start_date=None, role_title=None, now=None):
    """Record the candidate's single structured answer.

    Returns ``(check_in, parsed, flag)``; ``flag`` is set only when the answer
    opened a circumvention flag.
    """
    now = now or utcnow()
    check_in = _find_by_token(token)
    if check_in.responded_at is not None:
        raise ConflictError('This check-in has already been answered', code='ALREADY_RESPONDED')
    if check_in.token_expired(now):
        raise TokenExpiredError('This check-in link has expired')
    if status not in VALID_STATUSES:
        raise ValidationError('Invalid status', code='INVALID_STATUS', valid_statuses=list(VALID_STATUSES))

    intro = check_in.introduction
    employer_name = intro.employer.company_name if intro.employer else None
    level, reason = classify(status, employer_name)
    parsed = ParsedResponse(
        status=status,
        risk_level=level,
        risk_reason=reason,
        source=SOURCE_CLICKED_BUTTON,
        summary=reason,
        message=message,
        submitted_at=now.isoformat(),
        start_date_mentioned=start_date,
        role_title_mentioned=role_title,
    )
    raw = json.dumps({'status': status, 'message': message, 'start_date': start_date, 'role_title': role_title})

    # single answer: only the first writer sees responded_at IS NULL
    won = (CheckIn.query
           .filter(CheckIn.id == check_in.id, CheckIn.responded_at.is_(None))
           .update({
               'responded_at': now,
               'response_type': RESPONSE_CLICKED_BUTTON,
               'response_raw': raw,
               'response_parsed': parsed.to_dict(),
               'risk_level': level,
               'risk_reason': reason,
               'flagged_for_review': needs_review(level),
           }, synchronize_session=False))
    if not won:
        db.session.rollback()
        raise ConflictError('This check-in has already been answered', code='ALREADY_RESPONDED')

    flag = None
    if status == 'hired_there':
        evidence = structured_evidence(check_in, status, now, message=message,
                                       start_date=start_date, role_title=role_title)
        flag, created = open_flag(intro, DetectionMethod.CHECK_IN_RESPONSE, evidence, now=now)
        db.session.commit()
        if created:
            alert_admin_of_flag(flag, f'ALERT: Candidate hired at {employer_name}', extra={
                'reason': reason, 'start_date': start_date, 'role_title': role_title, 'message': message,
            })
    else:
        db.session.commit()

    db.session.refresh(check_in)
    current_app.logger.info('check-in %s answered: %s (%s)', check_in.id, status, level.value)
    return check_in, parsed, flag


def parse_free_text_reply(check_in_id, raw_text, now=None):
    """Parse a candidate's emailed reply with the AI and store the result.

    Returns ``(check_in, parsed, flag, created)``; ``created`` is False when
    the flag already existed. When the AI cannot classify the text,
    ``ClassificationError`` propagates and nothing is written.
    """
    now = now or utcnow()
    text = (raw_text or '').strip()
    if len(text) < MIN_REPLY_LENGTH:
        raise ValidationError(f'Reply text must be at least {MIN_REPLY_LENGTH} characters',
                              code='TEXT_TOO_SHORT')
    check_in = db.session.get(CheckIn, check_in_id)
    if check_in is None:
        raise NotFoundError('Check-in not found', code='CHECK_IN_NOT_FOUND')

    intro = check_in.introduction
    employer_name = intro.employer.company_name if intro.employer else None
    parsed = openai_wrap.parse_check_in_response(text, employer_name, now=now)

    if check_in.response_parsed:
        check_in.previous_response_parsed = check_in.response_parsed
    check_in.response_type = RESPONSE_FREE_TEXT
    check_in.response_raw = text
    check_in.response_parsed = parsed.to_dict()
    check_in.responded_at = check_in.responded_at or now
    check_in.risk_level = parsed.risk_level
    check_in.risk_reason = parsed.risk_reason
    check_in.flagged_for_review = needs_review(parsed.risk_level)

    flag, created = None, False
    if parsed.status == 'hired_there' and parsed.risk_level == RiskLevel.HIGH:
        evidence = email_reply_evidence(check_in, parsed, text, now)
        flag, created = open_flag(intro, DetectionMethod.EMAIL_REPLY_PARSING, evidence, now=now)
    db.session.commit()

    if created:
        alert_admin_of_flag(flag, f'AI DETECTED: Candidate hired at {employer_name}', extra={
            'reason': parsed.risk_reason,
            'summary': parsed.summary,
            'confidence': parsed.confidence,
            'excerpt': text[:ALERT_EXCERPT_CHARS],
        })
    current_app.logger.info('check-in %s free-text parsed: %s (%s)', check_in.id, parsed.status,
                            parsed.risk_level.value)
    return check_in, parsed, flag, created


def list_check_ins_for_review(status='pending'):
    """Check-ins for the parse-reply screen.

    ``pending``: sent but unanswered, so a reply may be waiting in the inbox.
    ``flagged``: answered and flagged for review. ``all``: everything sent.
    """
    if status == 'pending':
        q = (CheckIn.query
             .filter(CheckIn.sent_at.isnot(None), CheckIn.responded_at.is_(None))
             .order_by(CheckIn.sent_at.desc()))
    elif status == 'flagged':
        q = (CheckIn.query
             .filter(CheckIn.flagged_for_review.is_(True))
             .order_by(CheckIn.responded_at.desc()))
    elif status == 'all':
        q = (CheckIn.query
             .filter(CheckIn.sent_at.isnot(None))
             .order_by(db.func.coalesce(CheckIn.responded_at, CheckIn.sent_at).desc()))
    else:
        raise ValidationError('status must be one of pending, flagged, all')
    return q.limit(REVIEW_PAGE_SIZE).all()
