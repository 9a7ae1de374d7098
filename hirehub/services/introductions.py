"""Introduction lifecycle: profile view, intro request, candidate answer, close."""
from datetime import timedelta

from flask import current_app

from ..errors import ConflictError, NotFoundError, TokenExpiredError, ValidationError
from ..extensions import db, rq
from ..models.candidate import Candidate
from ..models.employer import Employer
from ..models.introduction import (
    CandidateResponse, Introduction, IntroductionStatus, protection_end,
)
from ..models.job import Job
from ..utils.timeutil import utcnow
from . import tokens
from .mail import send_template

ANSWERS = (CandidateResponse.ACCEPTED, CandidateResponse.DECLINED, CandidateResponse.QUESTIONS)

# answers an admin may record for a candidate who replied off-platform
MANUAL_ANSWERS = {
    'ACCEPT': CandidateResponse.ACCEPTED,
    'ACCEPTED': CandidateResponse.ACCEPTED,
    'DECLINE': CandidateResponse.DECLINED,
    'DECLINED': CandidateResponse.DECLINED,
}


def get_introduction(introduction_id) -> Introduction:
    intro = db.session.get(Introduction, introduction_id)
    if intro is None:
        raise NotFoundError('Introduction not found', code='INTRODUCTION_NOT_FOUND')
    return intro


def _load_parties(employer_id, candidate_id):
    employer = db.session.get(Employer, employer_id)
    if employer is None:
        raise NotFoundError('Employer profile not found', code='EMPLOYER_NOT_FOUND')
    candidate = db.session.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFoundError('Candidate not found', code='CANDIDATE_NOT_FOUND')
    return employer, candidate


def _new_introduction(employer, candidate, now):
    months = current_app.config.get('PROTECTION_PERIOD_MONTHS', 12)
    intro = Introduction(
        employer_id=employer.id,
        candidate_id=candidate.id,
        status=IntroductionStatus.PROFILE_VIEWED,
        profile_viewed_at=now,
        protection_starts_at=now,
        protection_ends_at=protection_end(now, months),
        profile_views=0,
        resume_downloads=0,
        email_resend_count=0,
        candidate_response=CandidateResponse.PENDING,
    )
    db.session.add(intro)
    return intro


def record_profile_view(employer_id, candidate_id, now=None):
    """First view starts the protection window; later views only count."""
    now = now or utcnow()
    employer, candidate = _load_parties(employer_id, candidate_id)
    intro = Introduction.query.filter_by(employer_id=employer.id, candidate_id=candidate.id).first()
    created = intro is None
    if created:
        intro = _new_introduction(employer, candidate, now)
        current_app.logger.info('protection window opened for employer %s / candidate %s until %s',
                                employer.id, candidate.id, intro.protection_ends_at.isoformat())
    intro.profile_views = (intro.profile_views or 0) + 1
    db.session.commit()
    return intro, created


def record_resume_download(employer_id, candidate_id, now=None):
    intro, _ = record_profile_view(employer_id, candidate_id, now=now)
    intro.resume_downloads = (intro.resume_downloads or 0) + 1
    db.session.commit()
    return intro


def _send_request_email(intro, now):
    candidate = intro.candidate
    link = f"{current_app.config.get('APP_URL')}/introductions/respond/{intro.response_token}"
    result = send_template(
        candidate.email,
        f"{intro.employer.company_name} would like to be introduced to you",
        'intro_request',
        kind='intro_request',
        introduction_id=intro.id,
        candidate_first_name=candidate.first_name,
        company_name=intro.employer.company_name,
        job_title=intro.job_title,
        respond_url=link,
        expires_at=intro.response_token_expiry,
    )
    if result.success:
        intro.last_email_sent_at = now
    return result.success


def request_introduction(employer_id, candidate_id, job_id=None, now=None):
    """Ask the candidate for an introduction.

    Returns ``(introduction, email_sent)``. Asking again while the candidate
    has not answered re-issues the link and resends the email.
    """
    now = now or utcnow()
    employer, candidate = _load_parties(employer_id, candidate_id)
    job = None
    if job_id is not None:
        job = db.session.get(Job, job_id)
        if job is None or job.employer_id != employer.id:
            raise NotFoundError('Job not found', code='JOB_NOT_FOUND')

    intro = Introduction.query.filter_by(employer_id=employer.id, candidate_id=candidate.id).first()
    if intro is None:
        intro = _new_introduction(employer, candidate, now)
        intro.profile_views = 1
        db.session.flush()

    if intro.status == IntroductionStatus.INTRO_REQUESTED:
        intro.email_resend_count = (intro.email_resend_count or 0) + 1
    else:
        intro.transition_to(IntroductionStatus.INTRO_REQUESTED)
        intro.intro_requested_at = now
    if job is not None:
        intro.job_id = job.id
        intro.job = job
    tokens.issue(intro, now, current_app.config.get('INTRODUCTION_TOKEN_DAYS', 7))
    db.session.commit()

    sent = _send_request_email(intro, now)
    db.session.commit()
    if not sent:
        current_app.logger.warning('introduction %s requested but candidate email failed', intro.id)
    return intro, sent


def _find_by_token(token):
    intro = Introduction.query.filter_by(response_token=token).first() if token else None
    if intro is None:
        raise NotFoundError('Invalid or expired link', code='INVALID_TOKEN')
    return intro


def _check_answerable(intro, now):
    if intro.candidate_response in (CandidateResponse.ACCEPTED, CandidateResponse.DECLINED):
        raise ConflictError('You have already responded to this introduction request',
                            code='ALREADY_RESPONDED', response=intro.candidate_response.value)
    if intro.response_token_expiry is not None and intro.response_token_expiry < now:
        raise TokenExpiredError('This link has expired. Please contact support for a new link.')


def get_introduction_context(token, now=None):
    now = now or utcnow()
    intro = _find_by_token(token)
    _check_answerable(intro, now)
    job = intro.job
    return {
        'id': intro.id,
        'status': intro.status.value,
        'requested_at': intro.intro_requested_at.isoformat() if intro.intro_requested_at else None,
        'company_name': intro.employer.company_name,
        'job': {'title': job.title, 'salary_min': job.salary_min, 'salary_max': job.salary_max} if job else None,
        'candidate_name': intro.candidate.name,
    }


def respond_to_introduction(token, response, message=None, now=None):
    now = now or utcnow()
    try:
        answer = CandidateResponse(response)
    except ValueError:
        answer = None
    if answer not in ANSWERS:
        raise ValidationError('Invalid response. Must be ACCEPTED, DECLINED, or QUESTIONS',
                              code='INVALID_RESPONSE', valid_responses=[a.value for a in ANSWERS])
    if answer == CandidateResponse.QUESTIONS and not (message or '').strip():
        raise ValidationError("Message is required when selecting 'I Have Questions'", code='MESSAGE_REQUIRED')

    intro = _find_by_token(token)
    _check_answerable(intro, now)

    if answer == CandidateResponse.ACCEPTED:
        intro.transition_to(IntroductionStatus.INTRODUCED)
        intro.introduced_at = now
    elif answer == CandidateResponse.DECLINED:
        intro.transition_to(IntroductionStatus.CANDIDATE_DECLINED)
    intro.candidate_response = answer
    intro.candidate_responded_at = now
    intro.candidate_message = message or None
    db.session.commit()
    current_app.logger.info('introduction %s answered %s', intro.id, answer.value)

    if answer == CandidateResponse.QUESTIONS:
        from ..jobs.notify import notify_admin
        rq.enqueue(notify_admin, f'Candidate has questions about {intro.employer.company_name}',
                   'intro_questions', introduction_id=intro.id, context={
                       'candidate_name': intro.candidate.name,
                       'candidate_email': intro.candidate.email,
                       'company_name': intro.employer.company_name,
                       'job_title': intro.job_title,
                       'message': message,
                   })
    else:
        _notify_employer(intro, answer)
    return intro


def _notify_employer(intro, answer):
    employer = intro.employer
    accepted = answer == CandidateResponse.ACCEPTED
    template = 'intro_accepted' if accepted else 'intro_declined'
    subject = (f'{intro.candidate.name} accepted your introduction request' if accepted
               else 'Update on your introduction request')
    result = send_template(employer.billing_email, subject, template, kind=template,
                           introduction_id=intro.id, company_name=employer.company_name,
                           contact_name=employer.contact_name, candidate_name=intro.candidate.name,
                           candidate_email=intro.candidate.email, candidate_phone=intro.candidate.phone,
                           job_title=intro.job_title, message=intro.candidate_message,
                           protection_ends_at=intro.protection_ends_at)
    db.session.commit()
    return result.success


def close_without_hire(introduction_id, note=None, author='ADMIN', now=None):
    now = now or utcnow()
    intro = get_introduction(introduction_id)
    if intro.is_terminal:
        raise ConflictError(f'Introduction is already {intro.status.value}', code='INVALID_TRANSITION')
    intro.transition_to(IntroductionStatus.CLOSED_NO_HIRE)
    if note:
        intro.append_note(note, now, author=author)
    db.session.commit()
    current_app.logger.info('introduction %s closed without hire', intro.id)
    return intro


def record_manual_response(introduction_id, response, note=None, author='ADMIN', now=None):
    """Record an answer the candidate gave by phone or in person.

    Same effect as the candidate using the link: status moves, the employer
    is emailed, and the link stops working.
    """
    now = now or utcnow()
    answer = MANUAL_ANSWERS.get((response or '').strip().upper())
    if answer is None:
        raise ValidationError("Invalid response. Must be 'ACCEPT' or 'DECLINE'", code='INVALID_RESPONSE')
    intro = get_introduction(introduction_id)
    if intro.candidate_response in (CandidateResponse.ACCEPTED, CandidateResponse.DECLINED):
        raise ConflictError('The candidate has already responded to this introduction',
                            code='ALREADY_RESPONDED', response=intro.candidate_response.value)

    if answer == CandidateResponse.ACCEPTED:
        intro.transition_to(IntroductionStatus.INTRODUCED)
        intro.introduced_at = now
    else:
        intro.transition_to(IntroductionStatus.CANDIDATE_DECLINED)
    intro.candidate_response = answer
    intro.candidate_responded_at = now
    intro.response_token = None
    intro.response_token_expiry = None
    if note:
        intro.append_note(f'Manual {answer.value.lower()} - {note}', now, author=author)
    db.session.commit()
    current_app.logger.info('introduction %s manually marked %s by %s', intro.id, answer.value, author)

    _notify_employer(intro, answer)
    return intro


def _expiring(now, within_days):
    return Introduction.query.filter(
        Introduction.status == IntroductionStatus.INTRODUCED,
        Introduction.protection_ends_at >= now,
        Introduction.protection_ends_at <= now + timedelta(days=within_days),
    )


def _expired(now, since_days):
    return Introduction.query.filter(
        Introduction.status == IntroductionStatus.EXPIRED,
        Introduction.protection_ends_at >= now - timedelta(days=since_days),
        Introduction.protection_ends_at < now,
    )


def _check_days(days, name):
    if days is None or days < 1:
        raise ValidationError(f'{name} must be at least 1')


def list_expiring_introductions(within_days=7, page=1, per_page=20, now=None):
    """Protected introductions whose window closes in the next ``within_days``."""
    now = now or utcnow()
    _check_days(within_days, 'within_days')
    return (_expiring(now, within_days)
            .order_by(Introduction.protection_ends_at.asc())
            .paginate(page=page, per_page=per_page, error_out=False))


def list_expired_introductions(since_days=30, page=1, per_page=20, now=None):
    now = now or utcnow()
    _check_days(since_days, 'since_days')
    return (_expired(now, since_days)
            .order_by(Introduction.protection_ends_at.desc())
            .paginate(page=page, per_page=per_page, error_out=False))


def expiry_counts(now=None):
    now = now or utcnow()
    counts = {f'expiring_in_{d}_days': _expiring(now, d).count() for d in (7, 30, 90)}
    counts.update({f'expired_last_{d}_days': _expired(now, d).count() for d in (30, 60, 90)})
    return counts
