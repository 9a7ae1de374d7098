"""Periodic candidate check-ins during the protection window.

Run from cron (``/api/cron/check-ins``) or the admin trigger. Safe to run as
often as you like: a check-in that was created but never delivered is
resent, and a new one is only created when a later cadence slot has come
due.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models.check_in import CheckIn
from ..models.introduction import Introduction, IntroductionStatus
from ..services import tokens
from ..services.mail import send_template
from ..utils.batch import batch_process
from ..utils.timeutil import utcnow

JOB = 'check-in-scheduler'


@dataclass
class SchedulerResult:
    created: int = 0
    sent: int = 0
    introductions_processed: int = 0
    errors: List[str] = field(default_factory=list)


def cadence_slots(intro):
    """Cadence dates for ``intro`` that fall inside its protection window."""
    days = current_app.config.get('CHECK_IN_CADENCE_DAYS', (30, 60, 90, 180, 365))
    slots = [intro.introduced_at + timedelta(days=d) for d in days]
    return [s for s in slots if s < intro.protection_ends_at]


def latest_due_slot(intro, now):
    due = [s for s in cadence_slots(intro) if s <= now]
    return due[-1] if due else None


def pending_check_in(intro, now):
    """The newest check-in that is due but was never delivered, if any."""
    last = intro.latest_check_in()
    if last is not None and last.sent_at is None and last.scheduled_for <= now:
        return last
    return None


def create_check_in(intro, now, scheduled_for=None):
    last = intro.latest_check_in()
    check_in = CheckIn(
        introduction=intro,
        check_in_number=(last.check_in_number + 1) if last else 1,
        scheduled_for=scheduled_for or now,
        send_attempts=0,
        flagged_for_review=False,
    )
    db.session.add(check_in)
    db.session.flush()
    return check_in


def send_check_in(check_in, now):
    """Issue a fresh link and email it. Returns the ``MailResult``.

    The token is committed before the email goes out so the link in the
    email is always valid.
    """
    intro = check_in.introduction
    tokens.issue(check_in, now, current_app.config.get('CHECK_IN_TOKEN_DAYS', 7))
    check_in.send_attempts = (check_in.send_attempts or 0) + 1
    db.session.commit()

    candidate = intro.candidate
    respond_url = f"{current_app.config.get('APP_URL')}/check-in/respond/{check_in.response_token}"
    result = send_template(
        candidate.email,
        f"Quick check-in about {intro.employer.company_name}",
        'check_in',
        kind='check_in',
        introduction_id=intro.id,
        candidate_first_name=candidate.first_name,
        company_name=intro.employer.company_name,
        job_title=intro.job_title,
        check_in_number=check_in.check_in_number,
        respond_url=respond_url,
        expires_at=check_in.response_token_expiry,
        is_final=check_in.scheduled_for >= intro.protection_ends_at - timedelta(days=14),
    )
    if result.success:
        check_in.sent_at = now
        check_in.last_send_error = None
    else:
        check_in.last_send_error = result.error
    db.session.commit()
    return result


def process_introduction(intro, now, result):
    """Resend a pending check-in or create the next due one; at most one email."""
    check_in = pending_check_in(intro, now)
    if check_in is None:
        slot = latest_due_slot(intro, now)
        if slot is None:
            return
        last = intro.latest_check_in()
        if last is not None and last.scheduled_for >= slot:
            return
        try:
            check_in = create_check_in(intro, now, scheduled_for=slot)
        except IntegrityError:
            # another run created this number first
            db.session.rollback()
            current_app.logger.info('[%s] introduction %s check-in already created', JOB, intro.id)
            return
        result.created += 1

    mail = send_check_in(check_in, now)
    if mail.success:
        result.sent += 1
    else:
        result.errors.append(f'Introduction {intro.id}: check-in {check_in.check_in_number} not sent: {mail.error}')


def run_check_in_scheduler(now=None) -> SchedulerResult:
    now = now or utcnow()
    result = SchedulerResult()
    ids = [r.id for r in (Introduction.query
                          .filter(Introduction.status == IntroductionStatus.INTRODUCED,
                                  Introduction.introduced_at.isnot(None),
                                  Introduction.protection_ends_at > now)
                          .with_entities(Introduction.id))]
    current_app.logger.info('[%s] %d introductions in protection', JOB, len(ids))

    def handle(intro_id):
        intro = db.session.get(Introduction, intro_id)
        process_introduction(intro, now, result)
        result.introductions_processed += 1

    def failed(intro_id, exc):
        db.session.rollback()
        current_app.logger.exception('[%s] introduction %s failed', JOB, intro_id)
        result.errors.append(f'Introduction {intro_id}: {exc}')

    batch_process(ids, handle, on_error=failed)
    current_app.logger.info('[%s] created=%d sent=%d errors=%d', JOB, result.created, result.sent, len(result.errors))
    return result


def send_final_check_in(intro, now):
    """Final check-in before the window closes; resends a pending one instead."""
    check_in = pending_check_in(intro, now) or create_check_in(intro, now)
    return check_in, send_check_in(check_in, now)


def resend_check_in(check_in_id, now=None):
    """Admin resend of an unanswered check-in with a fresh link."""
    now = now or utcnow()
    check_in = db.session.get(CheckIn, check_in_id)
    if check_in is None:
        raise NotFoundError('Check-in not found', code='CHECK_IN_NOT_FOUND')
    if check_in.responded_at is not None:
        raise ConflictError('Check-in has already been responded to', code='ALREADY_RESPONDED')
    intro = check_in.introduction
    if intro.status != IntroductionStatus.INTRODUCED:
        raise ConflictError(f'Cannot resend check-in, introduction is {intro.status.value}',
                            code='NOT_IN_PROTECTION')
    mail = send_check_in(check_in, now)
    current_app.logger.info('[%s] check-in %s resent by admin (%s)', JOB, check_in.id,
                            'sent' if mail.success else mail.error)
    return check_in, mail
