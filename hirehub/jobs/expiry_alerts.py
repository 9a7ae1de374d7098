"""Protection-window expiry monitor.

Warns admins a week before an introduction's protection ends, sends the
candidate a final check-in, and marks ended windows EXPIRED.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from flask import current_app

from ..errors import ConflictError
from ..models.check_in import CheckIn
from ..models.introduction import Introduction, IntroductionStatus
from ..services.introductions import get_introduction
from ..services.mail import send_template
from ..services.settings import SEND_FINAL_CHECK_INS, get_setting
from ..utils.timeutil import utcnow
from .check_ins import send_final_check_in as _send_final
from .window_sweep import TimeWindowSweep

FINAL_CHECK_IN_QUIET_DAYS = 14


@dataclass
class ExpiryResult:
    expiring_in_7_days: int = 0
    expired_marked: int = 0
    alerts_sent: int = 0
    final_check_ins_sent: int = 0
    errors: List[str] = field(default_factory=list)


def _recent_check_in(intro, now):
    since = now - timedelta(days=FINAL_CHECK_IN_QUIET_DAYS)
    return (CheckIn.query
            .filter(CheckIn.introduction_id == intro.id, CheckIn.scheduled_for >= since)
            .first() is not None)


class ProtectionExpirySweep(TimeWindowSweep):
    job_name = 'expiry-alerts'
    model = Introduction
    deadline = 'protection_ends_at'

    def __init__(self, now=None, send_final_check_ins=None):
        super().__init__(now=now)
        if send_final_check_ins is None:
            send_final_check_ins = get_setting(SEND_FINAL_CHECK_INS)
        self.send_final_check_ins = send_final_check_ins is True
        self.result = ExpiryResult(errors=self.errors)

    def active_query(self):
        return Introduction.query.filter(Introduction.status == IntroductionStatus.INTRODUCED)

    def _warn_admin(self, intro):
        days_left = max((intro.protection_ends_at - self.now).days, 0)
        mail = send_template(
            current_app.config.get('ADMIN_EMAIL'),
            f'Protection ending in {days_left} days: {intro.candidate.name} / {intro.employer.company_name}',
            'expiry_warning',
            kind='expiry_warning',
            introduction_id=intro.id,
            candidate_name=intro.candidate.name,
            company_name=intro.employer.company_name,
            job_title=intro.job_title,
            introduced_at=intro.introduced_at,
            protection_ends_at=intro.protection_ends_at,
            days_left=days_left,
            check_ins=intro.check_ins,
            dashboard_url=f"{current_app.config.get('APP_URL')}/admin/introductions/{intro.id}",
        )
        if mail.success:
            intro.expiry_warning_sent_at = self.now
            self.result.alerts_sent += 1
        else:
            self.error(intro.id, f'expiry warning not sent: {mail.error}')

    def on_expiring(self, intro):
        if intro.expiry_warning_sent_at is None:
            self._warn_admin(intro)
        if self.send_final_check_ins and not _recent_check_in(intro, self.now):
            _, mail = _send_final(intro, self.now)
            if mail.success:
                self.result.final_check_ins_sent += 1
            else:
                self.error(intro.id, f'final check-in not sent: {mail.error}')

    def on_ended(self, intro):
        intro.transition_to(IntroductionStatus.EXPIRED)
        self.result.expired_marked += 1
        self.log('introduction %s protection ended, marked EXPIRED', intro.id)

    def run(self) -> ExpiryResult:
        expiring, _ = self.sweep()
        self.result.expiring_in_7_days = expiring
        self.log('alerts=%d final_check_ins=%d expired=%d errors=%d', self.result.alerts_sent,
                 self.result.final_check_ins_sent, self.result.expired_marked, len(self.errors))
        return self.result


def run_expiry_alerts(now=None) -> ExpiryResult:
    return ProtectionExpirySweep(now=now).run()


def send_final_check_in(introduction_id, now=None):
    """Admin trigger for the final check-in of one introduction."""
    now = now or utcnow()
    intro = get_introduction(introduction_id)
    if intro.status != IntroductionStatus.INTRODUCED:
        raise ConflictError(f'Introduction is {intro.status.value}, not INTRODUCED', code='NOT_IN_PROTECTION')
    return _send_final(intro, now)
