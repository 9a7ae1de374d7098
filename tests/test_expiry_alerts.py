from datetime import timedelta

import pytest
from dateutil.relativedelta import relativedelta

from hirehub.errors import ConflictError
from hirehub.extensions import db
from hirehub.jobs.expiry_alerts import run_expiry_alerts, send_final_check_in
from hirehub.models import CheckIn, Introduction, IntroductionStatus
from hirehub.services import settings


def _ending_in(make, now, days):
    ends = now + timedelta(days=days)
    starts = ends - relativedelta(months=12)
    return make.introduction(introduced_at=starts, protection_starts_at=starts, protection_ends_at=ends)


def test_warning_and_final_check_in(app, make, outbox, now):
    intro = _ending_in(make, now, 7)

    result = run_expiry_alerts(now=now)

    assert result.expiring_in_7_days == 1
    assert result.alerts_sent == 1
    assert result.final_check_ins_sent == 1
    assert result.errors == []
    assert db.session.get(Introduction, intro.id).expiry_warning_sent_at == now
    assert len(outbox.to(app.config['ADMIN_EMAIL'])) == 1
    assert len(outbox.to(intro.candidate.email)) == 1
    assert CheckIn.query.filter_by(introduction_id=intro.id).count() == 1


def test_warning_sent_once(app, make, outbox, now):
    _ending_in(make, now, 7)
    run_expiry_alerts(now=now)

    again = run_expiry_alerts(now=now + timedelta(hours=12))

    assert again.expiring_in_7_days == 1
    assert again.alerts_sent == 0
    assert again.final_check_ins_sent == 0
    assert len(outbox.to(app.config['ADMIN_EMAIL'])) == 1


def test_window_edges(make, outbox, now):
    _ending_in(make, now, 6)
    _ending_in(make, now, 8)
    _ending_in(make, now, 9)
    _ending_in(make, now, 5)
    result = run_expiry_alerts(now=now)
    assert result.expiring_in_7_days == 2


def test_recent_check_in_skips_final(make, outbox, now):
    intro = _ending_in(make, now, 7)
    db.session.add(CheckIn(introduction_id=intro.id, check_in_number=1, scheduled_for=now - timedelta(days=3),
                           sent_at=now - timedelta(days=3), send_attempts=1))
    db.session.commit()

    result = run_expiry_alerts(now=now)

    assert result.alerts_sent == 1
    assert result.final_check_ins_sent == 0


def test_failed_warning_retried_next_run(app, make, outbox, now):
    intro = _ending_in(make, now, 7)
    outbox.fail_for.add(app.config['ADMIN_EMAIL'])

    result = run_expiry_alerts(now=now)
    assert result.alerts_sent == 0
    assert len(result.errors) == 1
    assert db.session.get(Introduction, intro.id).expiry_warning_sent_at is None

    outbox.fail_for.clear()
    assert run_expiry_alerts(now=now + timedelta(hours=1)).alerts_sent == 1


def test_expired_marked_once(make, outbox, now):
    intro = _ending_in(make, now, -1)
    hired = make.introduction(status=IntroductionStatus.HIRED, introduced_at=now - timedelta(days=400),
                              protection_ends_at=now - timedelta(days=2))

    first = run_expiry_alerts(now=now)
    second = run_expiry_alerts(now=now)

    assert first.expired_marked == 1
    assert second.expired_marked == 0
    assert db.session.get(Introduction, intro.id).status == IntroductionStatus.EXPIRED
    assert db.session.get(Introduction, hired.id).status == IntroductionStatus.HIRED


def test_admin_final_check_in(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))
    check_in, mail = send_final_check_in(intro.id, now=now)
    assert mail.success
    assert check_in.check_in_number == 1
    assert check_in.sent_at == now


def test_admin_final_check_in_needs_introduced(make, now):
    intro = make.introduction(status=IntroductionStatus.HIRED, introduced_at=now - timedelta(days=31))
    with pytest.raises(ConflictError):
        send_final_check_in(intro.id, now=now)


def test_final_check_ins_switched_off(app, make, outbox, now):
    settings.write_setting('send_final_check_ins', False, expected_version=0)
    intro = _ending_in(make, now, 7)

    result = run_expiry_alerts(now=now)

    assert result.alerts_sent == 1
    assert result.final_check_ins_sent == 0
    assert CheckIn.query.filter_by(introduction_id=intro.id).count() == 0
