from datetime import timedelta

import pytest

from hirehub.errors import ConflictError, NotFoundError
from hirehub.extensions import db
from hirehub.jobs.check_ins import cadence_slots, resend_check_in, run_check_in_scheduler
from hirehub.models import CheckIn, IntroductionStatus


def test_first_check_in_created_and_sent(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))

    result = run_check_in_scheduler(now=now)

    assert result.created == 1
    assert result.sent == 1
    assert result.introductions_processed == 1
    assert result.errors == []
    check_in = CheckIn.query.filter_by(introduction_id=intro.id).one()
    assert check_in.check_in_number == 1
    assert check_in.scheduled_for == intro.introduced_at + timedelta(days=30)
    assert check_in.sent_at == now
    assert check_in.response_token
    assert check_in.response_token_expiry == now + timedelta(days=7)
    mails = outbox.to(intro.candidate.email)
    assert len(mails) == 1
    assert check_in.response_token in mails[0]['html']


def test_running_twice_creates_one_check_in(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))

    run_check_in_scheduler(now=now)
    second = run_check_in_scheduler(now=now + timedelta(hours=1))

    assert second.created == 0
    assert second.sent == 0
    assert CheckIn.query.filter_by(introduction_id=intro.id).count() == 1


def test_nothing_due_before_first_slot(make, outbox, now):
    make.introduction(introduced_at=now - timedelta(days=10))
    result = run_check_in_scheduler(now=now)
    assert result.created == 0
    assert CheckIn.query.count() == 0


def test_missed_slots_collapse_into_latest(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=100))

    result = run_check_in_scheduler(now=now)

    assert result.created == 1
    check_in = CheckIn.query.filter_by(introduction_id=intro.id).one()
    assert check_in.scheduled_for == intro.introduced_at + timedelta(days=90)
    assert run_check_in_scheduler(now=now).created == 0


def test_next_slot_gets_next_number(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))
    run_check_in_scheduler(now=now)

    later = now + timedelta(days=30)
    result = run_check_in_scheduler(now=later)

    assert result.created == 1
    numbers = [c.check_in_number for c in CheckIn.query.filter_by(introduction_id=intro.id)
               .order_by(CheckIn.check_in_number)]
    assert numbers == [1, 2]


def test_failed_send_is_retried_not_duplicated(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))
    outbox.fail_all = True

    first = run_check_in_scheduler(now=now)

    assert first.created == 1
    assert first.sent == 0
    assert len(first.errors) == 1
    check_in = CheckIn.query.filter_by(introduction_id=intro.id).one()
    assert check_in.sent_at is None
    assert check_in.send_attempts == 1
    assert check_in.last_send_error
    old_token = check_in.response_token

    outbox.fail_all = False
    second = run_check_in_scheduler(now=now + timedelta(hours=1))

    assert second.created == 0
    assert second.sent == 1
    db.session.expire_all()
    check_in = CheckIn.query.filter_by(introduction_id=intro.id).one()
    assert check_in.sent_at is not None
    assert check_in.send_attempts == 2
    assert check_in.last_send_error is None
    assert check_in.response_token != old_token


def test_one_failing_introduction_does_not_stop_others(make, outbox, now):
    bad = make.introduction(introduced_at=now - timedelta(days=31))
    good = make.introduction(introduced_at=now - timedelta(days=31))
    outbox.fail_for.add(bad.candidate.email)

    result = run_check_in_scheduler(now=now)

    assert result.created == 2
    assert result.sent == 1
    assert len(result.errors) == 1
    assert outbox.to(good.candidate.email)


def test_only_introduced_in_protection_are_scheduled(make, outbox, now):
    make.introduction(status=IntroductionStatus.HIRED, introduced_at=now - timedelta(days=31))
    make.introduction(introduced_at=now - timedelta(days=400),
                      protection_ends_at=now - timedelta(days=1))
    result = run_check_in_scheduler(now=now)
    assert result.introductions_processed == 0
    assert CheckIn.query.count() == 0


def test_slots_never_reach_protection_end(make, now):
    intro = make.introduction(introduced_at=now, protection_ends_at=now + timedelta(days=200))
    slots = cadence_slots(intro)
    assert [(s - now).days for s in slots] == [30, 60, 90, 180]


@pytest.fixture
def sent_check_in(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))
    run_check_in_scheduler(now=now)
    return CheckIn.query.filter_by(introduction_id=intro.id).one()


def test_resend_issues_fresh_link(sent_check_in, outbox, now):
    old_token = sent_check_in.response_token
    later = now + timedelta(days=10)

    check_in, mail = resend_check_in(sent_check_in.id, now=later)

    assert mail.success
    assert check_in.response_token != old_token
    assert check_in.response_token_expiry == later + timedelta(days=7)
    assert check_in.sent_at == later
    mails = outbox.to(check_in.introduction.candidate.email)
    assert len(mails) == 2
    assert check_in.response_token in mails[-1]['html']


def test_resend_refuses_answered_check_in(sent_check_in, outbox, now):
    sent_check_in.responded_at = now
    db.session.commit()

    with pytest.raises(ConflictError) as exc:
        resend_check_in(sent_check_in.id, now=now)
    assert exc.value.code == 'ALREADY_RESPONDED'
    assert len(outbox.messages) == 1


def test_resend_refuses_closed_introduction(sent_check_in, outbox, now):
    sent_check_in.introduction.status = IntroductionStatus.CLOSED_NO_HIRE
    db.session.commit()

    with pytest.raises(ConflictError) as exc:
        resend_check_in(sent_check_in.id, now=now)
    assert exc.value.code == 'NOT_IN_PROTECTION'


def test_resend_unknown_check_in(app):
    with pytest.raises(NotFoundError):
        resend_check_in(9999)
