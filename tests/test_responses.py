from datetime import timedelta

import pytest

from hirehub.errors import ClassificationError, ConflictError, NotFoundError, TokenExpiredError, ValidationError
from hirehub.extensions import db
from hirehub.jobs.check_ins import run_check_in_scheduler
from hirehub.models import CheckIn, CircumventionFlag, FlagStatus, IntroductionStatus
from hirehub.services import responses
from hirehub.services.evidence import ParsedResponse, SOURCE_FREE_TEXT
from hirehub.services.risk import RiskLevel


@pytest.fixture
def sent_check_in(make, outbox, now):
    intro = make.introduction(introduced_at=now - timedelta(days=31))
    run_check_in_scheduler(now=now)
    return CheckIn.query.filter_by(introduction_id=intro.id).one()


def _fake_parse(status='hired_there', risk=RiskLevel.HIGH, confidence='high'):
    calls = []

    def parse(text, employer_name, now=None):
        calls.append((text, employer_name))
        return ParsedResponse(status=status, risk_level=risk, risk_reason=f'parsed {status}',
                              source=SOURCE_FREE_TEXT, summary='summary', confidence=confidence,
                              message=text, company_mentioned=employer_name)

    parse.calls = calls
    return parse


def test_hired_there_opens_flag_and_alerts_admin(app, sent_check_in, outbox, now):
    token = sent_check_in.response_token

    check_in, parsed, flag = responses.submit_structured_response(
        token, 'hired_there', message='Started last week', start_date='2026-02-20',
        role_title='Engineer', now=now + timedelta(days=1))

    assert check_in.responded_at == now + timedelta(days=1)
    assert check_in.response_type == 'clicked_button'
    assert check_in.risk_level == RiskLevel.HIGH
    assert check_in.flagged_for_review is True
    assert check_in.response_parsed['status'] == 'hired_there'
    assert parsed.risk_level == RiskLevel.HIGH

    assert flag is not None
    assert flag.status == FlagStatus.OPEN
    assert flag.detection_method.value == 'check_in_response'
    assert flag.evidence['kind'] == 'check_in_response'
    assert flag.evidence['check_in_id'] == check_in.id
    assert flag.evidence['role_title'] == 'Engineer'
    assert flag.introduction.status == IntroductionStatus.HIRED
    alerts = outbox.to(app.config['ADMIN_EMAIL'])
    assert len(alerts) == 1
    assert alerts[0]['subject'] == 'ALERT: Candidate hired at Acme Corp'
    assert 'Started last week' in alerts[0]['html']


def test_rejected_is_clear_and_opens_nothing(sent_check_in, outbox, now):
    check_in, parsed, flag = responses.submit_structured_response(
        sent_check_in.response_token, 'rejected', now=now)

    assert flag is None
    assert check_in.risk_level == RiskLevel.CLEAR
    assert check_in.flagged_for_review is False
    assert CircumventionFlag.query.count() == 0
    assert check_in.introduction.status == IntroductionStatus.INTRODUCED


def test_only_one_structured_answer(sent_check_in, now):
    token = sent_check_in.response_token
    responses.submit_structured_response(token, 'interviewing', now=now)

    with pytest.raises(ConflictError) as exc:
        responses.submit_structured_response(token, 'hired_there', now=now)
    assert exc.value.code == 'ALREADY_RESPONDED'

    db.session.expire_all()
    check_in = db.session.get(CheckIn, sent_check_in.id)
    assert check_in.response_parsed['status'] == 'interviewing'
    assert CircumventionFlag.query.count() == 0


def test_invalid_status_rejected(sent_check_in, now):
    with pytest.raises(ValidationError) as exc:
        responses.submit_structured_response(sent_check_in.response_token, 'unclear', now=now)
    assert exc.value.code == 'INVALID_STATUS'
    assert 'hired_there' in exc.value.details['valid_statuses']
    db.session.expire_all()
    assert db.session.get(CheckIn, sent_check_in.id).responded_at is None


def test_token_checked_before_status(sent_check_in, now):
    with pytest.raises(NotFoundError) as exc:
        responses.submit_structured_response('no-such-token', 'unclear')
    assert exc.value.code == 'INVALID_TOKEN'

    with pytest.raises(TokenExpiredError):
        responses.submit_structured_response(sent_check_in.response_token, 'unclear',
                                             now=now + timedelta(days=8))

    responses.submit_structured_response(sent_check_in.response_token, 'rejected', now=now)
    with pytest.raises(ConflictError) as exc:
        responses.submit_structured_response(sent_check_in.response_token, 'unclear', now=now)
    assert exc.value.code == 'ALREADY_RESPONDED'


def test_unknown_token(app):
    with pytest.raises(NotFoundError) as exc:
        responses.submit_structured_response('no-such-token', 'rejected')
    assert exc.value.code == 'INVALID_TOKEN'


def test_expired_token(sent_check_in, now):
    with pytest.raises(TokenExpiredError) as exc:
        responses.submit_structured_response(sent_check_in.response_token, 'rejected',
                                             now=now + timedelta(days=8))
    assert exc.value.status_code == 410


def test_check_in_context_states(sent_check_in, now):
    token = sent_check_in.response_token
    assert responses.get_check_in_context(token, now=now)['status'] == 'pending'
    assert responses.get_check_in_context(token, now=now + timedelta(days=8))['status'] == 'expired'
    responses.submit_structured_response(token, 'still_looking', now=now)
    ctx = responses.get_check_in_context(token, now=now)
    assert ctx['status'] == 'responded'
    assert ctx['company_name'] == 'Acme Corp'


def test_short_free_text_rejected_before_ai(monkeypatch, sent_check_in):
    fake = _fake_parse()
    monkeypatch.setattr('hirehub.services.openai_wrap.parse_check_in_response', fake)

    with pytest.raises(ValidationError):
        responses.parse_free_text_reply(sent_check_in.id, '  hired!   ')
    assert fake.calls == []


def test_free_text_unknown_check_in(monkeypatch, app):
    monkeypatch.setattr('hirehub.services.openai_wrap.parse_check_in_response', _fake_parse())
    with pytest.raises(NotFoundError):
        responses.parse_free_text_reply(9999, 'I got a job somewhere else, thanks!')


def test_ai_unavailable_writes_nothing(sent_check_in):
    # TestingConfig has no OPENAI_API_KEY
    with pytest.raises(ClassificationError) as exc:
        responses.parse_free_text_reply(sent_check_in.id, 'I started at Acme last Monday as an engineer')
    assert exc.value.status_code == 503

    db.session.expire_all()
    check_in = db.session.get(CheckIn, sent_check_in.id)
    assert check_in.response_parsed is None
    assert check_in.responded_at is None


def test_free_text_hired_there_opens_email_flag(app, monkeypatch, sent_check_in, outbox, now):
    fake = _fake_parse()
    monkeypatch.setattr('hirehub.services.openai_wrap.parse_check_in_response', fake)
    text = 'Hi! I actually started at Acme Corp two weeks ago as a backend engineer.'

    check_in, parsed, flag, created = responses.parse_free_text_reply(sent_check_in.id, text, now=now)

    assert fake.calls == [(text, 'Acme Corp')]
    assert check_in.response_type == 'free_text'
    assert check_in.response_raw == text
    assert check_in.risk_level == RiskLevel.HIGH
    assert check_in.flagged_for_review is True
    assert flag.detection_method.value == 'email_reply_parsing'
    assert flag.evidence['original_email'] == text
    assert flag.evidence['ai_confidence'] == 'high'
    alerts = outbox.to(app.config['ADMIN_EMAIL'])
    assert len(alerts) == 1
    assert created is True
    assert 'backend engineer' in alerts[0]['html']

    # same reply parsed again: the open flag is reused and no second alert goes out
    _, _, again, created = responses.parse_free_text_reply(sent_check_in.id, text, now=now)
    assert again.id == flag.id
    assert created is False
    assert len(outbox.to(app.config['ADMIN_EMAIL'])) == 1


def test_reparse_keeps_previous_parse(monkeypatch, sent_check_in, outbox, now):
    monkeypatch.setattr('hirehub.services.openai_wrap.parse_check_in_response',
                        _fake_parse(status='interviewing', risk=RiskLevel.MEDIUM))
    responses.parse_free_text_reply(sent_check_in.id, 'Still interviewing with them, will update.', now=now)
    first_responded = db.session.get(CheckIn, sent_check_in.id).responded_at

    monkeypatch.setattr('hirehub.services.openai_wrap.parse_check_in_response',
                        _fake_parse(status='rejected', risk=RiskLevel.CLEAR))
    check_in, _, flag, _ = responses.parse_free_text_reply(
        sent_check_in.id, 'They said no in the end, moving on.', now=now + timedelta(days=2))

    assert flag is None
    assert check_in.previous_response_parsed['status'] == 'interviewing'
    assert check_in.response_parsed['status'] == 'rejected'
    assert check_in.risk_level == RiskLevel.CLEAR
    assert check_in.responded_at == first_responded


def test_review_listing(sent_check_in, now):
    pending = responses.list_check_ins_for_review('pending')
    assert [c.id for c in pending] == [sent_check_in.id]

    responses.submit_structured_response(sent_check_in.response_token, 'offer', now=now)
    flagged = responses.list_check_ins_for_review('flagged')
    assert [c.id for c in flagged] == [sent_check_in.id]
    assert responses.list_check_ins_for_review('pending') == []
    with pytest.raises(ValidationError):
        responses.list_check_ins_for_review('bogus')
