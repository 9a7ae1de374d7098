from datetime import timedelta

import pytest

from hirehub.extensions import db
from hirehub.jobs.check_ins import run_check_in_scheduler
from hirehub.models import CheckIn, CircumventionFlag, Introduction, IntroductionStatus
from hirehub.utils.timeutil import utcnow

ADMIN = {'Authorization': 'Bearer admin-token'}
EMPLOYER = {'Authorization': 'Bearer employer-token'}


@pytest.fixture
def admin(make):
    user = make.admin()
    db.session.commit()
    return user


@pytest.fixture
def live_check_in(make, outbox):
    # real clock: the endpoints don't take a "now"
    now = utcnow()
    intro = make.introduction(introduced_at=now - timedelta(days=31))
    run_check_in_scheduler(now=now)
    return CheckIn.query.filter_by(introduction_id=intro.id).one()


def test_admin_endpoints_require_auth(client, admin, make):
    assert client.get('/api/admin/circumvention').status_code == 401
    make.employer(api_token='employer-token')
    db.session.commit()
    resp = client.get('/api/admin/circumvention', headers=EMPLOYER)
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'FORBIDDEN'
    assert client.get('/api/admin/circumvention', headers=ADMIN).status_code == 200


def test_check_in_answer_flow(client, live_check_in):
    url = f'/api/check-in/respond/{live_check_in.response_token}'

    ctx = client.get(url).get_json()
    assert ctx['status'] == 'pending'
    assert 'hired_there' in ctx['valid_statuses']

    bad = client.post(url, json={'status': 'maybe'})
    assert bad.status_code == 400
    assert bad.get_json()['code'] == 'INVALID_STATUS'

    ok = client.post(url, json={'status': 'offer', 'message': 'Got an offer!'})
    assert ok.status_code == 200
    assert ok.get_json()['risk_level'] == 'MEDIUM'
    assert ok.get_json()['flagged'] is True

    dup = client.post(url, json={'status': 'rejected'})
    assert dup.status_code == 409
    assert dup.get_json()['code'] == 'ALREADY_RESPONDED'


def test_unknown_check_in_token(client, app):
    resp = client.post('/api/check-in/respond/nope', json={'status': 'rejected'})
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'INVALID_TOKEN'


def test_parse_reply_without_ai_is_503(client, admin, live_check_in):
    resp = client.post('/api/admin/check-ins/parse-reply', headers=ADMIN,
                       json={'check_in_id': live_check_in.id, 'email_content': 'I joined Acme last month as an SRE.'})
    assert resp.status_code == 503
    assert resp.get_json()['code'] == 'CLASSIFICATION_FAILED'


def test_parse_reply_too_short(client, admin, live_check_in):
    resp = client.post('/api/admin/check-ins/parse-reply', headers=ADMIN,
                       json={'check_in_id': live_check_in.id, 'email_content': 'hired'})
    assert resp.status_code == 400


def test_flag_admin_flow(client, admin, make, outbox):
    intro = make.introduction()

    created = client.post('/api/admin/circumvention', headers=ADMIN,
                          json={'introduction_id': intro.id, 'notes': 'Saw the hire on LinkedIn'})
    assert created.status_code == 201
    flag_id = created.get_json()['flag']['id']

    patched = client.patch(f'/api/admin/circumvention/{flag_id}', headers=ADMIN,
                           json={'estimated_salary': 100000, 'fee_percentage': 20})
    assert patched.get_json()['flag']['estimated_fee_owed'] == '20000.00'

    invoice = client.post(f'/api/admin/circumvention/{flag_id}/send-invoice', headers=ADMIN, json={})
    assert invoice.status_code == 200
    assert invoice.get_json()['invoice_number'].startswith('INV-')

    cleared = client.patch(f'/api/admin/circumvention/{flag_id}', headers=ADMIN,
                           json={'estimated_salary': None})
    assert cleared.get_json()['flag']['estimated_fee_owed'] is None

    assert client.delete(f'/api/admin/circumvention/{flag_id}', headers=ADMIN).status_code == 409
    client.patch(f'/api/admin/circumvention/{flag_id}', headers=ADMIN, json={'status': 'FALSE_POSITIVE'})
    assert client.delete(f'/api/admin/circumvention/{flag_id}', headers=ADMIN).status_code == 200
    assert CircumventionFlag.query.count() == 0


def test_settings_endpoint(client, admin):
    got = client.get('/api/admin/settings/default_fee_percentage', headers=ADMIN).get_json()
    assert got == {'key': 'default_fee_percentage', 'value': 18, 'version': 0}

    ok = client.put('/api/admin/settings/default_fee_percentage', headers=ADMIN,
                    json={'value': 20, 'expected_version': 0})
    assert ok.get_json()['version'] == 1

    stale = client.put('/api/admin/settings/default_fee_percentage', headers=ADMIN,
                       json={'value': 21, 'expected_version': 0})
    assert stale.status_code == 409

    missing = client.put('/api/admin/settings/default_fee_percentage', headers=ADMIN, json={'value': 21})
    assert missing.status_code == 400


def test_cron_secret(app, client, make, outbox):
    app.config['CRON_SECRET'] = 's3cret'
    assert client.post('/api/cron/check-ins').status_code == 401
    assert client.post('/api/cron/check-ins', headers={'Authorization': 'Bearer wrong'}).status_code == 401
    resp = client.post('/api/cron/check-ins', headers={'Authorization': 'Bearer s3cret'})
    assert resp.status_code == 200
    assert resp.get_json()['job'] == 'check-ins'
    assert client.get('/api/cron/expiry-alerts', headers={'X-Cron-Secret': 's3cret'}).status_code == 200


def test_cron_open_without_secret(client, app, outbox):
    resp = client.post('/api/cron/guarantee-checks')
    assert resp.status_code == 200
    assert resp.get_json()['errors'] == []


def test_employer_view_and_request(client, make, outbox):
    employer = make.employer(api_token='employer-token')
    candidate = make.candidate()
    db.session.commit()

    viewed = client.post(f'/api/employer/candidates/{candidate.id}/view', headers=EMPLOYER)
    assert viewed.status_code == 201
    assert client.post(f'/api/employer/candidates/{candidate.id}/view', headers=EMPLOYER).status_code == 200

    requested = client.post('/api/employer/introductions/request', headers=EMPLOYER,
                            json={'candidate_id': candidate.id})
    assert requested.get_json()['status'] == 'INTRO_REQUESTED'

    db.session.expire_all()
    intro = Introduction.query.filter_by(employer_id=employer.id, candidate_id=candidate.id).one()
    answer = client.post(f'/api/introductions/respond/{intro.response_token}', json={'response': 'accepted'})
    assert answer.get_json()['status'] == 'INTRODUCED'


def test_admin_close_introduction(client, admin, make):
    intro = make.introduction()
    resp = client.post(f'/api/admin/introductions/{intro.id}/close', headers=ADMIN, json={'note': 'no hire'})
    assert resp.get_json()['status'] == 'CLOSED_NO_HIRE'
    db.session.expire_all()
    assert db.session.get(Introduction, intro.id).status == IntroductionStatus.CLOSED_NO_HIRE


def test_login(client, make):
    user = make.admin(api_token=None)
    db.session.commit()
    bad = client.post('/auth/login', json={'email': user.email, 'password': 'wrong'})
    assert bad.status_code == 401
    ok = client.post('/auth/login', json={'email': user.email, 'password': 'secret123'})
    assert ok.get_json()['role'] == 'ADMIN'
    assert client.get('/api/admin/circumvention').status_code == 200
    assert client.post('/auth/logout').status_code == 200
    assert client.get('/api/admin/circumvention').status_code == 401


def test_admin_resend_check_in(client, admin, live_check_in, outbox):
    old_token = live_check_in.response_token
    resp = client.post(f'/api/admin/check-ins/{live_check_in.id}/resend', headers=ADMIN)
    body = resp.get_json()
    assert resp.status_code == 200
    assert body['success'] is True
    assert body['sent_to'] == live_check_in.introduction.candidate.email
    db.session.expire_all()
    assert db.session.get(CheckIn, live_check_in.id).response_token != old_token

    assert client.post('/api/admin/check-ins/9999/resend', headers=ADMIN).status_code == 404


def test_admin_manual_response(client, admin, make, outbox):
    intro = make.introduction(status=IntroductionStatus.INTRO_REQUESTED)
    bad = client.post(f'/api/admin/introductions/{intro.id}/manual-response', headers=ADMIN,
                      json={'response': 'MAYBE'})
    assert bad.status_code == 400
    ok = client.post(f'/api/admin/introductions/{intro.id}/manual-response', headers=ADMIN,
                     json={'response': 'ACCEPT', 'note': 'called the office'})
    assert ok.get_json() == {'success': True, 'status': 'INTRODUCED', 'candidate_response': 'ACCEPTED'}
    again = client.post(f'/api/admin/introductions/{intro.id}/manual-response', headers=ADMIN,
                        json={'response': 'DECLINE'})
    assert again.status_code == 409


def test_admin_expiry_listings(client, admin, make):
    now = utcnow()
    soon = make.introduction(protection_starts_at=now - timedelta(days=300),
                             protection_ends_at=now + timedelta(days=3, hours=1))
    make.introduction(status=IntroductionStatus.EXPIRED, protection_ends_at=now - timedelta(days=1, hours=12))

    expiring = client.get('/api/admin/introductions/expiring', headers=ADMIN).get_json()
    assert expiring['total'] == 1
    row = expiring['introductions'][0]
    assert row['id'] == soon.id
    assert row['days_until_expiry'] == 4
    assert row['check_ins'] == {'total': 0, 'responded': 0}
    assert expiring['counts']['expired_last_30_days'] == 1

    expired = client.get('/api/admin/introductions/expired?since_days=7', headers=ADMIN).get_json()
    assert expired['introductions'][0]['days_since_expiry'] == 2
    assert client.get('/api/admin/introductions/expiring?within_days=0', headers=ADMIN).status_code == 400
