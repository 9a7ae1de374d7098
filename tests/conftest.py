import os
import sys
from datetime import datetime, timedelta

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from hirehub import create_app
from hirehub.extensions import db
from hirehub.models import (
    Candidate, Employer, Introduction, IntroductionStatus, Job, User, UserRole,
)
from hirehub.models.introduction import CandidateResponse, protection_end

NOW = datetime(2026, 3, 2, 12, 0, 0)


class Outbox:
    """Stands in for the SendGrid transport."""

    def __init__(self):
        self.messages = []
        self.fail_all = False
        self.fail_for = set()

    def build(self, to, subject, html, text=None, attachments=None):
        return {'to': to, 'subject': subject, 'html': html}

    def send(self, message):
        if self.fail_all or message['to'] in self.fail_for:
            raise RuntimeError('SendGrid unavailable')
        self.messages.append(message)
        return 202, f"msg-{len(self.messages)}"

    def to(self, address):
        return [m for m in self.messages if m['to'] == address]


class Factory:
    def __init__(self):
        self._n = 0

    def _next(self):
        self._n += 1
        return self._n

    def user(self, role=UserRole.CANDIDATE, name=None, email=None, api_token=None):
        n = self._next()
        u = User(email=email or f'user{n}@example.com', name=name or f'User {n}', role=role,
                 api_token=api_token)
        u.set_password('secret123')
        db.session.add(u)
        db.session.flush()
        return u

    def admin(self, api_token='admin-token'):
        return self.user(role=UserRole.ADMIN, name='Ada Admin', api_token=api_token)

    def employer(self, company_name='Acme Corp', contact_email='billing@acme.example', api_token=None):
        u = self.user(role=UserRole.EMPLOYER, name='Erin Employer', api_token=api_token)
        e = Employer(user=u, user_id=u.id, company_name=company_name, contact_name='Erin Employer',
                     contact_email=contact_email)
        db.session.add(e)
        db.session.flush()
        return e

    def candidate(self, name='Casey Candidate'):
        u = self.user(role=UserRole.CANDIDATE, name=name)
        c = Candidate(user=u, user_id=u.id, phone='555-0100')
        db.session.add(c)
        db.session.flush()
        return c

    def job(self, employer, title='Backend Engineer'):
        j = Job(employer_id=employer.id, title=title, salary_min=120000, salary_max=150000)
        db.session.add(j)
        db.session.flush()
        return j

    def introduction(self, employer=None, candidate=None, status=IntroductionStatus.INTRODUCED,
                     introduced_at=None, protection_starts_at=None, protection_ends_at=None):
        employer = employer or self.employer()
        candidate = candidate or self.candidate()
        starts = protection_starts_at or introduced_at or NOW - timedelta(days=40)
        intro = Introduction(
            employer=employer, employer_id=employer.id,
            candidate=candidate, candidate_id=candidate.id,
            status=status,
            profile_viewed_at=starts,
            protection_starts_at=starts,
            protection_ends_at=protection_ends_at or protection_end(starts),
            introduced_at=introduced_at if introduced_at is not None else (
                starts if status == IntroductionStatus.INTRODUCED else None),
            candidate_response=(CandidateResponse.ACCEPTED if status == IntroductionStatus.INTRODUCED
                                else CandidateResponse.PENDING),
            profile_views=1, resume_downloads=0, email_resend_count=0,
        )
        db.session.add(intro)
        db.session.commit()
        return intro


@pytest.fixture
def app():
    app = create_app('config.TestingConfig')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr('hirehub.services.mail._build_message', box.build)
    monkeypatch.setattr('hirehub.services.mail._sendgrid_send', box.send)
    return box


@pytest.fixture
def make(app):
    return Factory()


@pytest.fixture
def now():
    return NOW
