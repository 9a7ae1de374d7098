import secrets
from datetime import timedelta


def new_token(nbytes=32):
    return secrets.token_urlsafe(nbytes)


def issue(record, now, days):
    """Put a fresh single-use token on ``record`` valid for ``days`` days."""
    record.response_token = new_token()
    record.response_token_expiry = now + timedelta(days=days)
    return record.response_token
