"""Who is calling. Everything outside the blueprints asks here."""
from flask import request
from flask_login import current_user

from .models.user import User


def user_from_bearer(header_value):
    if not header_value or not header_value.startswith('Bearer '):
        return None
    token = header_value[len('Bearer '):].strip()
    if not token:
        return None
    return User.query.filter_by(api_token=token).first()


def get_request_user():
    """The logged-in user (session cookie or bearer API token), else None."""
    if current_user and current_user.is_authenticated:
        return current_user._get_current_object()
    return user_from_bearer(request.headers.get('Authorization'))
