import hmac
from functools import wraps

from flask import abort, current_app, g, request

from ..auth import get_request_user
from ..models.user import UserRole


def _require_role(role):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            user = get_request_user()
            if user is None:
                abort(401)
            if user.role != role:
                abort(403)
            g.user = user
            return view(*args, **kwargs)
        return wrapped
    return decorator


admin_required = _require_role(UserRole.ADMIN)
employer_required = _require_role(UserRole.EMPLOYER)


def cron_auth_required(view):
    """Bearer CRON_SECRET or X-Cron-Secret header; open when no secret is set."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        secret = current_app.config.get('CRON_SECRET')
        if not secret:
            current_app.logger.warning('CRON_SECRET not set, allowing cron call to %s', request.path)
            return view(*args, **kwargs)
        auth = request.headers.get('Authorization', '')
        supplied = auth[len('Bearer '):] if auth.startswith('Bearer ') else request.headers.get('X-Cron-Secret', '')
        if not hmac.compare_digest(supplied.encode(), secret.encode()):
            abort(401)
        return view(*args, **kwargs)
    return wrapped
