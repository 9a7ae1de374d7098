from flask import current_app

from ..extensions import db
from ..services.mail import send_template


def notify_admin(subject: str, template: str, introduction_id: int = None, context: dict = None):
    """Email the admin inbox. Runs on the RQ worker, or inline without Redis."""
    to = current_app.config.get('ADMIN_EMAIL')
    result = send_template(to, subject, template, kind=f'admin_{template}',
                           introduction_id=introduction_id, **(context or {}))
    db.session.commit()
    return result.success
