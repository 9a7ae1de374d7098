from dataclasses import dataclass
from typing import Optional
import base64

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Attachment, Mail
from flask import current_app, render_template

from ..extensions import db
from ..models.notification import Notification
from ..utils.timeutil import utcnow


@dataclass
class MailResult:
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


def _build_message(to, subject, html, text=None, attachments=None):
    cfg = current_app.config
    message = Mail(from_email=(cfg['MAIL_FROM'], cfg['MAIL_FROM_NAME']),
                   to_emails=to,
                   subject=subject,
                   html_content=html,
                   plain_text_content=text)
    for att in attachments or ():
        # att: (filename, bytes, mime type)
        filename, content, mime = att
        message.add_attachment(Attachment(
            file_content=base64.b64encode(content).decode('ascii'),
            file_name=filename,
            file_type=mime,
        ))
    return message


def _sendgrid_send(message):
    sg = SendGridAPIClient(api_key=current_app.config['SENDGRID_API_KEY'])
    sg.client.timeout = current_app.config.get('MAIL_TIMEOUT', 15)
    resp = sg.send(message)
    headers = getattr(resp, 'headers', None) or {}
    return resp.status_code, headers.get('X-Message-Id')


def _log(to, subject, kind, introduction_id, result):
    n = Notification(introduction_id=introduction_id, kind=kind, sent_to=to,
                     subject=subject, status='sent' if result.success else 'failed',
                     error=result.error, provider_message_id=result.message_id,
                     sent_at=utcnow())
    db.session.add(n)


def send_email(to, subject, html, text=None, attachments=None, kind=None, introduction_id=None):
    """Send one email through SendGrid.

    Never raises for delivery problems: the outcome is returned as a
    ``MailResult`` and a ``Notification`` row is added to the session. The
    caller owns the commit.
    """
    if not to:
        result = MailResult(False, 'no recipient')
    elif not current_app.config.get('SENDGRID_API_KEY'):
        current_app.logger.warning('SENDGRID_API_KEY not set, email to %s not sent', to)
        result = MailResult(False, 'mail not configured')
    else:
        try:
            status, message_id = _sendgrid_send(_build_message(to, subject, html, text, attachments))
            if 200 <= status < 300:
                result = MailResult(True, message_id=message_id)
            else:
                result = MailResult(False, f'SendGrid returned {status}')
        except Exception as e:
            current_app.logger.exception('SendGrid send to %s failed', to)
            result = MailResult(False, str(e) or e.__class__.__name__)
    if not result.success:
        current_app.logger.warning('email %r to %s failed: %s', subject, to, result.error)
    _log(to, subject, kind, introduction_id, result)
    return result


def send_template(to, subject, template, kind=None, introduction_id=None, **context):
    html = render_template(f'email/{template}.html', **context)
    return send_email(to, subject, html, kind=kind, introduction_id=introduction_id)
