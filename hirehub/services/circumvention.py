"""Circumvention flags: opening, admin updates, invoicing and resolution."""
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app, render_template

from ..errors import ConflictError, DeliveryError, NotFoundError, ValidationError
from ..extensions import db, rq
from ..models.circumvention_flag import (
    ACTIVE_STATUSES, RESOLVED_STATUSES, CircumventionFlag, DetectionMethod, FlagStatus, compute_fee,
)
from ..models.introduction import Introduction, IntroductionStatus
from ..utils.timeutil import utcnow
from .evidence import evidence_to_dict, manual_evidence
from .mail import send_email
from .settings import DEFAULT_FEE_PERCENTAGE, INVOICE_DUE_DAYS, get_setting

_UNSET = object()


@dataclass
class InvoiceResult:
    number: str
    amount: Decimal
    sent_to: str
    due_date: object
    admin_copy_sent: bool


def _decimal(value, name):
    if value is None:
        return None
    try:
        d = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f'{name} must be a number') from None
    if d < 0:
        raise ValidationError(f'{name} must not be negative')
    return d


def invoice_number(flag):
    return f"INV-{flag.detected_at:%Y%m}-{flag.id}"


def get_flag(flag_id) -> CircumventionFlag:
    flag = db.session.get(CircumventionFlag, flag_id)
    if flag is None:
        raise NotFoundError('Circumvention flag not found', code='FLAG_NOT_FOUND')
    return flag


def list_flags(status=None, page=1, per_page=20):
    q = CircumventionFlag.query
    if status:
        try:
            q = q.filter(CircumventionFlag.status == FlagStatus(status))
        except ValueError:
            raise ValidationError(f'Unknown flag status: {status}',
                                  valid_statuses=[s.value for s in FlagStatus]) from None
    return q.order_by(CircumventionFlag.detected_at.desc()).paginate(page=page, per_page=per_page, error_out=False)


def open_flag(introduction, detection_method, evidence, now=None, estimated_salary=None, fee_percentage=None):
    """Open a flag for ``introduction`` unless an unresolved one exists.

    Returns ``(flag, created)``. A new flag moves the introduction to HIRED
    (unless it is already terminal). The caller commits.
    """
    now = now or utcnow()
    existing = (CircumventionFlag.query
                .filter(CircumventionFlag.introduction_id == introduction.id,
                        CircumventionFlag.status.in_(list(ACTIVE_STATUSES)))
                .first())
    if existing is not None:
        current_app.logger.info('flag %s already open for introduction %s', existing.id, introduction.id)
        return existing, False

    salary = _decimal(estimated_salary, 'estimated_salary')
    if fee_percentage is None:
        fee_percentage = get_setting(DEFAULT_FEE_PERCENTAGE)
    pct = _decimal(fee_percentage, 'fee_percentage')

    flag = CircumventionFlag(
        introduction_id=introduction.id,
        detection_method=DetectionMethod(detection_method),
        evidence=evidence_to_dict(evidence) if not isinstance(evidence, dict) else evidence,
        status=FlagStatus.OPEN,
        detected_at=now,
        estimated_salary=salary,
        fee_percentage=pct,
        estimated_fee_owed=compute_fee(salary, pct),
    )
    db.session.add(flag)
    if not introduction.is_terminal:
        introduction.transition_to(IntroductionStatus.HIRED)
    db.session.flush()
    current_app.logger.info('opened circumvention flag %s for introduction %s (%s)',
                            flag.id, introduction.id, flag.detection_method.value)
    return flag, True


def create_manual_flag(introduction_id, notes, reported_by=None, estimated_salary=None,
                       fee_percentage=None, now=None):
    now = now or utcnow()
    if not (notes or '').strip():
        raise ValidationError('notes are required for a manual flag')
    intro = db.session.get(Introduction, introduction_id)
    if intro is None:
        raise NotFoundError('Introduction not found', code='INTRODUCTION_NOT_FOUND')
    flag, created = open_flag(intro, DetectionMethod.MANUAL, manual_evidence(notes, reported_by, now), now=now,
                              estimated_salary=estimated_salary, fee_percentage=fee_percentage)
    db.session.commit()
    return flag, created


def update_flag(flag_id, status=None, estimated_salary=_UNSET, fee_percentage=_UNSET,
                resolution_notes=None, resolution=None, now=None):
    """Apply an admin update.

    Salary and percentage use a sentinel so an explicit ``None`` clears the
    value. The fee is recomputed from the merged values whenever either one
    is supplied.

    The write only lands if the flag still has the status that was read, so
    two admins racing on the same flag cannot both move it; the loser gets a
    ``ConflictError``. ``resolved_at`` keeps the first stamp.
    """
    now = now or utcnow()
    flag = get_flag(flag_id)
    current = flag.status

    new_status = None
    if status is not None:
        try:
            new_status = FlagStatus(status)
        except ValueError:
            raise ValidationError(f'Unknown flag status: {status}',
                                  valid_statuses=[s.value for s in FlagStatus]) from None
        if not flag.can_transition_to(new_status):
            raise ConflictError(f'Flag cannot move from {current.value} to {new_status.value}',
                                code='INVALID_TRANSITION')

    values = {}
    if estimated_salary is not _UNSET or fee_percentage is not _UNSET:
        salary = (_decimal(estimated_salary, 'estimated_salary') if estimated_salary is not _UNSET
                  else flag.estimated_salary)
        pct = _decimal(fee_percentage, 'fee_percentage') if fee_percentage is not _UNSET else flag.fee_percentage
        values.update(estimated_salary=salary, fee_percentage=pct, estimated_fee_owed=compute_fee(salary, pct))

    if resolution_notes is not None:
        values['resolution_notes'] = resolution_notes
    if resolution is not None:
        values['resolution'] = resolution

    moved = new_status is not None and new_status != current
    if moved:
        values['status'] = new_status
        if new_status in RESOLVED_STATUSES:
            values['resolved_at'] = db.func.coalesce(CircumventionFlag.resolved_at, now)
        if new_status == FlagStatus.PAID:
            values['invoice_paid_at'] = now

    if values:
        won = (CircumventionFlag.query
               .filter(CircumventionFlag.id == flag.id, CircumventionFlag.status == current)
               .update(values, synchronize_session=False))
        if not won:
            db.session.rollback()
            raise ConflictError('Flag was changed by someone else, reload and try again',
                                code='FLAG_CHANGED')
    db.session.commit()
    db.session.refresh(flag)
    if moved:
        current_app.logger.info('flag %s moved from %s to %s', flag.id, current.value, new_status.value)
    return flag


def delete_flag(flag_id):
    flag = get_flag(flag_id)
    if flag.status != FlagStatus.FALSE_POSITIVE:
        raise ConflictError('Only flags marked FALSE_POSITIVE can be deleted', code='NOT_DELETABLE')
    db.session.delete(flag)
    db.session.commit()
    current_app.logger.info('deleted false-positive flag %s', flag_id)


def send_invoice(flag_id, invoice_amount=None, due_date=None, custom_message=None, now=None) -> InvoiceResult:
    """Email the placement-fee invoice to the employer's billing contact.

    Nothing on the flag changes unless delivery succeeds; a retry reuses the
    same invoice number.
    """
    now = now or utcnow()
    flag = get_flag(flag_id)
    if flag.is_resolved:
        raise ConflictError(f'Flag is already {flag.status.value}', code='FLAG_RESOLVED')

    amount = _decimal(invoice_amount, 'invoice_amount') if invoice_amount is not None else flag.estimated_fee_owed
    if amount is None or Decimal(amount) <= 0:
        raise ValidationError('Invoice amount must be positive; set the estimated salary first',
                              code='INVALID_AMOUNT')
    amount = Decimal(amount)

    intro = flag.introduction
    employer = intro.employer
    to = employer.billing_email if employer else None
    if not to:
        raise ValidationError('Employer has no billing email', code='NO_BILLING_EMAIL')

    if due_date is None:
        due_days = get_setting(INVOICE_DUE_DAYS)
        if due_days is None:
            due_days = current_app.config.get('INVOICE_DUE_DAYS', 30)
        due_date = now + timedelta(days=due_days)
    number = invoice_number(flag)

    context = dict(
        number=number, amount=amount, due_date=due_date, now=now, flag=flag, employer=employer,
        candidate_name=intro.candidate.name if intro.candidate else None,
        job_title=intro.job_title, custom_message=custom_message,
        billing_email=current_app.config.get('BILLING_EMAIL'),
    )
    subject = f'Invoice {number} - Placement fee for {context["candidate_name"] or "candidate"}'
    result = send_email(to, subject, render_template('email/invoice.html', **context),
                        kind='invoice', introduction_id=intro.id)
    if not result.success:
        # keep the notification log row, nothing else
        db.session.commit()
        raise DeliveryError(f'Invoice email to {to} failed: {result.error}')

    if flag.status == FlagStatus.OPEN:
        flag.status = FlagStatus.INVOICE_SENT
    flag.invoice_number = number
    flag.invoice_sent_at = now
    flag.invoice_amount = amount
    flag.invoice_due_date = due_date
    db.session.commit()
    current_app.logger.info('invoice %s for %s sent to %s', number, amount, to)

    admin_copy = send_email(current_app.config.get('ADMIN_EMAIL'), f'[Copy] {subject}',
                            render_template('email/invoice.html', admin_copy=True, sent_to=to, **context),
                            kind='invoice_admin_copy', introduction_id=intro.id)
    db.session.commit()

    return InvoiceResult(number=number, amount=amount, sent_to=to, due_date=due_date,
                         admin_copy_sent=admin_copy.success)


def alert_admin_of_flag(flag, subject, extra=None):
    """Queue the admin alert for a newly opened flag."""
    from ..jobs.notify import notify_admin
    intro = flag.introduction
    context = {
        'flag_id': flag.id,
        'company_name': intro.employer.company_name if intro.employer else None,
        'candidate_name': intro.candidate.name if intro.candidate else None,
        'detection_method': flag.detection_method.value,
        'dashboard_url': f"{current_app.config.get('APP_URL')}/admin/introductions/{intro.id}",
    }
    context.update(extra or {})
    rq.enqueue(notify_admin, subject, 'flag_alert', introduction_id=intro.id, context=context)
