"""Persisted platform settings with versioned compare-and-swap writes."""
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models.setting import PlatformSetting

DEFAULT_FEE_PERCENTAGE = 'default_fee_percentage'
INVOICE_DUE_DAYS = 'invoice_due_days'
SEND_FINAL_CHECK_INS = 'send_final_check_ins'

# keys an admin may read/write, with the config key holding the default
KNOWN_SETTINGS = {
    DEFAULT_FEE_PERCENTAGE: 'DEFAULT_FEE_PERCENTAGE',
    INVOICE_DUE_DAYS: 'INVOICE_DUE_DAYS',
    SEND_FINAL_CHECK_INS: 'SEND_FINAL_CHECK_INS',
}


def _check_key(key):
    if key not in KNOWN_SETTINGS:
        raise NotFoundError(f'Unknown setting: {key}', code='UNKNOWN_SETTING')


def _validate(key, value):
    """Reject values the readers of ``key`` could not use."""
    if key == DEFAULT_FEE_PERCENTAGE:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError('default_fee_percentage must be a number')
        if value < 0 or value > 100:
            raise ValidationError('default_fee_percentage must be between 0 and 100')
    elif key == INVOICE_DUE_DAYS:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError('invoice_due_days must be a positive whole number of days')
    elif key == SEND_FINAL_CHECK_INS:
        if not isinstance(value, bool):
            raise ValidationError('send_final_check_ins must be true or false')


def read_setting(key):
    """Return ``(value, version)``; version 0 means the default is in effect."""
    _check_key(key)
    row = PlatformSetting.query.filter_by(key=key).first()
    if row is None:
        return current_app.config.get(KNOWN_SETTINGS[key]), 0
    return row.value, row.version


def get_setting(key):
    return read_setting(key)[0]


def write_setting(key, value, expected_version):
    """Store ``value`` only if the stored version still equals ``expected_version``.

    Returns the new version. A stale version raises ``ConflictError``.
    """
    _check_key(key)
    if expected_version is None:
        raise ValidationError('expected_version is required')
    _validate(key, value)

    if expected_version == 0:
        if PlatformSetting.query.filter_by(key=key).first() is not None:
            raise ConflictError(f'Setting {key} was changed by someone else', code='VERSION_CONFLICT')
        db.session.add(PlatformSetting(key=key, value=value, version=1))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f'Setting {key} was changed by someone else', code='VERSION_CONFLICT')
        return 1

    updated = (PlatformSetting.query
               .filter(PlatformSetting.key == key, PlatformSetting.version == expected_version)
               .update({'value': value, 'version': PlatformSetting.version + 1},
                       synchronize_session=False))
    if not updated:
        db.session.rollback()
        raise ConflictError(f'Setting {key} was changed by someone else', code='VERSION_CONFLICT')
    db.session.commit()
    current_app.logger.info('setting %s updated to version %d', key, expected_version + 1)
    return expected_version + 1
